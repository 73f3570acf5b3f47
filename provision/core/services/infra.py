"""
Infra launcher — one EC2 instance per service, then Route53 A records.

Flow for a plan:
    launch <svc>         run-instances → wait running → read IPs   (×N)
    dns <domain>         bare domain → public IP of the public service
    dns <svc>.<domain>   service name → its private IP              (×N)

Every AWS call goes through boto3 clients handed in by the caller.
AWS failures are mapped onto the provisioning error taxonomy, so a
failed launch ends the run like any other failed step.  Instances that
were already launched are left running; re-running launches new ones.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from provision.core.errors import ConfigError, NetworkError, ProvisionError, StepFailedError
from provision.core.models.infra import InfraPlan, InstanceRecord
from provision.core.models.step import ProvisioningStep

logger = logging.getLogger(__name__)

# instance_running waiter: poll every 15 s for up to 10 minutes
WAIT_DELAY = 15
WAIT_MAX_ATTEMPTS = 40


def make_clients(region: str) -> tuple[Any, Any]:
    """EC2 and Route53 clients from the default credential chain."""
    import boto3

    return boto3.client("ec2", region_name=region), boto3.client("route53")


def _aws_error(action: str, e: Exception) -> ProvisionError:
    if isinstance(e, NoCredentialsError):
        return ConfigError(f"{action}: no AWS credentials found (configure a profile or instance role)")
    if isinstance(e, ClientError):
        err = e.response.get("Error", {})
        return NetworkError(f"{action}: {err.get('Code', 'ClientError')}: {err.get('Message', e)}")
    return NetworkError(f"{action}: {e}")


class InfraLauncher:
    """Launch the instances of a plan and publish their DNS names."""

    def __init__(self, plan: InfraPlan, ec2: Any, route53: Any):
        self._plan = plan
        self._ec2 = ec2
        self._route53 = route53
        self.records: dict[str, InstanceRecord] = {
            name: InstanceRecord(service=name, instance_type=itype)
            for name, itype in plan.services.items()
        }

    @property
    def plan(self) -> InfraPlan:
        return self._plan

    # ── AWS operations ──────────────────────────────────────────

    def launch(self, service: str) -> InstanceRecord:
        """Start one instance for ``service`` and wait until it runs.

        Raises:
            NetworkError: EC2 rejected the call or the wait failed.
            ConfigError: no AWS credentials.
            StepFailedError: EC2 answered without an instance id.
        """
        plan = self._plan
        record = self.records[service]
        params: dict[str, Any] = {
            "ImageId": plan.ami_id,
            "InstanceType": record.instance_type,
            "MinCount": 1,
            "MaxCount": 1,
            "SecurityGroupIds": [plan.security_group_id],
            "KeyName": plan.key_name,
            "TagSpecifications": [{
                "ResourceType": "instance",
                "Tags": [
                    {"Key": "Name", "Value": service},
                    {"Key": "Project", "Value": plan.project},
                ],
            }],
        }
        if plan.subnet_id:
            params["SubnetId"] = plan.subnet_id

        logger.info("Launching %s (%s) from %s", service, record.instance_type, plan.ami_id)
        try:
            response = self._ec2.run_instances(**params)
        except (ClientError, BotoCoreError) as e:
            raise _aws_error(f"EC2 run-instances failed for {service}", e) from e

        instances = response.get("Instances") or [{}]
        instance_id = instances[0].get("InstanceId", "")
        if not instance_id.startswith("i-"):
            raise StepFailedError(f"Unexpected instance ID for {service}: {instance_id!r}")
        record.instance_id = instance_id
        logger.info("%s: launched instance %s; waiting for 'running'", service, instance_id)

        try:
            self._ec2.get_waiter("instance_running").wait(
                InstanceIds=[instance_id],
                WaiterConfig={"Delay": WAIT_DELAY, "MaxAttempts": WAIT_MAX_ATTEMPTS},
            )
            described = self._ec2.describe_instances(InstanceIds=[instance_id])
        except (ClientError, BotoCoreError) as e:
            raise _aws_error(f"Waiting for {service} instance {instance_id}", e) from e

        instance = described["Reservations"][0]["Instances"][0]
        record.private_ip = instance.get("PrivateIpAddress", "")
        record.public_ip = instance.get("PublicIpAddress", "")
        logger.info(
            "%s: private IP = %s, public IP = %s",
            service, record.private_ip or "N/A", record.public_ip or "N/A",
        )
        return record

    def upsert_a_record(self, name: str, value: str) -> None:
        """Create or update ``name`` → ``value`` in the plan's hosted zone."""
        batch = {
            "Comment": f"{self._plan.project} provisioning",
            "Changes": [{
                "Action": "UPSERT",
                "ResourceRecordSet": {
                    "Name": name,
                    "Type": "A",
                    "TTL": self._plan.ttl,
                    "ResourceRecords": [{"Value": value}],
                },
            }],
        }
        logger.info("Route53 UPSERT %s -> %s", name, value)
        try:
            self._route53.change_resource_record_sets(
                HostedZoneId=self._plan.hosted_zone_id,
                ChangeBatch=batch,
            )
        except (ClientError, BotoCoreError) as e:
            raise _aws_error(f"Route53 A record for {name}", e) from e

    # ── Steps ───────────────────────────────────────────────────

    def steps(self) -> list[ProvisioningStep]:
        """Launch steps for every service, then the DNS steps."""
        plan = self._plan
        steps = [self._launch_step(name) for name in plan.services]

        public = self.records.get(plan.public_service)
        if public is not None:
            steps.append(self._dns_step(
                plan.domain_name,
                lambda: public.public_ip,
                f"No public IP found for '{plan.public_service}'. "
                f"Skipping {plan.domain_name} root A record.",
            ))

        for name, record in self.records.items():
            steps.append(self._dns_step(
                plan.fqdn(name),
                lambda record=record: record.private_ip,
                f"No private IP for {name}. Skipping DNS for {plan.fqdn(name)}.",
            ))
        return steps

    def _launch_step(self, service: str) -> ProvisioningStep:
        return ProvisioningStep(
            name=f"launch {service}",
            action=lambda: self.launch(service),
            success_message=f"{service} instance is now running.",
            failure_message=f"Failed to launch {service} instance.",
        )

    def _dns_step(self, name: str, address: Callable[[], str], skip_message: str) -> ProvisioningStep:
        return ProvisioningStep(
            name=f"dns {name}",
            action=lambda: self.upsert_a_record(name, address()),
            is_satisfied=lambda: not address(),
            success_message=f"Route53 record created/updated: {name}.",
            failure_message=f"Failed to create Route53 A record for {name}.",
            skip_message=skip_message,
        )
