"""
Infrastructure plan — EC2 instances and Route53 records for one environment.

A plan names the image, network and DNS zone shared by every instance,
plus one instance type per roboshop service.  ``provision infra launch``
turns it into an ordered, fail-fast list of launch and DNS steps.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class InfraPlan(BaseModel):
    """Where and how roboshop instances are launched."""

    region: str = "us-east-1"
    ami_id: str
    security_group_id: str
    key_name: str
    hosted_zone_id: str
    domain_name: str
    subnet_id: str | None = None
    project: str = "roboshop"
    ttl: int = Field(default=1, ge=1)

    # service → instance type, launched in this order
    services: dict[str, str] = Field(min_length=1)

    # Service whose public IP the bare domain points at
    public_service: str = "web"

    @field_validator("ami_id")
    @classmethod
    def _ami(cls, v: str) -> str:
        if not v.startswith("ami-"):
            raise ValueError(f"not an AMI id: {v!r}")
        return v

    @field_validator("domain_name")
    @classmethod
    def _domain(cls, v: str) -> str:
        return v.rstrip(".")

    def fqdn(self, service: str) -> str:
        return f"{service}.{self.domain_name}"

    def select(self, names: list[str]) -> InfraPlan:
        """Copy of this plan restricted to ``names`` (plan order kept).

        Raises:
            ValueError: a name is not in the plan.
        """
        unknown = [n for n in names if n not in self.services]
        if unknown:
            raise ValueError(f"not in plan: {', '.join(unknown)}")
        kept = {k: v for k, v in self.services.items() if k in names}
        return self.model_copy(update={"services": kept})


class InstanceRecord(BaseModel):
    """One launched instance, filled in as its launch step progresses."""

    service: str
    instance_type: str
    instance_id: str = ""
    private_ip: str = ""
    public_ip: str = ""
