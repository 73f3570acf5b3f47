"""
Domain models — Pydantic types and run records for provisioning.

All models are re-exported here for convenient access:

    from provision.core.models import ProvisioningProfile, ProvisioningStep, RunReport
"""

from provision.core.models.command import CommandResult
from provision.core.models.infra import InfraPlan, InstanceRecord
from provision.core.models.package_manager import DETECTION_ORDER, PackageManagerKind
from provision.core.models.profile import (
    AppSpec,
    ArtifactSpec,
    CommandSpec,
    ConfigEdit,
    FileCopy,
    ProvisioningProfile,
    SchemaSpec,
    UnitRef,
)
from provision.core.models.step import (
    ProvisioningStep,
    RunReport,
    RunStatus,
    StepReceipt,
    StepStatus,
)
from provision.core.models.unit import ServiceUnitSpec

__all__ = [
    # profile.py
    "AppSpec",
    "ArtifactSpec",
    # command.py
    "CommandResult",
    "CommandSpec",
    "ConfigEdit",
    # package_manager.py
    "DETECTION_ORDER",
    "FileCopy",
    # infra.py
    "InfraPlan",
    "InstanceRecord",
    "PackageManagerKind",
    "ProvisioningProfile",
    # step.py
    "ProvisioningStep",
    "RunReport",
    "RunStatus",
    "SchemaSpec",
    # unit.py
    "ServiceUnitSpec",
    "StepReceipt",
    "StepStatus",
    "UnitRef",
]
