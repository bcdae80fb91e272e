from .checkpoint import LocalCheckpoint
from .database import (
    DatabaseCreationRequest,
    DatabaseSummary,
    DatabaseType,
    LicenseType,
    LifecycleState,
    Operation,
    ProvisionedDatabase,
    Workload,
    WorkRequestStatus,
)

__all__ = [
    "LocalCheckpoint",
    "DatabaseCreationRequest",
    "DatabaseSummary",
    "DatabaseType",
    "LicenseType",
    "LifecycleState",
    "Operation",
    "ProvisionedDatabase",
    "Workload",
    "WorkRequestStatus",
]
