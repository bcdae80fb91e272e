from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class DatabaseType(str, Enum):
    """Kind of Autonomous Database requested in the configuration file."""

    ALWAYS_FREE_ATP = "always_free_atp"
    AJD = "ajd"
    ATP = "atp"
    ADW = "adw"

    @classmethod
    def from_config_value(cls, value: str) -> Optional["DatabaseType"]:
        """Map the database_type profile value, None when unknown."""
        normalized = value.strip().lower()
        for member in (cls.AJD, cls.ATP, cls.ADW):
            if member.value == normalized:
                return member
        return None


class LicenseType(str, Enum):
    LICENSE_INCLUDED = "LICENSE_INCLUDED"
    BYOL = "BRING_YOUR_OWN_LICENSE"


class Workload(str, Enum):
    OLTP = "OLTP"
    AJD = "AJD"
    DW = "DW"


class LifecycleState(str, Enum):
    """Autonomous Database lifecycle states as reported by the provider."""

    PROVISIONING = "PROVISIONING"
    AVAILABLE = "AVAILABLE"
    STOPPING = "STOPPING"
    STOPPED = "STOPPED"
    STARTING = "STARTING"
    TERMINATING = "TERMINATING"
    TERMINATED = "TERMINATED"
    UNAVAILABLE = "UNAVAILABLE"
    RESTORE_IN_PROGRESS = "RESTORE_IN_PROGRESS"
    RESTORE_FAILED = "RESTORE_FAILED"
    BACKUP_IN_PROGRESS = "BACKUP_IN_PROGRESS"
    SCALE_IN_PROGRESS = "SCALE_IN_PROGRESS"
    AVAILABLE_NEEDS_ATTENTION = "AVAILABLE_NEEDS_ATTENTION"
    UPDATING = "UPDATING"
    MAINTENANCE_IN_PROGRESS = "MAINTENANCE_IN_PROGRESS"
    RESTARTING = "RESTARTING"
    RECREATING = "RECREATING"
    ROLE_CHANGE_IN_PROGRESS = "ROLE_CHANGE_IN_PROGRESS"
    UPGRADING = "UPGRADING"
    INACCESSIBLE = "INACCESSIBLE"
    STANDBY = "STANDBY"
    FAILED = "FAILED"


class WorkRequestStatus(str, Enum):
    """The only statuses a database work request is expected to report."""

    ACCEPTED = "ACCEPTED"
    IN_PROGRESS = "IN_PROGRESS"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class Operation(str, Enum):
    CREATE_DATABASE = "create"
    DESTROY_DATABASE = "destroy"
    LOAD_DATA = "load"


class DatabaseSummary(BaseModel):
    """One entry of the live database listing."""

    model_config = ConfigDict(frozen=True)

    id: str
    db_name: str
    lifecycle_state: str
    is_free_tier: bool = False

    @property
    def is_terminated(self) -> bool:
        return self.lifecycle_state == LifecycleState.TERMINATED.value

    @classmethod
    def from_sdk(cls, summary: Any) -> "DatabaseSummary":
        """Build from an oci.database.models.AutonomousDatabaseSummary."""
        return cls(
            id=summary.id,
            db_name=summary.db_name,
            lifecycle_state=summary.lifecycle_state,
            is_free_tier=bool(summary.is_free_tier),
        )


class ProvisionedDatabase(BaseModel):
    """A database as observed after creation."""

    id: str
    db_name: str
    display_name: Optional[str] = None
    lifecycle_state: str
    is_free_tier: bool = False
    db_workload: Optional[str] = None
    db_version: Optional[str] = None
    service_console_url: Optional[str] = None
    sql_dev_web_url: Optional[str] = None
    apex_url: Optional[str] = None
    ml_user_management_url: Optional[str] = None

    @classmethod
    def from_sdk(cls, database: Any) -> "ProvisionedDatabase":
        """Build from an oci.database.models.AutonomousDatabase."""
        urls = database.connection_urls
        return cls(
            id=database.id,
            db_name=database.db_name,
            display_name=database.display_name,
            lifecycle_state=database.lifecycle_state,
            is_free_tier=bool(database.is_free_tier),
            db_workload=database.db_workload,
            db_version=database.db_version,
            service_console_url=database.service_console_url,
            sql_dev_web_url=getattr(urls, "sql_dev_web_url", None),
            apex_url=getattr(urls, "apex_url", None),
            ml_user_management_url=getattr(urls, "machine_learning_user_management_url", None),
        )


class DatabaseCreationRequest(BaseModel):
    """Parameters of a create-autonomous-database call."""

    compartment_id: str
    db_name: str
    display_name: str
    admin_password: str = Field(..., repr=False)
    db_workload: Workload
    license_model: LicenseType
    is_free_tier: bool
    cpu_core_count: int = 1
    data_storage_size_in_tbs: int = 1
    is_auto_scaling_enabled: bool = False
    is_preview_version_with_service_terms_accepted: bool = False
