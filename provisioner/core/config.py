from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from provisioner.core.exceptions import (
    ConfigurationMissingParameterError,
    ConfigurationBadFingerprintError,
    ConfigurationWrongDatabaseTypeError,
    ConfigurationWrongLicenseTypeError,
    DataPathNotFoundError,
    DataPathNotDirectoryError,
)
from provisioner.models.database import DatabaseType, LicenseType


class Settings(BaseSettings):
    """Process settings with environment variable support."""

    PROJECT_NAME: str = "Autonomous Database Provisioner"
    VERSION: str = "2.0.1"

    # Local files
    CONFIG_FILENAME: str = "dragon.config"
    CHECKPOINT_FILENAME: str = "local_dragon.config.json"
    WALLET_DIRECTORY: Path = Path(".")

    # Defaults applied when the command line omits them
    DEFAULT_DATABASE_NAME: str = "DRAGON"
    DEFAULT_PROFILE: str = "DEFAULT"
    DEFAULT_DATABASE_USER: str = "dragon"

    # Work request polling
    CREATE_POLL_INTERVAL_SECONDS: float = Field(
        default=0.5, description="Delay between two ticks while creating a database"
    )
    DELETE_POLL_INTERVAL_SECONDS: float = Field(
        default=1.0, description="Delay between two ticks while terminating a database"
    )

    # Lifecycle state waiters (second polling phase)
    LIFECYCLE_WAIT_MAX_SECONDS: int = 1200
    LIFECYCLE_WAIT_INTERVAL_SECONDS: int = 5

    # REST-enabled SQL / SODA
    REST_TIMEOUT_SECONDS: float = 120.0

    # Object storage uploads
    UPLOAD_MAX_WORKERS: int = Field(
        default=4, description="Files uploaded concurrently for one collection"
    )
    UPLOAD_PARALLEL_PART_COUNT: int = Field(
        default=3, description="Parts uploaded concurrently for one multipart file"
    )

    # Logging Configuration
    LOG_LEVEL: str = "WARNING"
    LOG_FORMAT: str = "text"  # json or text
    DEBUG: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def checkpoint_path(self) -> Path:
        return Path(self.CHECKPOINT_FILENAME)


# OCI profile keys
CONFIG_USER = "user"
CONFIG_KEY_FILE = "key_file"
CONFIG_FINGERPRINT = "fingerprint"
CONFIG_TENANCY_ID = "tenancy"
CONFIG_REGION = "region"
CONFIG_COMPARTMENT_ID = "compartment_id"
CONFIG_AUTH_TOKEN = "auth_token"
CONFIG_DATABASE_PASSWORD = "database_password"
CONFIG_DATABASE_TYPE = "database_type"
CONFIG_DATABASE_USER_NAME = "database_user_name"
CONFIG_DATABASE_LICENSE_TYPE = "database_license_type"
CONFIG_COLLECTIONS = "database_collections"
CONFIG_DATA_PATH = "data_path"

# Checked in this order so the first missing key is reported
REQUIRED_KEYS = [
    CONFIG_REGION,
    CONFIG_KEY_FILE,
    CONFIG_TENANCY_ID,
    CONFIG_COMPARTMENT_ID,
    CONFIG_DATABASE_PASSWORD,
    CONFIG_USER,
    CONFIG_AUTH_TOKEN,
    CONFIG_FINGERPRINT,
]

FINGERPRINT_LENGTH = 47


class ProvisioningConfig(BaseModel):
    """Validated view over one profile of the OCI configuration file."""

    user: str
    key_file: str
    fingerprint: str
    tenancy: str
    region: str
    compartment_id: str
    auth_token: str
    database_password: str

    database_user_name: str = "dragon"
    database_type: DatabaseType = DatabaseType.ALWAYS_FREE_ATP
    license_type: LicenseType = LicenseType.LICENSE_INCLUDED
    collections: List[str] = Field(default_factory=list)
    data_path: Path = Path(".")

    # The raw key/value map, handed to the OCI SDK clients untouched
    oci_config: Dict[str, Any] = Field(default_factory=dict, repr=False)

    @field_validator("region")
    @classmethod
    def normalize_region(cls, v: str) -> str:
        """Accept both eu-frankfurt-1 and EU_FRANKFURT_1 spellings."""
        return v.strip().lower().replace("_", "-")

    @property
    def is_free_tier(self) -> bool:
        return self.database_type == DatabaseType.ALWAYS_FREE_ATP

    @property
    def has_collections(self) -> bool:
        return bool(self.collections)

    @classmethod
    def from_mapping(
        cls,
        values: Mapping[str, Any],
        load_requested: bool = False,
        default_user_name: Optional[str] = None,
    ) -> "ProvisioningConfig":
        """
        Build a configuration from the key/value map of an OCI profile.

        Args:
            values: Key/value pairs of the selected profile
            load_requested: Whether data loading was requested; the data path
                is only checked in that case
            default_user_name: Database user name used when the profile has none

        Returns:
            Validated ProvisioningConfig

        Raises:
            ConfigurationError subclasses for missing or invalid values
        """
        for key in REQUIRED_KEYS:
            if not values.get(key):
                raise ConfigurationMissingParameterError(key)

        fingerprint = values[CONFIG_FINGERPRINT]
        if len(fingerprint) != FINGERPRINT_LENGTH:
            raise ConfigurationBadFingerprintError(CONFIG_FINGERPRINT, fingerprint)

        license_type = LicenseType.LICENSE_INCLUDED
        raw_license = values.get(CONFIG_DATABASE_LICENSE_TYPE)
        if raw_license:
            if raw_license.strip().lower() != "byol":
                raise ConfigurationWrongLicenseTypeError(raw_license)
            license_type = LicenseType.BYOL

        database_type = DatabaseType.ALWAYS_FREE_ATP
        raw_type = values.get(CONFIG_DATABASE_TYPE)
        if raw_type:
            database_type = DatabaseType.from_config_value(raw_type)
            if database_type is None:
                raise ConfigurationWrongDatabaseTypeError(raw_type)

        data_path = Path(".")
        raw_data_path = values.get(CONFIG_DATA_PATH)
        if load_requested and raw_data_path:
            candidate = Path(raw_data_path)
            if not candidate.exists():
                raise DataPathNotFoundError(raw_data_path)
            if not candidate.is_dir():
                raise DataPathNotDirectoryError(raw_data_path)
            data_path = candidate

        return cls(
            user=values[CONFIG_USER],
            key_file=values[CONFIG_KEY_FILE],
            fingerprint=fingerprint,
            tenancy=values[CONFIG_TENANCY_ID],
            region=values[CONFIG_REGION],
            compartment_id=values[CONFIG_COMPARTMENT_ID],
            auth_token=values[CONFIG_AUTH_TOKEN],
            database_password=values[CONFIG_DATABASE_PASSWORD],
            database_user_name=(
                values.get(CONFIG_DATABASE_USER_NAME)
                or default_user_name
                or settings.DEFAULT_DATABASE_USER
            ),
            database_type=database_type,
            license_type=license_type,
            collections=parse_collection_names(values.get(CONFIG_COLLECTIONS)),
            data_path=data_path,
            oci_config=dict(values),
        )


def parse_collection_names(raw: Optional[str]) -> List[str]:
    """Parse a comma separated list of collection names, dropping blanks."""
    if not raw:
        return []
    return [name.strip() for name in raw.split(",") if name.strip()]


# Global settings instance
settings = Settings()
