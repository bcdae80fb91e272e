from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    """Failure families an operator can act upon."""

    SETUP = "setup"
    PRECONDITION = "precondition"
    REMOTE_CONFLICT = "remote_conflict"
    ASYNC_FAILURE = "async_failure"
    AVAILABILITY_WAIT = "availability_wait"
    ARTIFACT = "artifact"
    PERSISTENCE = "persistence"
    CONFIGURATION = "configuration"
    DATA_LOAD = "data_load"


class ProvisionerError(Exception):
    """Base exception for the provisioner."""

    kind: ErrorKind = ErrorKind.SETUP

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code or "INTERNAL_ERROR"
        self.details = details or {}
        super().__init__(self.message)


# =============================================================================
# Setup: platform, configuration file, OCI authentication
# =============================================================================


class UnsupportedPlatformError(ProvisionerError):
    """Operating system is not supported."""

    def __init__(self, platform_name: str):
        super().__init__(
            f"Unsupported platform: {platform_name}",
            "UNSUPPORTED_PLATFORM",
            {"platform": platform_name},
        )
        self.platform_name = platform_name


class ConfigurationError(ProvisionerError):
    """Base class for configuration file errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFIGURATION_ERROR", details)


class ConfigurationFileNotFoundError(ConfigurationError):
    def __init__(self, filename: str):
        super().__init__(
            f"Configuration file {filename} not found", {"filename": filename}
        )
        self.filename = filename


class ConfigurationProfileNotFoundError(ConfigurationError):
    def __init__(self, profile: str):
        super().__init__(f"Profile {profile} not found", {"profile": profile})
        self.profile = profile


class ConfigurationMissingParameterError(ConfigurationError):
    def __init__(self, parameter: str):
        super().__init__(
            f"Configuration misses the parameter {parameter}",
            {"parameter": parameter},
        )
        self.parameter = parameter


class ConfigurationBadFingerprintError(ConfigurationError):
    def __init__(self, parameter: str, value: str):
        super().__init__(
            f"Parameter {parameter} has a wrong format (expected 47 characters, got {len(value)})",
            {"parameter": parameter},
        )
        self.parameter = parameter
        self.value = value


class ConfigurationWrongDatabaseTypeError(ConfigurationError):
    def __init__(self, value: str):
        super().__init__(
            f"Wrong database type {value!r} (expected ajd, atp or adw)",
            {"value": value},
        )
        self.value = value


class ConfigurationWrongLicenseTypeError(ConfigurationError):
    def __init__(self, value: str):
        super().__init__(
            f"Wrong database license type {value!r} (expected byol)", {"value": value}
        )
        self.value = value


class DataPathNotFoundError(ConfigurationError):
    def __init__(self, path: str):
        super().__init__(f"Data path {path} does not exist", {"path": path})
        self.path = path


class DataPathNotDirectoryError(ConfigurationError):
    def __init__(self, path: str):
        super().__init__(f"Data path {path} is not a directory", {"path": path})
        self.path = path


class CheckpointLoadError(ConfigurationError):
    """Local checkpoint file exists but cannot be parsed."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            f"Unable to load local configuration {path}: {reason}",
            {"path": path, "reason": reason},
        )
        self.path = path


class CloudAuthenticationError(ProvisionerError):
    """OCI API signing material could not be used."""

    def __init__(self, key_file: Optional[str], reason: str):
        super().__init__(
            f"OCI API authentication failed: {reason}",
            "CLOUD_AUTHENTICATION_ERROR",
            {"key_file": key_file},
        )
        self.key_file = key_file


# =============================================================================
# Precondition / remote conflict
# =============================================================================


class QuotaExceededError(ProvisionerError):
    """Database count limit reached, detected locally or by the provider."""

    def __init__(
        self,
        cap: Optional[int],
        detected_remotely: bool = False,
        remote_message: Optional[str] = None,
    ):
        if cap is not None:
            message = f"Always Free database limit of {cap} reached"
        else:
            message = f"Autonomous Database limit reached: {remote_message}"
        super().__init__(
            message,
            "QUOTA_EXCEEDED",
            {"cap": cap, "detected_remotely": detected_remotely},
        )
        self.cap = cap
        self.detected_remotely = detected_remotely
        self.remote_message = remote_message

    @property
    def kind(self) -> ErrorKind:
        return ErrorKind.REMOTE_CONFLICT if self.detected_remotely else ErrorKind.PRECONDITION


class DuplicateNameError(ProvisionerError):
    """A non-terminated database already uses the requested name."""

    def __init__(self, name: str, detected_remotely: bool = False):
        super().__init__(
            f"Database {name} already exists",
            "DUPLICATE_NAME",
            {"name": name, "detected_remotely": detected_remotely},
        )
        self.name = name
        self.detected_remotely = detected_remotely

    @property
    def kind(self) -> ErrorKind:
        return ErrorKind.REMOTE_CONFLICT if self.detected_remotely else ErrorKind.PRECONDITION


class CreationRejectedError(ProvisionerError):
    """Creation request refused for a reason other than quota or name."""

    kind = ErrorKind.REMOTE_CONFLICT

    def __init__(self, name: str, status: Optional[int], code: Optional[str], reason: str):
        super().__init__(
            f"Creation of database {name} rejected: {reason}",
            "CREATION_REJECTED",
            {"name": name, "status": status, "code": code},
        )
        self.name = name
        self.status = status
        self.code = code


class CloudRequestError(ProvisionerError):
    """OCI call rejected in a step that has no narrower error for it."""

    def __init__(
        self,
        operation: str,
        status: Optional[int],
        code: Optional[str],
        reason: str,
        kind: ErrorKind = ErrorKind.REMOTE_CONFLICT,
    ):
        super().__init__(
            f"OCI request to {operation} failed ({status} {code}): {reason}",
            "CLOUD_REQUEST_FAILED",
            {"operation": operation, "status": status, "code": code},
        )
        self.operation = operation
        self.status = status
        self.code = code
        self.kind = kind


# =============================================================================
# Asynchronous operations
# =============================================================================


class WorkRequestFailedError(ProvisionerError):
    """Work request reached the FAILED state."""

    kind = ErrorKind.ASYNC_FAILURE

    def __init__(self, operation: str, name: str, errors: List[str]):
        self.operation = operation
        self.name = name
        self.errors = list(errors)
        super().__init__(
            f"Database {operation} of {name} failed:\n{self.error_text}",
            "WORK_REQUEST_FAILED",
            {"operation": operation, "name": name, "errors": self.errors},
        )

    @property
    def error_text(self) -> str:
        return "\n".join(self.errors)


class UnexpectedWorkRequestStatusError(ProvisionerError):
    """Work request reported a status outside the four expected ones."""

    kind = ErrorKind.ASYNC_FAILURE

    def __init__(self, work_request_id: str, status: Any):
        super().__init__(
            f"Work request {work_request_id} reported unexpected status {status!r}",
            "UNEXPECTED_WORK_REQUEST_STATUS",
            {"work_request_id": work_request_id, "status": str(status)},
        )
        self.work_request_id = work_request_id
        self.status = status


class AvailabilityWaitError(ProvisionerError):
    """Database never reached the expected lifecycle state."""

    kind = ErrorKind.AVAILABILITY_WAIT

    def __init__(self, database_id: str, expected_state: str, reason: str):
        super().__init__(
            f"Waiting for database {database_id} to become {expected_state} failed: {reason}",
            "AVAILABILITY_WAIT_FAILED",
            {"database_id": database_id, "expected_state": expected_state},
        )
        self.database_id = database_id
        self.expected_state = expected_state


# =============================================================================
# Local artifacts
# =============================================================================


class WalletSaveError(ProvisionerError):
    kind = ErrorKind.ARTIFACT

    def __init__(self, path: str, reason: str):
        super().__init__(
            f"Unable to save database wallet to {path}: {reason}",
            "WALLET_SAVE_FAILED",
            {"path": path},
        )
        self.path = path


class WalletCorruptedError(ProvisionerError):
    kind = ErrorKind.ARTIFACT

    def __init__(self, path: str):
        super().__init__(
            f"Database wallet {path} is corrupted", "WALLET_CORRUPTED", {"path": path}
        )
        self.path = path


class CheckpointNotSavedError(ProvisionerError):
    kind = ErrorKind.PERSISTENCE

    def __init__(self, path: str, reason: str):
        super().__init__(
            f"Unable to save local configuration {path}: {reason}",
            "CHECKPOINT_NOT_SAVED",
            {"path": path},
        )
        self.path = path


# =============================================================================
# Database and storage configuration
# =============================================================================


class RestServiceError(ProvisionerError):
    """REST-enabled SQL or SODA call failed."""

    kind = ErrorKind.CONFIGURATION

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(
            message, "REST_SERVICE_ERROR", {"status_code": status_code, "url": url}
        )
        self.status_code = status_code
        self.url = url


class ScriptRenderError(ProvisionerError):
    """SQL script parameters are missing or unsafe."""

    kind = ErrorKind.CONFIGURATION

    def __init__(self, script: str, reason: str):
        super().__init__(
            f"Cannot render script {script}: {reason}",
            "SCRIPT_RENDER_ERROR",
            {"script": script},
        )
        self.script = script


class SchemaCreationError(ProvisionerError):
    kind = ErrorKind.CONFIGURATION

    def __init__(self, user_name: str, reason: str):
        super().__init__(
            f"Creation of database user {user_name} failed: {reason}",
            "SCHEMA_CREATION_FAILED",
            {"user_name": user_name},
        )
        self.user_name = user_name


class CollectionCreationError(ProvisionerError):
    kind = ErrorKind.CONFIGURATION

    def __init__(self, collection: str, reason: str):
        super().__init__(
            f"Creation of collection {collection} failed: {reason}",
            "COLLECTION_CREATION_FAILED",
            {"collection": collection},
        )
        self.collection = collection


class BucketCreationError(ProvisionerError):
    kind = ErrorKind.CONFIGURATION

    def __init__(self, name: str):
        super().__init__(
            f"Creation of bucket {name} failed", "BUCKET_CREATION_FAILED", {"name": name}
        )
        self.name = name


class StorageConfigurationError(ProvisionerError):
    kind = ErrorKind.CONFIGURATION

    def __init__(self, reason: str):
        super().__init__(
            f"Object storage configuration failed: {reason}",
            "STORAGE_CONFIGURATION_FAILED",
        )


# =============================================================================
# Data loading
# =============================================================================


class CollectionNotLoadedError(ProvisionerError):
    kind = ErrorKind.DATA_LOAD

    def __init__(self, collection: str, reason: str):
        super().__init__(
            f"Collection {collection} not loaded: {reason}",
            "COLLECTION_NOT_LOADED",
            {"collection": collection},
        )
        self.collection = collection
