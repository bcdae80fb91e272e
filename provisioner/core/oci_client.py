"""
Thin wrapper over the OCI SDK clients used by the provisioner.

Only the calls the orchestrators need are exposed, taking and returning
plain values or the models from provisioner.models so the services can be
exercised against a mock.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import oci

from provisioner.core.config import settings
from provisioner.core.exceptions import CloudAuthenticationError
from provisioner.core.logging import get_service_logger
from provisioner.models.database import (
    DatabaseCreationRequest,
    DatabaseSummary,
    LifecycleState,
    ProvisionedDatabase,
)

logger = get_service_logger("oci_client")

WORK_REQUEST_HEADER = "opc-work-request-id"
WALLET_CHUNK_SIZE = 1024 * 1024


class CloudClients:
    """Lazily created OCI service clients sharing one configuration."""

    def __init__(self, oci_config: Dict[str, Any]):
        self.logger = logger
        self._config = oci_config
        self._database: Optional[oci.database.DatabaseClient] = None
        self._work_requests: Optional[oci.work_requests.WorkRequestClient] = None
        self._object_storage: Optional[oci.object_storage.ObjectStorageClient] = None
        self._identity: Optional[oci.identity.IdentityClient] = None
        self._upload_manager: Optional[oci.object_storage.UploadManager] = None

    def _create(self, client_class):
        try:
            return client_class(self._config)
        except (
            oci.exceptions.InvalidConfig,
            oci.exceptions.InvalidPrivateKey,
            oci.exceptions.MissingPrivateKeyPassphrase,
        ) as e:
            self.logger.error(
                "OCI client creation failed",
                client=client_class.__name__,
                error=str(e),
            )
            raise CloudAuthenticationError(self._config.get("key_file"), str(e)) from e

    @property
    def database(self) -> oci.database.DatabaseClient:
        if self._database is None:
            self._database = self._create(oci.database.DatabaseClient)
        return self._database

    @property
    def work_requests(self) -> oci.work_requests.WorkRequestClient:
        if self._work_requests is None:
            self._work_requests = self._create(oci.work_requests.WorkRequestClient)
        return self._work_requests

    @property
    def object_storage(self) -> oci.object_storage.ObjectStorageClient:
        if self._object_storage is None:
            self._object_storage = self._create(oci.object_storage.ObjectStorageClient)
        return self._object_storage

    @property
    def identity(self) -> oci.identity.IdentityClient:
        if self._identity is None:
            self._identity = self._create(oci.identity.IdentityClient)
        return self._identity

    # -------------------------------------------------------------------------
    # Databases
    # -------------------------------------------------------------------------

    def list_databases(self, compartment_id: str) -> List[DatabaseSummary]:
        """List every Autonomous Database of the compartment, all pages."""
        response = oci.pagination.list_call_get_all_results(
            self.database.list_autonomous_databases, compartment_id=compartment_id
        )
        return [DatabaseSummary.from_sdk(item) for item in response.data]

    def create_database(
        self, request: DatabaseCreationRequest
    ) -> Tuple[ProvisionedDatabase, str]:
        """
        Submit a database creation.

        Returns:
            Tuple of (database as accepted, work request id)

        Raises:
            oci.exceptions.ServiceError when the provider rejects the request
        """
        details = oci.database.models.CreateAutonomousDatabaseDetails(
            compartment_id=request.compartment_id,
            db_name=request.db_name,
            display_name=request.display_name,
            admin_password=request.admin_password,
            db_workload=request.db_workload.value,
            license_model=request.license_model.value,
            is_free_tier=request.is_free_tier,
            cpu_core_count=request.cpu_core_count,
            data_storage_size_in_tbs=request.data_storage_size_in_tbs,
            is_auto_scaling_enabled=request.is_auto_scaling_enabled,
            is_preview_version_with_service_terms_accepted=(
                request.is_preview_version_with_service_terms_accepted
            ),
        )
        response = self.database.create_autonomous_database(details)
        return (
            ProvisionedDatabase.from_sdk(response.data),
            response.headers.get(WORK_REQUEST_HEADER),
        )

    def delete_database(self, database_id: str) -> str:
        """Submit a database termination and return its work request id."""
        response = self.database.delete_autonomous_database(database_id)
        return response.headers.get(WORK_REQUEST_HEADER)

    def wait_for_database_state(
        self, database_id: str, state: LifecycleState
    ) -> Optional[ProvisionedDatabase]:
        """
        Block until the database reaches the given lifecycle state.

        Returns None when waiting for TERMINATED and the database is gone.
        """
        response = oci.wait_until(
            self.database,
            self.database.get_autonomous_database(database_id),
            "lifecycle_state",
            state.value,
            max_wait_seconds=settings.LIFECYCLE_WAIT_MAX_SECONDS,
            max_interval_seconds=settings.LIFECYCLE_WAIT_INTERVAL_SECONDS,
            succeed_on_not_found=state == LifecycleState.TERMINATED,
        )
        data = getattr(response, "data", None)
        if data is None or not hasattr(data, "connection_urls"):
            return None
        return ProvisionedDatabase.from_sdk(data)

    def download_wallet(self, database_id: str, password: str, destination: Path) -> Path:
        """Stream a single-instance wallet archive to destination, overwriting it."""
        details = oci.database.models.GenerateAutonomousDatabaseWalletDetails(
            password=password, generate_type="SINGLE"
        )
        response = self.database.generate_autonomous_database_wallet(database_id, details)
        with open(destination, "wb") as f:
            for chunk in response.data.raw.stream(WALLET_CHUNK_SIZE, decode_content=False):
                f.write(chunk)
        return destination

    # -------------------------------------------------------------------------
    # Work requests
    # -------------------------------------------------------------------------

    def get_work_request(self, work_request_id: str) -> Tuple[str, float]:
        """Return (status, percent complete) of a work request."""
        work_request = self.work_requests.get_work_request(work_request_id).data
        return work_request.status, float(work_request.percent_complete or 0.0)

    def list_work_request_errors(self, work_request_id: str) -> List[str]:
        """Return the ordered error messages attached to a work request."""
        response = oci.pagination.list_call_get_all_results(
            self.work_requests.list_work_request_errors, work_request_id
        )
        return [error.message for error in response.data]

    # -------------------------------------------------------------------------
    # Object storage and identity
    # -------------------------------------------------------------------------

    def get_namespace(self) -> str:
        return self.object_storage.get_namespace().data

    def list_bucket_page(
        self, namespace: str, compartment_id: str, page: Optional[str] = None
    ) -> Tuple[List[str], Optional[str]]:
        """Return one page of bucket names and the next page token."""
        kwargs = {"page": page} if page else {}
        response = self.object_storage.list_buckets(namespace, compartment_id, **kwargs)
        return [bucket.name for bucket in response.data], response.next_page

    def create_bucket(
        self, namespace: str, compartment_id: str, name: str, events_enabled: bool
    ) -> Optional[str]:
        """Create a bucket and return the name reported back by the service."""
        details = oci.object_storage.models.CreateBucketDetails(
            name=name,
            compartment_id=compartment_id,
            object_events_enabled=events_enabled,
        )
        bucket = self.object_storage.create_bucket(namespace, details).data
        return bucket.name if bucket is not None else None

    def get_user_email(self, user_id: str) -> Optional[str]:
        return self.identity.get_user(user_id).data.email

    def upload_file(
        self, namespace: str, bucket: str, object_name: str, file_path: Path
    ) -> None:
        """Upload a local JSON file, splitting large files into parallel parts."""
        if self._upload_manager is None:
            self._upload_manager = oci.object_storage.UploadManager(
                self.object_storage,
                allow_multipart_uploads=True,
                allow_parallel_uploads=True,
                parallel_process_count=settings.UPLOAD_PARALLEL_PART_COUNT,
            )
        self._upload_manager.upload_file(
            namespace,
            bucket,
            object_name,
            str(file_path),
            content_type="application/json",
        )
        self.logger.debug(
            "Uploaded file to object storage",
            bucket=bucket,
            object_name=object_name,
        )
