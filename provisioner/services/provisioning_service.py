"""
Creation of an Autonomous Database and everything it needs to be usable.

Steps run strictly in order and any failure aborts the run:

1. validate the request against the live database listing
2. submit the creation
3. poll the work request, then wait for the AVAILABLE lifecycle state
4. download and check the wallet
5. save the local checkpoint
6. create the working schema, then the optional SODA collections
7. configure Object Storage buckets and load credentials
8. load data when requested

The checkpoint is saved before the database is configured so a failed run
can still be destroyed by name.
"""

import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional

import oci

from provisioner.core.config import ProvisioningConfig, settings
from provisioner.core.exceptions import (
    AvailabilityWaitError,
    CloudRequestError,
    CollectionCreationError,
    CreationRejectedError,
    DuplicateNameError,
    ErrorKind,
    ProvisionerError,
    QuotaExceededError,
    RestServiceError,
    SchemaCreationError,
    ScriptRenderError,
    StorageConfigurationError,
    WalletCorruptedError,
    WalletSaveError,
    WorkRequestFailedError,
)
from provisioner.core.logging import get_service_logger
from provisioner.core.oci_client import CloudClients
from provisioner.core.progress import ProgressReporter, Section, reported_step
from provisioner.core.rest_client import OrdsRestClient, user_sql_dev_web_url
from provisioner.models.checkpoint import LocalCheckpoint
from provisioner.models.database import (
    DatabaseCreationRequest,
    DatabaseType,
    LicenseType,
    LifecycleState,
    Operation,
    ProvisionedDatabase,
    Workload,
)
from provisioner.services import sql_scripts
from provisioner.services.bucket_provisioner import (
    PRIMARY_BUCKET_NAME,
    BucketProvisioner,
    backup_bucket_name,
)
from provisioner.services.checkpoint_store import CheckpointStore
from provisioner.services.collection_loader import BOOKKEEPING_COLLECTION, CollectionLoader
from provisioner.services.precondition_validator import FREE_TIER_DATABASE_LIMIT, validate
from provisioner.services.work_request_poller import (
    CREATE_POLICY,
    WorkRequestPoller,
    format_duration,
)

logger = get_service_logger("provisioning")

ADMIN_USER = "ADMIN"
FREE_TIER_LIMIT_MESSAGE = "Tenancy has reached maximum limit for Free Tier Autonomous Database"

RestClientFactory = Callable[[str, str, str], OrdsRestClient]
PollerFactory = Callable[[Section], WorkRequestPoller]


@dataclass
class ProvisioningResult:
    database: ProvisionedDatabase
    checkpoint: LocalCheckpoint
    wallet_path: Path
    sign_in_url: str
    login: str
    loaded_collections: Optional[Dict[str, int]] = None


def build_creation_request(config: ProvisioningConfig, db_name: str) -> DatabaseCreationRequest:
    """Derive workload and license from the requested database type."""
    if config.database_type == DatabaseType.ALWAYS_FREE_ATP:
        workload, license_model = Workload.OLTP, LicenseType.LICENSE_INCLUDED
    elif config.database_type == DatabaseType.AJD:
        workload, license_model = Workload.AJD, LicenseType.LICENSE_INCLUDED
    elif config.database_type == DatabaseType.ADW:
        workload, license_model = Workload.DW, config.license_type
    else:
        workload, license_model = Workload.OLTP, config.license_type

    return DatabaseCreationRequest(
        compartment_id=config.compartment_id,
        db_name=db_name,
        display_name=f"{db_name} Database",
        admin_password=config.database_password,
        db_workload=workload,
        license_model=license_model,
        is_free_tier=config.is_free_tier,
    )


def map_creation_error(error: oci.exceptions.ServiceError, db_name: str) -> ProvisionerError:
    """Translate a rejected creation call into a typed error."""
    message = error.message or ""
    if error.status == 400 and error.code == "LimitExceeded":
        if message.startswith(FREE_TIER_LIMIT_MESSAGE):
            return QuotaExceededError(
                FREE_TIER_DATABASE_LIMIT, detected_remotely=True, remote_message=message
            )
        return QuotaExceededError(None, detected_remotely=True, remote_message=message)

    if (
        error.status == 400
        and error.code == "InvalidParameter"
        and db_name in message
        and "already exists" in message
    ):
        return DuplicateNameError(db_name, detected_remotely=True)

    return CreationRejectedError(db_name, error.status, error.code, message)


def build_checkpoint(
    database: ProvisionedDatabase,
    rest: OrdsRestClient,
    db_name: str,
    user_name: str,
    password: str,
) -> LocalCheckpoint:
    admin_url = database.sql_dev_web_url or ""
    return LocalCheckpoint(
        database_service_url=database.service_console_url,
        sql_dev_web_admin=admin_url,
        sql_dev_web=user_sql_dev_web_url(admin_url, user_name),
        apex_url=database.apex_url,
        oml_url=database.ml_user_management_url,
        sql_api=rest.url_sql_service,
        soda_api=rest.url_soda_service,
        version=database.db_version,
        db_name=db_name,
        db_user_name=user_name,
        db_user_password=password,
    )


class DatabaseProvisioner:
    """Runs the creation steps for one database."""

    def __init__(
        self,
        config: ProvisioningConfig,
        clients: CloudClients,
        reporter: ProgressReporter,
        checkpoint_store: CheckpointStore,
        db_name: str,
        wallet_directory: Optional[Path] = None,
        rest_client_factory: Optional[RestClientFactory] = None,
        poller_factory: Optional[PollerFactory] = None,
    ):
        self.config = config
        self.clients = clients
        self.reporter = reporter
        self.checkpoint_store = checkpoint_store
        self.db_name = db_name
        self.wallet_directory = Path(wallet_directory or settings.WALLET_DIRECTORY)
        self.rest_client_factory = rest_client_factory or OrdsRestClient
        self.poller_factory = poller_factory or self._default_poller
        self.logger = logger

    def _default_poller(self, section: Section) -> WorkRequestPoller:
        return WorkRequestPoller(self.clients, self.reporter, section, CREATE_POLICY)

    @property
    def user_name(self) -> str:
        return self.config.database_user_name

    def create(self, load: bool = False) -> ProvisioningResult:
        """
        Provision, configure and optionally load the database.

        Args:
            load: Run the collection loader once storage is configured

        Returns:
            ProvisioningResult with the checkpoint, wallet path and sign-in details

        Raises:
            ProvisionerError subclass naming the failed step
        """
        self.logger.info(
            "Creating database",
            db_name=self.db_name,
            database_type=self.config.database_type.value,
            load=load,
        )

        with reported_step(self.reporter, Section.DATABASE_CREATION):
            self._validate()
            database, work_request_id = self._submit()
            database = self._wait_available(database, work_request_id)

        with reported_step(self.reporter, Section.WALLET_DOWNLOAD):
            wallet_path = self._fetch_wallet(database)
            self.reporter.ok(Section.WALLET_DOWNLOAD, wallet_path.name)

        user_rest = self.rest_client_factory(
            database.sql_dev_web_url, self.user_name.upper(), self.config.database_password
        )
        try:
            checkpoint = build_checkpoint(
                database,
                user_rest,
                self.db_name,
                self.user_name,
                self.config.database_password,
            )
            with reported_step(self.reporter, Section.LOCAL_CONFIGURATION):
                self.checkpoint_store.save(checkpoint)
                self.reporter.ok(Section.LOCAL_CONFIGURATION)

            with reported_step(self.reporter, Section.DATABASE_CONFIGURATION):
                self._configure_schema(database)
                if self.config.has_collections:
                    self._configure_collections(user_rest, checkpoint)
                self.reporter.ok(Section.DATABASE_CONFIGURATION)

            with reported_step(self.reporter, Section.OBJECT_STORAGE_CONFIGURATION):
                namespace = self._configure_storage(database, user_rest)
                self.reporter.ok(Section.OBJECT_STORAGE_CONFIGURATION)

            loaded = None
            if load:
                with reported_step(self.reporter, Section.DATA_LOADING):
                    loaded = CollectionLoader(
                        self.clients,
                        user_rest,
                        self.reporter,
                        namespace=namespace,
                        region=self.config.region,
                        db_name=self.db_name,
                        data_path=self.config.data_path,
                    ).load_all(self.config.collections)
                    self.reporter.ok(Section.DATA_LOADING)

            sign_in_url = user_rest.sign_in_url()
        finally:
            user_rest.close()

        self.logger.info("Database ready", db_name=self.db_name, database_id=database.id)
        return ProvisioningResult(
            database=database,
            checkpoint=checkpoint,
            wallet_path=wallet_path,
            sign_in_url=sign_in_url,
            login=self.user_name.lower(),
            loaded_collections=loaded,
        )

    # -------------------------------------------------------------------------
    # Database creation
    # -------------------------------------------------------------------------

    def _validate(self) -> None:
        self.reporter.update(Section.DATABASE_CREATION, "checking existing databases")
        try:
            resources = self.clients.list_databases(self.config.compartment_id)
        except oci.exceptions.ServiceError as e:
            raise CloudRequestError(
                "list databases", e.status, e.code, e.message, kind=ErrorKind.PRECONDITION
            ) from e
        validate(
            resources,
            self.db_name,
            is_free_tier_request=self.config.is_free_tier,
            free_tier_cap=FREE_TIER_DATABASE_LIMIT,
        )

    def _submit(self):
        self.reporter.update(Section.DATABASE_CREATION, "pending")
        request = build_creation_request(self.config, self.db_name)
        try:
            database, work_request_id = self.clients.create_database(request)
        except oci.exceptions.ServiceError as e:
            self.logger.error(
                "Database creation rejected",
                db_name=self.db_name,
                status=e.status,
                code=e.code,
            )
            raise map_creation_error(e, self.db_name) from e

        self.logger.info(
            "Database creation submitted",
            db_name=self.db_name,
            database_id=database.id,
            work_request_id=work_request_id,
        )
        return database, work_request_id

    def _wait_available(
        self, database: ProvisionedDatabase, work_request_id: str
    ) -> ProvisionedDatabase:
        outcome = self.poller_factory(Section.DATABASE_CREATION).poll(work_request_id)
        if not outcome.succeeded:
            raise WorkRequestFailedError(
                Operation.CREATE_DATABASE.value, self.db_name, outcome.errors
            )

        try:
            available = self.clients.wait_for_database_state(
                database.id, LifecycleState.AVAILABLE
            )
        except (oci.exceptions.ServiceError, oci.exceptions.MaximumWaitTimeExceeded) as e:
            raise AvailabilityWaitError(
                database.id, LifecycleState.AVAILABLE.value, str(e)
            ) from e
        if available is None:
            raise AvailabilityWaitError(
                database.id, LifecycleState.AVAILABLE.value, "database disappeared"
            )
        if not available.sql_dev_web_url:
            raise AvailabilityWaitError(
                database.id, LifecycleState.AVAILABLE.value, "no SQL Developer Web URL reported"
            )

        self.reporter.ok(Section.DATABASE_CREATION, format_duration(outcome.elapsed))
        return available

    # -------------------------------------------------------------------------
    # Local artifacts
    # -------------------------------------------------------------------------

    def _fetch_wallet(self, database: ProvisionedDatabase) -> Path:
        self.reporter.update(Section.WALLET_DOWNLOAD, "saving")
        wallet_path = self.wallet_directory / f"{self.db_name.lower()}.zip"
        try:
            self.clients.download_wallet(database.id, self.config.database_password, wallet_path)
        except OSError as e:
            raise WalletSaveError(str(wallet_path.resolve()), str(e)) from e
        except oci.exceptions.ServiceError as e:
            self.logger.error("Wallet generation rejected", status=e.status, code=e.code)
            raise WalletSaveError(
                str(wallet_path.resolve()), f"wallet generation failed: {e.message}"
            ) from e

        if not is_valid_zip(wallet_path):
            self.logger.error("Wallet archive corrupted", path=str(wallet_path))
            raise WalletCorruptedError(str(wallet_path.resolve()))

        self.logger.info("Wallet saved", path=str(wallet_path))
        return wallet_path

    # -------------------------------------------------------------------------
    # Database configuration
    # -------------------------------------------------------------------------

    def _configure_schema(self, database: ProvisionedDatabase) -> None:
        self.reporter.update(Section.DATABASE_CONFIGURATION, f"creating {self.user_name} user")
        try:
            script = sql_scripts.render(
                sql_scripts.CREATE_SCHEMA,
                user_name=self.user_name,
                password=self.config.database_password,
                schema=self.user_name.upper(),
                url_pattern=self.user_name.lower(),
            )
            with self.rest_client_factory(
                database.sql_dev_web_url, ADMIN_USER, self.config.database_password
            ) as admin_rest:
                admin_rest.execute(script)
        except (RestServiceError, ScriptRenderError) as e:
            raise SchemaCreationError(self.user_name, e.message) from e

        self.logger.info("Database user created", user_name=self.user_name)

    def _configure_collections(self, rest: OrdsRestClient, checkpoint: LocalCheckpoint) -> None:
        collection = BOOKKEEPING_COLLECTION
        try:
            self.reporter.update(Section.DATABASE_CONFIGURATION, "creating dragon collections")
            rest.create_collection(collection)
            self.reporter.update(Section.DATABASE_CONFIGURATION, "storing dragon information")
            rest.insert_document(collection, checkpoint.endpoints_document())

            for collection in self.config.collections:
                if collection == BOOKKEEPING_COLLECTION:
                    continue
                self.reporter.update(
                    Section.DATABASE_CONFIGURATION, f"creating collection {collection}"
                )
                rest.create_collection(collection)
        except RestServiceError as e:
            raise CollectionCreationError(collection, e.message) from e

    def _configure_storage(self, database: ProvisionedDatabase, rest: OrdsRestClient) -> str:
        section = Section.OBJECT_STORAGE_CONFIGURATION
        self.reporter.update(section, "checking existing buckets")
        buckets = BucketProvisioner(self.clients, self.config.compartment_id)
        backup_bucket = backup_bucket_name(self.db_name)

        try:
            namespace = self.clients.get_namespace()
            existing = buckets.find_existing(namespace, [PRIMARY_BUCKET_NAME, backup_bucket])
        except oci.exceptions.ServiceError as e:
            raise StorageConfigurationError(f"bucket listing failed: {e.message}") from e

        if PRIMARY_BUCKET_NAME not in existing:
            self.reporter.update(section, "creating dragon bucket")
        buckets.ensure_bucket(namespace, PRIMARY_BUCKET_NAME, True, existing)

        try:
            email = self.clients.get_user_email(self.config.user)
        except oci.exceptions.ServiceError as e:
            raise StorageConfigurationError(f"user lookup failed: {e.message}") from e
        if not email:
            raise StorageConfigurationError(f"user {self.config.user} has no email")

        self.reporter.update(section, "database setup")
        try:
            rest.execute(
                sql_scripts.render(
                    sql_scripts.CREATE_LOAD_CREDENTIAL,
                    credential=sql_scripts.LOAD_CREDENTIAL_NAME,
                    username=email,
                    auth_token=self.config.auth_token,
                )
            )
        except (RestServiceError, ScriptRenderError) as e:
            raise StorageConfigurationError(e.message) from e

        if not self.config.is_free_tier:
            if backup_bucket not in existing:
                self.reporter.update(section, "creating manual backup bucket")
            buckets.ensure_bucket(namespace, backup_bucket, False, existing)

            self.reporter.update(section, "database backup setup")
            try:
                script = sql_scripts.render(
                    sql_scripts.CONFIGURE_BACKUP,
                    default_bucket_url=sql_scripts.swift_namespace_uri(
                        self.config.region, namespace
                    ),
                    credential=sql_scripts.BACKUP_CREDENTIAL_NAME,
                    username=email,
                    auth_token=self.config.auth_token,
                )
                with self.rest_client_factory(
                    database.sql_dev_web_url, ADMIN_USER, self.config.database_password
                ) as admin_rest:
                    admin_rest.execute(script)
            except (RestServiceError, ScriptRenderError) as e:
                raise StorageConfigurationError(e.message) from e

        self.logger.info(
            "Object storage configured",
            namespace=namespace,
            backup=not self.config.is_free_tier,
        )
        return namespace


def is_valid_zip(path: Path) -> bool:
    """True when the archive opens and every member passes its CRC check."""
    try:
        with zipfile.ZipFile(path) as archive:
            return archive.testzip() is None
    except (zipfile.BadZipFile, OSError):
        return False
