"""
Operation dispatch for one invocation.

The local checkpoint bridges invocations: a database can only be created
when no checkpoint exists, while destroy and load only act on the database
the checkpoint was written for. Any other combination is a no-op, reported
on the step line of the skipped operation.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Union

import oci

from provisioner.core.config import ProvisioningConfig
from provisioner.core.exceptions import StorageConfigurationError
from provisioner.core.logging import get_service_logger
from provisioner.core.oci_client import CloudClients
from provisioner.core.progress import ProgressReporter, Section, reported_step
from provisioner.core.rest_client import OrdsRestClient
from provisioner.models.checkpoint import LocalCheckpoint
from provisioner.models.database import Operation
from provisioner.services.checkpoint_store import CheckpointStore
from provisioner.services.collection_loader import CollectionLoader
from provisioner.services.provisioning_service import (
    DatabaseProvisioner,
    ProvisioningResult,
    RestClientFactory,
)
from provisioner.services.teardown_service import DatabaseTeardown, TeardownStatus

logger = get_service_logger("session")


def resolve_operation(
    destroy: bool, load: bool, checkpoint: Optional[LocalCheckpoint]
) -> Operation:
    """
    Pick the operation from the command line flags.

    --destroy wins over --load. --load means LoadData only when a checkpoint
    exists; otherwise the database is created and then loaded.
    """
    if destroy:
        return Operation.DESTROY_DATABASE
    if load and checkpoint is not None:
        return Operation.LOAD_DATA
    return Operation.CREATE_DATABASE


def should_run(
    operation: Operation, checkpoint: Optional[LocalCheckpoint], db_name: str
) -> bool:
    if operation == Operation.CREATE_DATABASE:
        return checkpoint is None
    return checkpoint is not None and checkpoint.db_name == db_name


OPERATION_SECTIONS = {
    Operation.CREATE_DATABASE: Section.DATABASE_CREATION,
    Operation.DESTROY_DATABASE: Section.DATABASE_TERMINATION,
    Operation.LOAD_DATA: Section.DATA_LOADING,
}


def skip_reason(checkpoint: Optional[LocalCheckpoint]) -> str:
    if checkpoint is None:
        return "nothing to do, no local configuration"
    return f"nothing to do, local configuration exists for {checkpoint.db_name}"


@dataclass
class SessionOutcome:
    operation: Operation
    executed: bool
    result: Union[ProvisioningResult, TeardownStatus, Dict[str, int], None] = None


class ProvisioningSession:
    """Runs the requested operation against one database name."""

    def __init__(
        self,
        config: ProvisioningConfig,
        clients: CloudClients,
        reporter: ProgressReporter,
        checkpoint_store: CheckpointStore,
        db_name: str,
        profile: str,
        rest_client_factory: Optional[RestClientFactory] = None,
    ):
        self.config = config
        self.clients = clients
        self.reporter = reporter
        self.checkpoint_store = checkpoint_store
        self.db_name = db_name
        self.profile = profile
        self.rest_client_factory = rest_client_factory or OrdsRestClient
        self.logger = logger

    def run(
        self,
        operation: Operation,
        checkpoint: Optional[LocalCheckpoint],
        load: bool = False,
    ) -> SessionOutcome:
        if not should_run(operation, checkpoint, self.db_name):
            self.logger.info(
                "Operation skipped",
                operation=operation.value,
                db_name=self.db_name,
                checkpoint_db_name=checkpoint.db_name if checkpoint else None,
            )
            self.reporter.ok(OPERATION_SECTIONS[operation], skip_reason(checkpoint))
            return SessionOutcome(operation=operation, executed=False)

        if operation == Operation.CREATE_DATABASE:
            result = DatabaseProvisioner(
                self.config,
                self.clients,
                self.reporter,
                self.checkpoint_store,
                self.db_name,
                rest_client_factory=self.rest_client_factory,
            ).create(load=load)
        elif operation == Operation.DESTROY_DATABASE:
            result = DatabaseTeardown(
                self.config,
                self.clients,
                self.reporter,
                self.checkpoint_store,
                self.db_name,
            ).destroy()
        else:
            result = self.load_data(checkpoint)

        return SessionOutcome(operation=operation, executed=True, result=result)

    def load_data(self, checkpoint: LocalCheckpoint) -> Dict[str, int]:
        """Load collections into a database created by an earlier invocation."""
        section = Section.DATA_LOADING
        with reported_step(self.reporter, section):
            self.reporter.update(section, "checking existing buckets")
            try:
                namespace = self.clients.get_namespace()
            except oci.exceptions.ServiceError as e:
                raise StorageConfigurationError(f"namespace lookup failed: {e.message}") from e

            if not checkpoint.sql_dev_web:
                raise StorageConfigurationError("local configuration has no SQL Developer Web URL")

            with self.rest_client_factory(
                checkpoint.sql_dev_web,
                checkpoint.db_user_name.upper(),
                self.config.database_password,
            ) as rest:
                loaded = CollectionLoader(
                    self.clients,
                    rest,
                    self.reporter,
                    namespace=namespace,
                    region=self.config.region,
                    db_name=self.db_name,
                    data_path=self.config.data_path,
                ).load_all(self.config.collections)

            self.reporter.ok(section)

        self.logger.info("Data loaded", db_name=self.db_name, collections=loaded)
        return loaded

    def information_lines(self) -> List[str]:
        return [
            f"  . OCI profile    : {self.profile}",
            f"  . OCI region     : {self.config.region}",
            f"  . OCI tenant     : {self.config.tenancy}",
            f"  . OCI compartment: {self.config.compartment_id}",
            f"  . OCI user       : {self.config.user}",
        ]
