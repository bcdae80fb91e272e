"""Termination of a provisioned database. Buckets and their objects are kept."""

from enum import Enum
from typing import Iterable, Optional

import oci

from provisioner.core.config import ProvisioningConfig
from provisioner.core.exceptions import (
    AvailabilityWaitError,
    CloudRequestError,
    ErrorKind,
    WorkRequestFailedError,
)
from provisioner.core.logging import get_service_logger
from provisioner.core.oci_client import CloudClients
from provisioner.core.progress import ProgressReporter, Section, reported_step
from provisioner.models.database import DatabaseSummary, LifecycleState, Operation
from provisioner.services.checkpoint_store import CheckpointStore
from provisioner.services.work_request_poller import (
    DELETE_POLICY,
    WorkRequestPoller,
    format_duration,
)

logger = get_service_logger("teardown")


class TeardownStatus(str, Enum):
    DESTROYED = "destroyed"
    NOTHING_TO_DO = "nothing to do"


def locate_database(
    resources: Iterable[DatabaseSummary], db_name: str, free_tier_only: bool
) -> Optional[DatabaseSummary]:
    """First live database with that name, restricted to free tier ones if asked."""
    for resource in resources:
        if resource.is_terminated or resource.db_name != db_name:
            continue
        if free_tier_only and not resource.is_free_tier:
            continue
        return resource
    return None


class DatabaseTeardown:
    """Terminates one database and removes the local checkpoint."""

    def __init__(
        self,
        config: ProvisioningConfig,
        clients: CloudClients,
        reporter: ProgressReporter,
        checkpoint_store: CheckpointStore,
        db_name: str,
        poller: Optional[WorkRequestPoller] = None,
    ):
        self.config = config
        self.clients = clients
        self.reporter = reporter
        self.checkpoint_store = checkpoint_store
        self.db_name = db_name
        self.poller = poller or WorkRequestPoller(
            clients, reporter, Section.DATABASE_TERMINATION, DELETE_POLICY
        )
        self.logger = logger

    def destroy(self) -> TeardownStatus:
        """
        Terminate the database when it exists, then delete the checkpoint.

        A missing database is not an error: the result is NOTHING_TO_DO and
        the checkpoint is removed all the same.
        """
        section = Section.DATABASE_TERMINATION
        with reported_step(self.reporter, section):
            self.reporter.update(section, "checking existing databases")
            try:
                resources = self.clients.list_databases(self.config.compartment_id)
            except oci.exceptions.ServiceError as e:
                raise CloudRequestError(
                    "list databases", e.status, e.code, e.message, kind=ErrorKind.PRECONDITION
                ) from e
            target = locate_database(
                resources,
                self.db_name,
                free_tier_only=self.config.is_free_tier,
            )

            if target is None:
                self.logger.info("No database to terminate", db_name=self.db_name)
                self.reporter.ok(section, TeardownStatus.NOTHING_TO_DO.value)
                status = TeardownStatus.NOTHING_TO_DO
            else:
                self._terminate(target)
                status = TeardownStatus.DESTROYED

        self.checkpoint_store.delete()
        return status

    def _terminate(self, target: DatabaseSummary) -> None:
        self.reporter.update(Section.DATABASE_TERMINATION, "pending")
        try:
            work_request_id = self.clients.delete_database(target.id)
        except oci.exceptions.ServiceError as e:
            self.logger.error(
                "Database termination rejected",
                db_name=self.db_name,
                status=e.status,
                code=e.code,
            )
            raise CloudRequestError("terminate database", e.status, e.code, e.message) from e
        self.logger.info(
            "Database termination submitted",
            db_name=self.db_name,
            database_id=target.id,
            work_request_id=work_request_id,
        )

        outcome = self.poller.poll(work_request_id)
        if not outcome.succeeded:
            raise WorkRequestFailedError(
                Operation.DESTROY_DATABASE.value, self.db_name, outcome.errors
            )

        try:
            self.clients.wait_for_database_state(target.id, LifecycleState.TERMINATED)
        except (oci.exceptions.ServiceError, oci.exceptions.MaximumWaitTimeExceeded) as e:
            raise AvailabilityWaitError(
                target.id, LifecycleState.TERMINATED.value, str(e)
            ) from e

        self.reporter.ok(Section.DATABASE_TERMINATION, format_duration(outcome.elapsed))
        self.logger.info("Database terminated", db_name=self.db_name, database_id=target.id)
