"""
Idempotent Object Storage bucket provisioning.

Two logical buckets are managed: the primary "dragon" bucket shared by all
databases of a compartment (object events enabled) and one backup bucket per
database (events disabled).
"""

from enum import Enum
from typing import Iterable, Set

import oci

from provisioner.core.exceptions import BucketCreationError
from provisioner.core.logging import get_service_logger
from provisioner.core.oci_client import CloudClients

logger = get_service_logger("bucket_provisioner")

PRIMARY_BUCKET_NAME = "dragon"


def backup_bucket_name(db_name: str) -> str:
    return f"backup_{db_name.lower()}"


class BucketStatus(str, Enum):
    EXISTS = "exists"
    CREATED = "created"


class BucketProvisioner:
    """Finds and creates buckets in one compartment."""

    def __init__(self, clients: CloudClients, compartment_id: str):
        self.clients = clients
        self.compartment_id = compartment_id
        self.logger = logger

    def find_existing(self, namespace: str, names: Iterable[str]) -> Set[str]:
        """Scan every page of the bucket listing, returning which names exist."""
        wanted = set(names)
        found: Set[str] = set()
        page = None
        pages = 0

        while True:
            bucket_names, page = self.clients.list_bucket_page(
                namespace, self.compartment_id, page
            )
            pages += 1
            found.update(name for name in bucket_names if name in wanted)
            if not page or found == wanted:
                break

        self.logger.debug(
            "Bucket listing scanned",
            namespace=namespace,
            pages=pages,
            found=sorted(found),
        )
        return found

    def ensure_bucket(
        self,
        namespace: str,
        name: str,
        events_enabled: bool,
        existing: Set[str],
    ) -> BucketStatus:
        """
        Create the bucket unless the listing scan already found it.

        Raises:
            BucketCreationError: Service reported a bucket with another name
        """
        if name in existing:
            return BucketStatus.EXISTS

        try:
            created_name = self.clients.create_bucket(
                namespace, self.compartment_id, name, events_enabled
            )
        except oci.exceptions.ServiceError as e:
            self.logger.error("Bucket creation rejected", name=name, status=e.status, code=e.code)
            raise BucketCreationError(name) from e

        if created_name != name:
            self.logger.error(
                "Bucket creation returned unexpected bucket",
                requested=name,
                created=created_name,
            )
            raise BucketCreationError(name)

        existing.add(name)
        self.logger.info("Bucket created", name=name, events_enabled=events_enabled)
        return BucketStatus.CREATED
