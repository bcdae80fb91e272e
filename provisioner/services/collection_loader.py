"""
Bulk loading of local JSON files into SODA collections.

For each collection, files named <collection>_*.json are uploaded to the
primary bucket under <db>/<collection>/ and then loaded with a single
DBMS_CLOUD.COPY_COLLECTION call over the wildcard path.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, List, Optional

import oci

from provisioner.core.config import settings
from provisioner.core.exceptions import CollectionNotLoadedError, RestServiceError
from provisioner.core.logging import get_service_logger
from provisioner.core.oci_client import CloudClients
from provisioner.core.progress import ProgressReporter, Section
from provisioner.core.rest_client import OrdsRestClient
from provisioner.services import sql_scripts
from provisioner.services.bucket_provisioner import PRIMARY_BUCKET_NAME

logger = get_service_logger("collection_loader")

# Holds the endpoints document, never bulk loaded
BOOKKEEPING_COLLECTION = "dragon"


def find_collection_files(data_path: Path, collection: str) -> List[Path]:
    """Local files of a collection, sorted by name."""
    return sorted(
        path for path in Path(data_path).glob(f"{collection}_*.json") if path.is_file()
    )


class CollectionLoader:
    """Uploads collection files to Object Storage and loads them in the database."""

    def __init__(
        self,
        clients: CloudClients,
        rest: OrdsRestClient,
        reporter: ProgressReporter,
        namespace: str,
        region: str,
        db_name: str,
        data_path: Path,
        max_workers: Optional[int] = None,
    ):
        self.clients = clients
        self.rest = rest
        self.reporter = reporter
        self.namespace = namespace
        self.region = region
        self.db_name = db_name
        self.data_path = Path(data_path)
        self.max_workers = max_workers or settings.UPLOAD_MAX_WORKERS
        self.logger = logger

    def load_all(self, collections: List[str]) -> Dict[str, int]:
        """
        Load every configured collection except the bookkeeping one.

        Returns:
            Number of files loaded per collection; collections without
            local files are skipped and absent from the result

        Raises:
            CollectionNotLoadedError: First collection failing to upload or load
        """
        loaded: Dict[str, int] = {}
        for collection in collections:
            if collection == BOOKKEEPING_COLLECTION:
                continue

            self.reporter.update(Section.DATA_LOADING, f"collection {collection}")
            files = find_collection_files(self.data_path, collection)
            if not files:
                self.logger.info("No data file for collection", collection=collection)
                continue

            self._upload(collection, files)
            self._copy(collection)
            loaded[collection] = len(files)

        return loaded

    def object_name(self, collection: str, file_name: str) -> str:
        return f"{self.db_name}/{collection}/{file_name}"

    def _upload(self, collection: str, files: List[Path]) -> None:
        total = len(files)
        done = 0

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(
                    self.clients.upload_file,
                    self.namespace,
                    PRIMARY_BUCKET_NAME,
                    self.object_name(collection, path.name),
                    path,
                ): path
                for path in files
            }
            for future in as_completed(futures):
                path = futures[future]
                try:
                    future.result()
                except (oci.exceptions.ServiceError, oci.exceptions.MultipartUploadError, OSError) as e:
                    self.logger.error(
                        "Upload failed",
                        collection=collection,
                        file=path.name,
                        error=str(e),
                    )
                    for pending in futures:
                        pending.cancel()
                    raise CollectionNotLoadedError(collection, f"upload of {path.name} failed: {e}") from e

                done += 1
                self.reporter.update(
                    Section.DATA_LOADING,
                    f"collection {collection}: uploading file {done}/{total}",
                )

        self.logger.info("Collection files uploaded", collection=collection, files=total)

    def _copy(self, collection: str) -> None:
        self.reporter.update(Section.DATA_LOADING, f"collection {collection}: loading...")
        file_uri = sql_scripts.object_storage_uri(
            self.region,
            self.namespace,
            PRIMARY_BUCKET_NAME,
            f"{self.db_name}/{collection}/*",
        )
        script = sql_scripts.render(
            sql_scripts.COPY_COLLECTION,
            collection=collection,
            credential=sql_scripts.LOAD_CREDENTIAL_NAME,
            file_uri=file_uri,
        )
        try:
            self.rest.execute(script)
        except RestServiceError as e:
            self.logger.error("Collection load failed", collection=collection, error=e.message)
            raise CollectionNotLoadedError(collection, e.message) from e

        self.logger.info("Collection loaded", collection=collection)
