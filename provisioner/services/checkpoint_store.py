import json
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from provisioner.core.exceptions import CheckpointLoadError, CheckpointNotSavedError
from provisioner.core.logging import get_service_logger
from provisioner.models.checkpoint import LocalCheckpoint

logger = get_service_logger("checkpoint_store")


class CheckpointStore:
    """Reads and writes the local JSON checkpoint of a provisioned database."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.logger = logger

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Optional[LocalCheckpoint]:
        """Return the checkpoint, or None when no file is present."""
        if not self.path.exists():
            return None

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            checkpoint = LocalCheckpoint.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            self.logger.error("Checkpoint unreadable", path=str(self.path), error=str(e))
            raise CheckpointLoadError(str(self.path), str(e)) from e

        self.logger.debug("Checkpoint loaded", path=str(self.path), db_name=checkpoint.db_name)
        return checkpoint

    def save(self, checkpoint: LocalCheckpoint) -> None:
        try:
            self.path.write_text(checkpoint.to_json(), encoding="utf-8")
        except OSError as e:
            self.logger.error("Checkpoint not saved", path=str(self.path), error=str(e))
            raise CheckpointNotSavedError(str(self.path), str(e)) from e

        self.logger.info("Checkpoint saved", path=str(self.path), db_name=checkpoint.db_name)

    def delete(self) -> bool:
        """Remove the checkpoint file. Returns False when there was none."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False

        self.logger.info("Checkpoint deleted", path=str(self.path))
        return True
