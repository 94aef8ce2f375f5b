"""Local filesystem implementation of FileStore."""

import logging
import os
import shutil
import tempfile
from pathlib import Path

from ..domain.exceptions import StorageError
from .interfaces import FileStore

logger = logging.getLogger(__name__)


class LocalFileStore(FileStore):
    """Keeps stored files under a base directory.

    Writes go to a temporary file in the destination directory and are moved
    into place with os.replace, so readers never see a partial file.
    """

    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)

    def _resolve(self, storage_path: str) -> Path:
        target = (self.base_dir / storage_path).resolve()
        base = self.base_dir.resolve()
        if base != target and base not in target.parents:
            raise StorageError(f"Storage path escapes base directory: {storage_path}")
        return target

    def put(self, local_path: str, storage_path: str) -> None:
        target = self._resolve(storage_path)
        tmp_path = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=target.parent, prefix=".tmp_", suffix=target.suffix
            )
            os.close(fd)
            shutil.copyfile(local_path, tmp_path)
            os.replace(tmp_path, target)
            tmp_path = None
        except OSError as e:
            raise StorageError(f"Failed to store {storage_path}: {e}") from e
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)

        logger.debug(f"Stored {local_path} as {storage_path}")

    def get_local_path(self, storage_path: str) -> str:
        return str(self._resolve(storage_path))

    def delete(self, storage_path: str) -> bool:
        target = self._resolve(storage_path)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete {storage_path}: {e}") from e
        return True
