import os
from pathlib import Path
import aiofiles
import aiofiles.os
from postbox.config import Context
from postbox.errors import StorageError, StorageConflictError, UnsafeNameError, PathEscapeError
from postbox.logger_config import setup_logger

logger = setup_logger()


class StorageManager:
    def __init__(self, context: Context):
        self.root = context.file_root
        self.root_url = context.root_url

    async def initialize(self):
        """Create the storage root if it is missing."""
        logger.info("Initializing storage manager...")
        await aiofiles.os.makedirs(self.root, exist_ok=True)
        logger.info(f"Storage root: {self.root}")

    @staticmethod
    def check_name(name: str):
        """Reject names that would not land directly inside the scramble directory."""
        if not name or name in ('.', '..') or '/' in name or os.sep in name or '\x00' in name:
            raise UnsafeNameError(f"unsafe file name: {name!r}")

    def get_directory(self, scramble: str) -> Path:
        """Get the storage directory for a scramble, confined under the root."""
        directory = self.root / scramble
        root = self.root.resolve()
        resolved = directory.resolve()
        if resolved == root or root not in resolved.parents:
            logger.critical(f"Scramble directory {resolved} escapes storage root {root}")
            raise PathEscapeError(f"{resolved} is not below {root}")
        return directory

    def build_url(self, scramble: str, name: str) -> str:
        return f"{self.root_url}{scramble}/{name}"

    async def store(self, scramble: str, name: str, body: bytes) -> str:
        """Write ``body`` to ``<root>/<scramble>/<name>`` and return its public URL.

        The scramble directory is created exclusively: a name that was stored
        before fails with StorageConflictError instead of being overwritten.
        """
        self.check_name(name)
        directory = self.get_directory(scramble)
        file_path = directory / name

        try:
            await aiofiles.os.mkdir(directory)
        except FileExistsError:
            raise StorageConflictError(f"{directory} already exists")
        except OSError as e:
            raise StorageError(f"Cannot create {directory}: {e}") from e

        logger.debug(f"{file_path}: {len(body)} bytes")

        try:
            async with aiofiles.open(file_path, 'wb') as f:
                await f.write(body)
        except OSError as e:
            await self._discard(directory, file_path)
            raise StorageError(f"Cannot write {file_path}: {e}") from e

        return self.build_url(scramble, name)

    async def _discard(self, directory: Path, file_path: Path):
        """Remove what a failed write left behind so the name can be retried."""
        try:
            if await aiofiles.os.path.exists(file_path):
                await aiofiles.os.unlink(file_path)
            await aiofiles.os.rmdir(directory)
        except OSError as e:
            logger.error(f"Cleanup of {directory} failed: {e}")
