"""Server archive lifecycle manager for Strongbox"""

import hashlib
import logging
import os
import re
import tempfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .compression import TarGzCompressor
from .errors import ArchiveError, ArchiveIOError, ArchiveNotFound, CompressionError
from .filesystem import Metadata, MetadataProvider, PathResolver

ARCHIVE_SUFFIX = ".tar.gz"
CHECKSUM_BUFFER_SIZE = 4 * 1024  # bounded read buffer for hashing
ARCHIVE_FILE_MODE = 0o600

# Disk space pre-flight constants
ESTIMATED_COMPRESSION_RATIO = 0.7  # tar.gz typically achieves 60-80% compression
DISK_SPACE_SAFETY_MARGIN = 1.2

DEFAULT_MAX_PARALLEL_ARCHIVES = 4

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z0-9_\-\.]+$")


def validate_server_id(server_id: str) -> None:
    """Validate a server identity so it can be used as a filename"""
    if not isinstance(server_id, str) or not _IDENTIFIER_RE.match(server_id) or server_id in (".", ".."):
        raise ValueError(
            f"Invalid server id: '{server_id}'. Only alphanumeric characters, underscores, hyphens, and dots allowed."
        )


@dataclass(frozen=True)
class Server:
    """A managed server: stable identity plus its data directory"""

    id: str
    data_dir: Path

    def __post_init__(self):
        validate_server_id(self.id)
        object.__setattr__(self, "data_dir", Path(self.data_dir))


class Archiver:
    """Owns the single .tar.gz archive of one server's data directory.

    The archive always lives at ``<archive_directory>/<server id>.tar.gz``.
    ``archive()`` writes to a temporary file beside it and renames it into
    place, so a successful call never exposes a missing or partial archive.
    A failed call deletes any prior archive: the caller must treat it as
    "no valid archive" until the next successful run.

    No locking is done here. At most one ``archive()`` per server may be in
    flight; read-only calls against a stable archive may run concurrently.
    """

    def __init__(
        self,
        server: Server,
        archive_directory: Path | str,
        resolver: PathResolver | None = None,
        metadata: MetadataProvider | None = None,
        compressor: TarGzCompressor | None = None,
        check_disk_space: bool = True,
    ):
        self.server = server
        self.archive_directory = Path(archive_directory)
        self.resolver = resolver or PathResolver()
        self.metadata = metadata or MetadataProvider()
        self.compressor = compressor or TarGzCompressor()
        self.check_disk_space = check_disk_space
        self.logger = logging.getLogger("Archiver")

    def archive_name(self) -> str:
        """Name of the server's archive file"""
        return f"{self.server.id}{ARCHIVE_SUFFIX}"

    def archive_path(self) -> Path:
        """Path to the server's archive file"""
        return self.archive_directory / self.archive_name()

    def exists(self) -> bool:
        """Whether an archive exists for the server

        Raises:
            ArchiveIOError: If the archive path cannot be stat'ed for a reason
                other than it being absent (e.g. permission denied)
        """
        try:
            self.stat()
        except ArchiveNotFound:
            return False
        return True

    def stat(self) -> Metadata:
        """Stat the archive file.

        The archive path is built internally from configuration and the
        validated server id, so the trusted stat is used.
        """
        return self.metadata.unsafe_stat(self.archive_path())

    def archive(self) -> Metadata:
        """Create an archive of the server's data directory, replacing the previous one

        Returns:
            Metadata of the newly written archive

        Raises:
            ArchiveIOError: If the data directory cannot be listed or the
                archive directory cannot be written
            PathTraversalError: If a top-level entry resolves outside the data directory
            CompressionError: If writing the archive fails
        """
        self.logger.info(f"Starting archive of server '{self.server.id}'")
        try:
            files = self._resolve_entries()
            self._ensure_archive_directory()
            if self.check_disk_space:
                self._check_disk_space(files)
            self._write_atomically(files)
        except ArchiveError as e:
            self.logger.error(f"Failed to archive server '{self.server.id}': {e}")
            self._discard_stale_archive()
            raise

        stat = self.stat()
        self.logger.info(f"Successfully archived '{self.server.id}' ({stat.size_mb:.2f} MB)")
        return stat

    def delete_if_exists(self) -> bool:
        """Delete the archive if it exists

        Returns:
            True if a file was removed, False if there was nothing to delete

        Raises:
            ArchiveIOError: If the archive exists but cannot be removed
        """
        try:
            self.stat()
        except ArchiveNotFound:
            return False

        try:
            self.archive_path().unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise ArchiveIOError(f"Could not delete {self.archive_name()}: {e}") from e

        self.logger.info(f"Deleted archive {self.archive_name()}")
        return True

    def checksum(self) -> str:
        """Compute the SHA256 checksum of the server's archive

        Returns:
            Lower-case hexadecimal digest

        Raises:
            ArchiveNotFound: If the archive does not exist
            ArchiveIOError: If the archive cannot be read
        """
        hash_obj = hashlib.sha256()
        try:
            with open(self.archive_path(), "rb") as f:
                for chunk in iter(lambda: f.read(CHECKSUM_BUFFER_SIZE), b""):
                    hash_obj.update(chunk)
        except FileNotFoundError as e:
            raise ArchiveNotFound(f"Archive not found: {self.archive_name()}") from e
        except OSError as e:
            raise ArchiveIOError(f"Could not read {self.archive_name()}: {e}") from e

        return hash_obj.hexdigest()

    def verify(self, expected: str) -> bool:
        """Check the archive against an expected SHA256 hex digest"""
        current = self.checksum()
        matches = current == expected.strip().lower()
        if matches:
            self.logger.info(f"Verification successful for {self.archive_name()}")
        else:
            self.logger.error(f"Verification failed for {self.archive_name()}: checksum mismatch")
        return matches

    def list_contents(self, pattern: str | None = None) -> list[dict[str, Any]]:
        """List the members of the server's archive"""
        return self.compressor.list_contents(self.archive_path(), pattern)

    def _resolve_entries(self) -> list[Path]:
        """Safely resolve every top-level entry of the data directory"""
        data_dir = self.server.data_dir
        try:
            names = sorted(os.listdir(data_dir))
        except OSError as e:
            raise ArchiveIOError(f"Could not list data directory {data_dir}: {e}") from e

        files = [self.resolver.safe_join(data_dir, name) for name in names]
        self.logger.debug(f"Resolved {len(files)} top-level entries in {data_dir}")
        return files

    def _ensure_archive_directory(self) -> None:
        try:
            self.archive_directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArchiveIOError(f"Could not create archive directory {self.archive_directory}: {e}") from e

    def _estimate_size(self, files: list[Path]) -> int:
        """Estimate the uncompressed size of the entries (symlinks are not followed)"""
        total_size = 0
        for path in files:
            if path.is_symlink():
                continue
            if path.is_file():
                try:
                    total_size += path.stat().st_size
                except OSError:
                    pass
                continue
            for root, _dirs, names in os.walk(path):
                for name in names:
                    item = Path(root) / name
                    try:
                        if not item.is_symlink():
                            total_size += item.stat().st_size
                    except OSError:
                        pass
        return total_size

    def _check_disk_space(self, files: list[Path]) -> None:
        """Fail early if the archive directory cannot hold the estimated archive

        Raises:
            CompressionError: If free space is below the estimated size plus margin
        """
        required = int(self._estimate_size(files) * ESTIMATED_COMPRESSION_RATIO * DISK_SPACE_SAFETY_MARGIN)
        try:
            stat = os.statvfs(self.archive_directory)
        except (OSError, AttributeError) as e:
            self.logger.warning(f"Could not check disk space: {e}")
            return

        available = stat.f_bavail * stat.f_frsize
        if available < required:
            raise CompressionError(
                f"Insufficient disk space: {available / (1024**3):.2f} GB available, "
                f"{required / (1024**3):.2f} GB required (with {int((DISK_SPACE_SAFETY_MARGIN - 1) * 100)}% safety margin)"
            )
        self.logger.debug(f"Disk space check passed ({available / (1024**3):.2f} GB available)")

    def _write_atomically(self, files: list[Path]) -> None:
        """Compress into a temporary file and rename it over the archive path"""
        try:
            fd, temp_name = tempfile.mkstemp(prefix=f".{self.archive_name()}.", suffix=".tmp", dir=self.archive_directory)
        except OSError as e:
            raise ArchiveIOError(f"Could not create temporary archive in {self.archive_directory}: {e}") from e
        os.close(fd)
        temp_path = Path(temp_name)

        try:
            self.compressor.create_archive(files, temp_path)
            try:
                os.chmod(temp_path, ARCHIVE_FILE_MODE)
                os.replace(temp_path, self.archive_path())
            except OSError as e:
                raise ArchiveIOError(f"Could not move archive into place: {e}") from e
        finally:
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError as cleanup_err:
                    self.logger.warning(f"Could not remove temporary archive {temp_path.name}: {cleanup_err}")

    def _discard_stale_archive(self) -> None:
        """Remove the previous archive after a failed run"""
        try:
            self.delete_if_exists()
        except ArchiveIOError as e:
            self.logger.warning(f"Could not remove stale archive {self.archive_name()}: {e}")


def archive_all(
    archivers: list[Archiver], parallel: bool = True, max_workers: int = DEFAULT_MAX_PARALLEL_ARCHIVES
) -> dict[str, tuple[bool, str]]:
    """Archive several servers, collecting a (success, message) result per server id

    Args:
        archivers: One archiver per server (identities must be distinct)
        parallel: If True, run archives in a thread pool
        max_workers: Thread pool size when running in parallel
    """
    logger = logging.getLogger("Archiver")

    def run(archiver: Archiver) -> tuple[bool, str]:
        try:
            stat = archiver.archive()
        except ArchiveError as e:
            return False, f"Archive failed: {e!s}"
        return True, f"Archive successful: {stat.name} ({stat.size_mb:.2f} MB)"

    results: dict[str, tuple[bool, str]] = {}
    if not parallel or len(archivers) <= 1:
        for archiver in archivers:
            results[archiver.server.id] = run(archiver)
        return results

    logger.info(f"Starting parallel archive of {len(archivers)} servers")
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_server = {executor.submit(run, archiver): archiver.server.id for archiver in archivers}
        for future in as_completed(future_to_server):
            server_id = future_to_server[future]
            try:
                results[server_id] = future.result()
            except Exception as e:
                logger.error(f"Archive failed for '{server_id}': {e}")
                results[server_id] = (False, f"Archive failed: {e!s}")

    return results
