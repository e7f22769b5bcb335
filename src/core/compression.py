"""gzip tar compression capability"""

import fnmatch
import gzip
import logging
import tarfile
import zlib
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from .errors import ArchiveIOError, ArchiveNotFound, CompressionError


class TarGzCompressor:
    """Writes and reads .tar.gz archives"""

    def __init__(self):
        self.logger = logging.getLogger("Archiver")

    def create_archive(self, paths: Iterable[Path], destination: Path) -> int:
        """Compress ``paths`` into a single gzip tar at ``destination``

        Each path is stored under its base name; directories are added
        recursively and symlinks are stored as links.

        Returns:
            Number of top-level entries written

        Raises:
            CompressionError: If any entry cannot be read or the archive
                cannot be written (disk full, permission denied, ...)
        """
        count = 0
        try:
            with tarfile.open(destination, "w:gz") as tar:
                for path in paths:
                    path = Path(path)
                    tar.add(path, arcname=path.name)
                    count += 1
        except (OSError, tarfile.TarError) as e:
            raise CompressionError(f"Failed to write archive {Path(destination).name}: {e}") from e

        self.logger.debug(f"Wrote {count} top-level entries to {Path(destination).name}")
        return count

    def list_contents(self, archive: Path, pattern: str | None = None) -> list[dict[str, Any]]:
        """List members of an archive

        Args:
            archive: Path to the .tar.gz file
            pattern: Optional fnmatch pattern to filter member names (e.g. '*.txt')

        Returns:
            List of member information dictionaries
        """
        archive = Path(archive)
        files = []
        try:
            with tarfile.open(archive, "r:gz") as tar:
                for member in tar.getmembers():
                    if pattern and not fnmatch.fnmatch(member.name, pattern):
                        continue

                    if member.isdir():
                        member_type = "dir"
                    elif member.issym():
                        member_type = "symlink"
                    else:
                        member_type = "file"

                    files.append(
                        {
                            "name": member.name,
                            "type": member_type,
                            "size": member.size,
                            "mode": oct(member.mode),
                            "mtime": datetime.fromtimestamp(member.mtime).isoformat(),
                        }
                    )
        except FileNotFoundError as e:
            raise ArchiveNotFound(f"Archive not found: {archive.name}") from e
        except (tarfile.TarError, gzip.BadGzipFile, zlib.error, EOFError) as e:
            raise CompressionError(f"Could not read archive {archive.name}: {e}") from e
        except OSError as e:
            raise ArchiveIOError(f"Could not read archive {archive.name}: {e}") from e

        return files
