"""Path resolution and metadata capabilities used by the archiver.

Two capabilities with different trust contracts live here:

- ``PathResolver.safe_join`` takes a *raw* entry name and proves that it stays
  inside a trusted base directory, following symlinks.
- ``MetadataProvider.unsafe_stat`` describes a path that was built internally
  and is already trusted. It performs no validation and must never be handed
  external input.
"""

import mimetypes
import os
import stat as stat_module
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from .errors import ArchiveIOError, ArchiveNotFound, PathTraversalError

# mimetypes maps ".tar.gz" to ("application/x-tar", "gzip"); report the outer container
_ENCODING_MIMETYPES = {
    "gzip": "application/gzip",
    "bzip2": "application/x-bzip2",
    "xz": "application/x-xz",
}


@dataclass(frozen=True)
class Metadata:
    """Stat result for a single filesystem entry"""

    name: str
    size: int
    mode: int
    modified: datetime
    is_dir: bool
    is_symlink: bool
    mimetype: str

    @property
    def size_mb(self) -> float:
        return self.size / (1024 * 1024)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "size": self.size,
            "size_mb": round(self.size_mb, 2),
            "mode": oct(self.mode),
            "modified": self.modified.isoformat(),
            "is_dir": self.is_dir,
            "is_symlink": self.is_symlink,
            "mimetype": self.mimetype,
        }


def _guess_mimetype(path: Path, is_dir: bool) -> str:
    if is_dir:
        return "inode/directory"
    mimetype, encoding = mimetypes.guess_type(path.name)
    if encoding in _ENCODING_MIMETYPES:
        return _ENCODING_MIMETYPES[encoding]
    return mimetype or "application/octet-stream"


class PathResolver:
    """Resolves raw entry names against a trusted base directory"""

    def safe_join(self, base: Path, name: str) -> Path:
        """Join ``name`` onto ``base``, rejecting anything that escapes ``base``

        Args:
            base: Trusted root directory
            name: Raw entry name (e.g. from a directory listing)

        Returns:
            Absolute path of the entry. The entry itself is returned, not its
            symlink target, so links are archived as links.

        Raises:
            PathTraversalError: If the name is absolute, contains '..', or
                resolves (following symlinks) outside of ``base``
        """
        candidate = Path(name)
        if candidate.is_absolute() or ".." in candidate.parts:
            raise PathTraversalError(f"Entry '{name}' is not a plain relative name inside '{base}'")

        joined = Path(os.path.abspath(Path(base) / candidate))
        try:
            root = Path(base).resolve()
            resolved = joined.resolve()
            if joined.is_symlink():
                os.stat(joined)
        except FileNotFoundError:
            pass  # dangling link; its target is still checked below
        except (RuntimeError, OSError) as e:
            raise PathTraversalError(f"Entry '{name}' cannot be resolved: {e}") from e

        if resolved != root and not str(resolved).startswith(str(root) + os.sep):
            raise PathTraversalError(f"Entry '{name}' resolves to '{resolved}', outside of '{root}'")

        return joined


class MetadataProvider:
    """Stats trusted, internally constructed paths"""

    def unsafe_stat(self, path: Path, follow_symlinks: bool = True) -> Metadata:
        """Stat ``path`` without validating it against any root

        Symlinks are followed by default, so a dangling link counts as absent.

        Raises:
            ArchiveNotFound: If nothing exists at ``path``
            ArchiveIOError: For any other stat failure
        """
        path = Path(path)
        try:
            st = os.stat(path, follow_symlinks=follow_symlinks)
        except FileNotFoundError as e:
            raise ArchiveNotFound(f"No such file: {path}") from e
        except OSError as e:
            raise ArchiveIOError(f"Could not stat {path}: {e}") from e

        is_dir = stat_module.S_ISDIR(st.st_mode)
        return Metadata(
            name=path.name,
            size=st.st_size,
            mode=stat_module.S_IMODE(st.st_mode),
            modified=datetime.fromtimestamp(st.st_mtime),
            is_dir=is_dir,
            is_symlink=os.path.islink(path),
            mimetype=_guess_mimetype(path, is_dir),
        )
