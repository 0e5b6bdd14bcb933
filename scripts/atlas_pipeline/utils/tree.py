"""
Lazy directory tree traversal for image source discovery.

Every call walks the disk again; nothing is cached between scans so a
staleness decision always reflects the current state of the source tree.
"""

import os
import stat
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, Iterable, Iterator, Tuple, Union

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_EXTENSIONS = frozenset({"png", "jpg", "jpeg"})


@dataclass(frozen=True)
class SourceFile:
    """A file found by the tree scanner."""
    path: Path
    extension: str
    modified_time: int  # nanoseconds

    @classmethod
    def from_path(cls, path: Path) -> "SourceFile":
        return cls(
            path=path,
            extension=path.suffix[1:] if path.suffix else "",
            modified_time=path.stat().st_mtime_ns,
        )


def scan(root: Union[str, Path]) -> Iterator[SourceFile]:
    """
    Enumerate files under root depth-first.

    A regular file yields itself and a directory yields the files of its
    children in name order. Symbolic links are followed, except a directory
    link leading back to a directory already being walked, which yields
    nothing. Special files and dangling links yield nothing as well. The
    returned iterator is single-use; call scan again for another pass.

    Args:
        root: File or directory to scan

    Yields:
        SourceFile for every regular file reachable from root
    """
    return _walk(Path(root), frozenset())


def _walk(path: Path, ancestors: FrozenSet[Tuple[int, int]]) -> Iterator[SourceFile]:
    if path.is_file():
        yield SourceFile.from_path(path)
    elif path.is_dir():
        try:
            info = path.stat()
            children = sorted(path.iterdir())
        except OSError as e:
            logger.warning(f"Cannot list directory {path}: {e}")
            return

        identity = (info.st_dev, info.st_ino)
        if identity in ancestors:
            logger.debug(f"Skipping directory cycle at {path}")
            return

        for child in children:
            yield from _walk(child, ancestors | {identity})


def scan_images(root: Union[str, Path],
                extensions: Iterable[str] = DEFAULT_IMAGE_EXTENSIONS) -> Iterator[SourceFile]:
    """Scan root and keep only files whose extension is in extensions (case-sensitive)."""
    allowed = frozenset(ext.lstrip(".") for ext in extensions)
    return (source for source in scan(root) if source.extension in allowed)


def is_hidden(path: Union[str, Path]) -> bool:
    """Check whether a filesystem entry is hidden (dot-prefixed or Windows hidden attribute)."""
    path = Path(path)
    if path.name.startswith("."):
        return True

    try:
        attributes = getattr(os.stat(path), "st_file_attributes", 0)
    except OSError:
        return False

    return bool(attributes & getattr(stat, "FILE_ATTRIBUTE_HIDDEN", 0))
