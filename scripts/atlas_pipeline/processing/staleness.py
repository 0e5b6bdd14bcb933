"""
Build targets and the staleness check that decides whether an atlas needs repacking.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from ..utils.tree import SourceFile, scan_images, DEFAULT_IMAGE_EXTENSIONS

logger = logging.getLogger(__name__)

DESCRIPTION_SUFFIX = ".atlas"
IMAGE_SUFFIX = ".png"


class SourceDirectoryError(Exception):
    """Exception raised when a build target's source directory does not exist."""
    pass


@dataclass(frozen=True)
class BuildTarget:
    """One packing job: a source image directory and where its atlas goes."""
    source_dir: Path
    output_dir: Path
    atlas_name: str
    label: str = ""

    @property
    def description_path(self) -> Path:
        return self.output_dir / f"{self.atlas_name}{DESCRIPTION_SUFFIX}"

    @property
    def image_path(self) -> Path:
        return self.output_dir / f"{self.atlas_name}{IMAGE_SUFFIX}"

    @property
    def display_name(self) -> str:
        return self.label or str(self.source_dir)


@dataclass(frozen=True)
class AtlasOutput:
    """An existing description/image pair; modified_time is the description's mtime in ns."""
    description_path: Path
    image_path: Path
    modified_time: int


def find_atlas_output(target: BuildTarget) -> Optional[AtlasOutput]:
    """
    Locate the existing atlas artifacts for a target.

    Returns:
        AtlasOutput if both the description and image file exist, None otherwise
    """
    description = target.description_path
    image = target.image_path

    if not (description.is_file() and image.is_file()):
        return None

    return AtlasOutput(
        description_path=description,
        image_path=image,
        modified_time=description.stat().st_mtime_ns,
    )


def _check_source_dir(target: BuildTarget) -> None:
    if not target.source_dir.is_dir():
        raise SourceDirectoryError(f"Source directory does not exist: {target.source_dir}")


def is_stale(target: BuildTarget, extensions: Iterable[str] = DEFAULT_IMAGE_EXTENSIONS) -> bool:
    """
    Decide whether a target's atlas must be regenerated.

    A target without both output files is always stale. Otherwise it is
    stale iff some source file with a qualifying extension was modified
    strictly after the description file. The scan stops at the first such
    file.

    Args:
        target: Build target to check
        extensions: Qualifying extensions without dots, matched case-sensitively

    Returns:
        True if the atlas is missing or out of date

    Raises:
        SourceDirectoryError: If the target's source directory does not exist
    """
    _check_source_dir(target)

    output = find_atlas_output(target)
    if output is None:
        logger.debug(f"No atlas output for {target.display_name}, packing required")
        return True

    for source in scan_images(target.source_dir, extensions):
        if source.modified_time > output.modified_time:
            logger.debug(f"{source.path} is newer than {output.description_path}")
            return True

    return False


def newer_sources(target: BuildTarget,
                  extensions: Iterable[str] = DEFAULT_IMAGE_EXTENSIONS) -> List[SourceFile]:
    """
    List every qualifying source file newer than the target's atlas.

    All qualifying files are returned when the atlas does not exist yet.
    Unlike is_stale this always scans the whole tree.
    """
    _check_source_dir(target)

    output = find_atlas_output(target)
    sources = scan_images(target.source_dir, extensions)
    if output is None:
        return list(sources)

    return [source for source in sources if source.modified_time > output.modified_time]
