"""
Discovery of mod image directories that get their own atlas.

Every visible child of the mods root that holds an Images subdirectory is a
target; its atlas is written into the mod's own directory so each mod stays
self-contained.
"""

import logging
from pathlib import Path
from typing import List, Union

from ..utils.tree import is_hidden
from .staleness import BuildTarget

logger = logging.getLogger(__name__)

MOD_IMAGES_DIR = "Images"


def list_mod_directories(mods_root: Union[str, Path]) -> List[Path]:
    """
    List visible mod directories under the mods root.

    A missing or unreadable mods root yields no mods.

    Args:
        mods_root: Directory containing one subdirectory per mod

    Returns:
        Mod directories sorted by name
    """
    mods_root = Path(mods_root)

    if not mods_root.is_dir():
        logger.debug(f"Mods directory {mods_root} does not exist, no mod atlases to build")
        return []

    try:
        entries = sorted(mods_root.iterdir())
    except OSError as e:
        logger.warning(f"Cannot list mods directory {mods_root}: {e}")
        return []

    mods = []
    for entry in entries:
        if is_hidden(entry):
            logger.debug(f"Skipping hidden mod entry {entry}")
            continue
        if entry.is_dir():
            mods.append(entry)

    return mods


def mod_build_target(mod_dir: Path, atlas_name: str) -> BuildTarget:
    """Create the build target for one mod: <mod>/Images packed into <mod>/<atlas_name>.*"""
    return BuildTarget(
        source_dir=mod_dir / MOD_IMAGES_DIR,
        output_dir=mod_dir,
        atlas_name=atlas_name,
        label=f"mod:{mod_dir.name}",
    )


def discover_mod_targets(mods_root: Union[str, Path], atlas_name: str) -> List[BuildTarget]:
    """Build targets for every visible mod that has an Images subdirectory."""
    targets = []

    for mod_dir in list_mod_directories(mods_root):
        if not (mod_dir / MOD_IMAGES_DIR).is_dir():
            logger.debug(f"Mod {mod_dir.name} has no {MOD_IMAGES_DIR} directory, skipping")
            continue
        targets.append(mod_build_target(mod_dir, atlas_name))

    return targets
