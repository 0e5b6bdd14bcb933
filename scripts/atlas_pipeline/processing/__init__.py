"""
Atlas processing modules: build targets, staleness checks, mod discovery, and packing.
"""

from .staleness import (
    BuildTarget,
    AtlasOutput,
    SourceDirectoryError,
    find_atlas_output,
    is_stale,
    newer_sources,
)
from .mods import discover_mod_targets, list_mod_directories, mod_build_target
from .packer import Packer, TexturePacker, PackingError, AtlasLayoutEngine

__all__ = [
    "BuildTarget",
    "AtlasOutput",
    "SourceDirectoryError",
    "find_atlas_output",
    "is_stale",
    "newer_sources",
    "discover_mod_targets",
    "list_mod_directories",
    "mod_build_target",
    "Packer",
    "TexturePacker",
    "PackingError",
    "AtlasLayoutEngine",
]
