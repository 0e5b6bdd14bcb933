"""
Atlas Pipeline

Incremental texture atlas builder for the base game images and every mod's
Images directory. Atlases are only repacked when a source image is newer
than the existing atlas description.
"""

__version__ = "0.1.0"
__author__ = "Atlas Pipeline Development Team"

from .config import PipelineConfig, PackSettings
from .pipeline import AtlasBuilder, BuildReport, PipelineError, pack_images
from .processing.staleness import BuildTarget, AtlasOutput, SourceDirectoryError, is_stale
from .processing.packer import Packer, TexturePacker, PackingError
from .utils.tree import SourceFile, scan

__all__ = [
    "PipelineConfig",
    "PackSettings",
    "AtlasBuilder",
    "BuildReport",
    "PipelineError",
    "pack_images",
    "BuildTarget",
    "AtlasOutput",
    "SourceDirectoryError",
    "is_stale",
    "Packer",
    "TexturePacker",
    "PackingError",
    "SourceFile",
    "scan",
]
