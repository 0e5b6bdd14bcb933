"""
Atlas build coordinator.

Runs once before the game starts: collects the base and mod build targets,
repacks the ones whose atlas is missing or older than its sources, and
reports how long the whole pass took.
"""

import time
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

from rich.console import Console
from rich.logging import RichHandler

from .config import PackSettings
from .processing.mods import discover_mod_targets
from .processing.packer import Packer, TexturePacker
from .processing.staleness import BuildTarget, is_stale
from .utils.tree import DEFAULT_IMAGE_EXTENSIONS

logger = logging.getLogger(__name__)

DEFAULT_ATLAS_NAME = "game"


class PipelineError(Exception):
    """Exception raised when a build pass cannot start."""
    pass


@dataclass
class BuildReport:
    """Outcome of one build pass."""
    elapsed: float = 0.0  # seconds
    packed: List[BuildTarget] = field(default_factory=list)
    skipped: List[BuildTarget] = field(default_factory=list)

    @property
    def elapsed_ms(self) -> int:
        return int(self.elapsed * 1000)

    @property
    def targets(self) -> List[BuildTarget]:
        return self.packed + self.skipped


def setup_logging(level: int = logging.INFO, console: Optional[Console] = None) -> logging.Logger:
    """
    Set up logging for the atlas pipeline.

    Args:
        level: Log level for the atlas_pipeline logger
        console: Rich console to log through; plain stderr logging if None
    """
    pipeline_logger = logging.getLogger("atlas_pipeline")
    pipeline_logger.setLevel(level)

    if not pipeline_logger.handlers:
        if console is not None:
            handler = RichHandler(console=console, show_path=False)
        else:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
        pipeline_logger.addHandler(handler)

    return pipeline_logger


class AtlasBuilder:
    """
    Incremental atlas builder for the base game and every mod.

    Targets are independent: each one's staleness depends only on its own
    source directory and output files. The base target, when present, is
    processed before the mods, which follow in directory name order.
    """

    def __init__(self, settings: PackSettings, packer: Optional[Packer] = None,
                 extensions: Iterable[str] = DEFAULT_IMAGE_EXTENSIONS,
                 atlas_name: str = DEFAULT_ATLAS_NAME):
        """
        Initialize the builder.

        Args:
            settings: Packing settings shared by all targets
            packer: Packer used for stale targets (TexturePacker by default)
            extensions: Source extensions that can invalidate an atlas
            atlas_name: Base file name of every atlas
        """
        errors = settings.validate()
        if errors:
            raise PipelineError(f"Invalid pack settings: {'; '.join(errors)}")

        self.settings = settings
        self.extensions = frozenset(extensions)
        self.packer = packer or TexturePacker(self.extensions)
        self.atlas_name = atlas_name

    def collect_targets(self, mods_root: Union[str, Path], base_source_dir: Union[str, Path],
                        base_output_dir: Union[str, Path] = ".") -> List[BuildTarget]:
        """
        Collect build targets, base first.

        The base target is skipped when its source directory is absent, as
        happens when running from a packaged build instead of a source tree.
        """
        targets = []

        base_source_dir = Path(base_source_dir)
        if base_source_dir.is_dir():
            targets.append(BuildTarget(
                source_dir=base_source_dir,
                output_dir=Path(base_output_dir),
                atlas_name=self.atlas_name,
                label="base",
            ))
        else:
            logger.debug(f"Base image directory {base_source_dir} not found, skipping base atlas")

        targets.extend(discover_mod_targets(mods_root, self.atlas_name))
        return targets

    def run(self, mods_root: Union[str, Path], base_source_dir: Union[str, Path],
            base_output_dir: Union[str, Path] = ".", force: bool = False) -> BuildReport:
        """
        Run one build pass.

        Args:
            mods_root: Directory containing mod directories
            base_source_dir: Base game image directory
            base_output_dir: Where the base atlas is written
            force: Repack every target regardless of staleness

        Returns:
            BuildReport with elapsed time and the packed and skipped targets

        Raises:
            PackingError: If packing any stale target fails; the pass stops there
        """
        start_time = time.perf_counter()
        report = BuildReport()

        for target in self.collect_targets(mods_root, base_source_dir, base_output_dir):
            if force or is_stale(target, self.extensions):
                logger.info(f"Packing {target.display_name}: {target.source_dir} -> {target.description_path}")
                self.packer.pack(self.settings, target.source_dir, target.output_dir, target.atlas_name)
                report.packed.append(target)
            else:
                logger.debug(f"Atlas for {target.display_name} is up to date")
                report.skipped.append(target)

        report.elapsed = time.perf_counter() - start_time
        logger.info(f"Packing textures - {report.elapsed_ms}ms")
        return report


def pack_images(mods_root: Union[str, Path], base_source_dir: Union[str, Path],
                settings: PackSettings, packer: Optional[Packer] = None,
                base_output_dir: Union[str, Path] = ".") -> int:
    """Run a build pass and return the elapsed wall-clock time in milliseconds."""
    builder = AtlasBuilder(settings, packer)
    return builder.run(mods_root, base_source_dir, base_output_dir).elapsed_ms
