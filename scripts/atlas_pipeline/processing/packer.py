"""
Texture atlas packing for image directories.

The Packer interface is what the build orchestrator depends on; TexturePacker
is the Pillow-backed implementation that lays images out on one or more
pages with a binary-tree bin packer and writes a libGDX-style text
description next to the page images.
"""

import os
import re
import math
import logging
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from PIL import Image

from ..config import PackSettings
from ..utils.image import ImageUtils
from ..utils.tree import scan_images, DEFAULT_IMAGE_EXTENSIONS
from .staleness import AtlasOutput, DESCRIPTION_SUFFIX, IMAGE_SUFFIX

logger = logging.getLogger(__name__)

_INDEX_PATTERN = re.compile(r"^(.*)_(\d+)$")


class PackingError(Exception):
    """Exception raised when an atlas cannot be packed."""

    def __init__(self, message: str, source_dir: Optional[Path] = None):
        super().__init__(message)
        self.source_dir = source_dir


class Packer(ABC):
    """Packs every image under a directory into an atlas description plus page images."""

    @abstractmethod
    def pack(self, settings: PackSettings, source_dir: Union[str, Path],
             output_dir: Union[str, Path], atlas_name: str) -> AtlasOutput:
        """
        Pack source_dir into output_dir/atlas_name.atlas and its page images.

        Implementations must leave either a complete, mutually consistent
        description/image pair or the previous pair untouched.

        Raises:
            PackingError: If packing fails
        """
        pass


@dataclass
class Rectangle:
    """Rectangle for atlas layout calculations."""
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height


@dataclass
class LayoutNode:
    """Node in the atlas layout tree for bin packing."""
    rect: Rectangle
    used: bool = False
    right: Optional['LayoutNode'] = None
    down: Optional['LayoutNode'] = None

    def find_node(self, width: int, height: int) -> Optional['LayoutNode']:
        """Find a node that can fit the given dimensions."""
        if self.used:
            node = self.right.find_node(width, height) if self.right else None
            if node:
                return node
            return self.down.find_node(width, height) if self.down else None
        elif width <= self.rect.width and height <= self.rect.height:
            return self
        else:
            return None

    def split_node(self, width: int, height: int) -> 'LayoutNode':
        """Split this node to accommodate the given dimensions."""
        self.used = True

        if self.rect.width > width:
            self.right = LayoutNode(Rectangle(
                self.rect.x + width, self.rect.y,
                self.rect.width - width, self.rect.height
            ))

        if self.rect.height > height:
            self.down = LayoutNode(Rectangle(
                self.rect.x, self.rect.y + height,
                width, self.rect.height - height
            ))

        return self


@dataclass
class PageLayout:
    """Placement of images on one atlas page."""
    width: int
    height: int
    positions: Dict[str, Rectangle] = field(default_factory=dict)
    efficiency: float = 0.0

    def calculate_efficiency(self) -> None:
        """Calculate layout efficiency (used area / total area)."""
        used_area = sum(rect.width * rect.height for rect in self.positions.values())
        total_area = self.width * self.height
        self.efficiency = used_area / total_area if total_area > 0 else 0.0


class AtlasLayoutEngine:
    """Distributes named rectangles over as few pages as the size limit allows."""

    SIZE_MULTIPLIERS = (1.0, 1.2, 1.5, 2.0)

    def __init__(self, settings: PackSettings):
        self.settings = settings

    def layout_pages(self, items: List[Tuple[str, int, int]]) -> List[PageLayout]:
        """
        Lay out items on pages no larger than the configured maximum.

        Args:
            items: List of (name, width, height) tuples

        Returns:
            One PageLayout per page, in page order

        Raises:
            PackingError: If a single item cannot fit on an empty page
        """
        for name, width, height in items:
            if width > self.settings.max_width or height > self.settings.max_height:
                raise PackingError(
                    f"Image '{name}' ({width}x{height}) does not fit in the maximum page size "
                    f"{self.settings.max_width}x{self.settings.max_height}"
                )

        # Largest first
        remaining = sorted(items, key=lambda item: (-item[1] * item[2], item[0]))
        pages = []

        while remaining:
            layout, remaining = self._fill_page(remaining)
            pages.append(self._shrink_to_content(layout))

        return pages

    def _candidate_sizes(self, items: List[Tuple[str, int, int]]) -> List[Tuple[int, int]]:
        max_size = (self.settings.max_width, self.settings.max_height)
        if self.settings.fast:
            return [max_size]

        total_area = sum(width * height for _, width, height in items)
        estimate = int(math.sqrt(total_area)) + max(width for _, width, _ in items)

        sizes = []
        for multiplier in self.SIZE_MULTIPLIERS:
            side = int(estimate * multiplier)
            if self.settings.power_of_two:
                side = ImageUtils.next_power_of_two(side)
            size = (min(side, max_size[0]), min(side, max_size[1]))
            if size not in sizes:
                sizes.append(size)

        if max_size not in sizes:
            sizes.append(max_size)
        return sizes

    def _fill_page(self, items: List[Tuple[str, int, int]]) -> Tuple[PageLayout, List[Tuple[str, int, int]]]:
        best = None
        for width, height in self._candidate_sizes(items):
            layout, leftover = self._try_pack(items, width, height)
            if leftover:
                continue
            if best is None or layout.efficiency > best[0].efficiency:
                best = (layout, leftover)

        if best is not None:
            return best

        # Nothing fits on one page; fill a maximum-size page and carry the rest over
        return self._try_pack(items, self.settings.max_width, self.settings.max_height)

    def _try_pack(self, items: List[Tuple[str, int, int]],
                  width: int, height: int) -> Tuple[PageLayout, List[Tuple[str, int, int]]]:
        padding = self.settings.padding
        # Root carries one extra padding so edge images need no trailing gap
        root = LayoutNode(Rectangle(0, 0, width + padding, height + padding))
        layout = PageLayout(width, height)
        leftover = []

        for name, item_width, item_height in items:
            node = root.find_node(item_width + padding, item_height + padding)
            if not node:
                leftover.append((name, item_width, item_height))
                continue

            node.split_node(item_width + padding, item_height + padding)
            layout.positions[name] = Rectangle(node.rect.x, node.rect.y, item_width, item_height)

        layout.calculate_efficiency()
        return layout, leftover

    def _shrink_to_content(self, layout: PageLayout) -> PageLayout:
        if not layout.positions:
            return layout

        width = max(rect.right for rect in layout.positions.values())
        height = max(rect.bottom for rect in layout.positions.values())

        if self.settings.power_of_two:
            width = ImageUtils.next_power_of_two(width)
            height = ImageUtils.next_power_of_two(height)

        shrunk = PageLayout(min(width, layout.width), min(height, layout.height), dict(layout.positions))
        shrunk.calculate_efficiency()
        return shrunk


@dataclass
class AtlasPage:
    """A rendered page and the regions it holds."""
    file_name: str
    image: Image.Image
    layout: PageLayout


class TexturePacker(Packer):
    """Pillow-backed packer writing libGDX text atlases."""

    def __init__(self, extensions=DEFAULT_IMAGE_EXTENSIONS, compress_level: int = 6):
        self.extensions = frozenset(extensions)
        self.compress_level = compress_level

    def pack(self, settings: PackSettings, source_dir: Union[str, Path],
             output_dir: Union[str, Path], atlas_name: str) -> AtlasOutput:
        source_dir = Path(source_dir)
        output_dir = Path(output_dir)

        errors = settings.validate()
        if errors:
            raise PackingError(f"Invalid pack settings: {'; '.join(errors)}", source_dir)

        if not source_dir.is_dir():
            raise PackingError(f"Source directory does not exist: {source_dir}", source_dir)

        groups = self._load_groups(settings, source_dir)
        engine = AtlasLayoutEngine(settings)

        pages = []
        images = {name: image for group in groups for name, image in group.items()}
        for group in groups:
            items = [(name, image.width, image.height) for name, image in group.items()]
            for layout in engine.layout_pages(items):
                file_name = self._page_file_name(atlas_name, len(pages))
                pages.append(AtlasPage(file_name, self._render_page(layout, images), layout))

        if not pages:
            # Empty sources still produce a description/image pair
            empty = PageLayout(1, 1)
            pages.append(AtlasPage(self._page_file_name(atlas_name, 0), self._render_page(empty, images), empty))

        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PackingError(f"Cannot create output directory {output_dir}: {e}", source_dir)

        description = self._describe(settings, pages)
        self._write_atomically(output_dir, atlas_name, pages, description, source_dir)

        description_path = output_dir / f"{atlas_name}{DESCRIPTION_SUFFIX}"
        logger.info(f"Packed {len(images)} images from {source_dir} into {len(pages)} page(s) at {description_path}")

        return AtlasOutput(
            description_path=description_path,
            image_path=output_dir / f"{atlas_name}{IMAGE_SUFFIX}",
            modified_time=description_path.stat().st_mtime_ns,
        )

    def _load_groups(self, settings: PackSettings, source_dir: Path) -> List[Dict[str, Image.Image]]:
        """Load source images keyed by region name, grouped by directory unless combining."""
        groups: Dict[str, Dict[str, Image.Image]] = {}

        for source in scan_images(source_dir, self.extensions):
            relative = source.path.relative_to(source_dir)
            name = relative.with_suffix("").as_posix()
            group_key = "" if settings.combine_subdirectories else relative.parent.as_posix()

            try:
                image = ImageUtils.load_image(source.path)
            except ValueError as e:
                raise PackingError(str(e), source_dir)

            group = groups.setdefault(group_key, {})
            if name in group:
                raise PackingError(f"Duplicate region name '{name}' in {source_dir}", source_dir)
            group[name] = image

        return [groups[key] for key in sorted(groups)]

    @staticmethod
    def _page_file_name(atlas_name: str, index: int) -> str:
        suffix = "" if index == 0 else str(index + 1)
        return f"{atlas_name}{suffix}{IMAGE_SUFFIX}"

    @staticmethod
    def _render_page(layout: PageLayout, images: Dict[str, Image.Image]) -> Image.Image:
        page = Image.new('RGBA', (max(layout.width, 1), max(layout.height, 1)), (0, 0, 0, 0))
        # Regions never overlap, so sources are copied without blending
        for name, rect in layout.positions.items():
            page.paste(images[name], (rect.x, rect.y))
        return page

    @staticmethod
    def _describe(settings: PackSettings, pages: List[AtlasPage]) -> str:
        """Render the text description for all pages."""
        lines = []
        for page in pages:
            lines.extend([
                "",
                page.file_name,
                f"size: {page.image.width}, {page.image.height}",
                f"format: {settings.format}",
                f"filter: {settings.filter_min}, {settings.filter_mag}",
                "repeat: none",
            ])
            for name in sorted(page.layout.positions):
                rect = page.layout.positions[name]
                region_name, index = name, -1
                match = _INDEX_PATTERN.match(name)
                if match:
                    region_name, index = match.group(1), int(match.group(2))
                lines.extend([
                    region_name,
                    "  rotate: false",
                    f"  xy: {rect.x}, {rect.y}",
                    f"  size: {rect.width}, {rect.height}",
                    f"  orig: {rect.width}, {rect.height}",
                    "  offset: 0, 0",
                    f"  index: {index}",
                ])
        return "\n".join(lines) + "\n"

    def _write_atomically(self, output_dir: Path, atlas_name: str, pages: List[AtlasPage],
                          description: str, source_dir: Path) -> None:
        """
        Stage every file next to its destination, then swap them in.

        Pages are committed before the description so the description's
        mtime, which is the staleness watermark, never predates its pages.
        On failure the previous files are restored.
        """
        staged: List[Tuple[Path, Path]] = []
        try:
            for page in pages:
                temp_path = self._temp_path(output_dir, atlas_name)
                staged.append((temp_path, output_dir / page.file_name))
                ImageUtils.save_png(page.image, temp_path, self.compress_level)

            temp_path = self._temp_path(output_dir, atlas_name)
            staged.append((temp_path, output_dir / f"{atlas_name}{DESCRIPTION_SUFFIX}"))
            with open(temp_path, 'w', encoding='utf-8') as f:
                f.write(description)

            self._commit(staged)
            self._remove_extra_pages(output_dir, atlas_name, len(pages))
        except (OSError, ValueError) as e:
            raise PackingError(f"Failed to write atlas {atlas_name} to {output_dir}: {e}", source_dir)
        finally:
            for temp_path, _ in staged:
                if temp_path.exists():
                    temp_path.unlink()

    @staticmethod
    def _temp_path(output_dir: Path, atlas_name: str) -> Path:
        fd, name = tempfile.mkstemp(prefix=f".{atlas_name}-", suffix=".tmp", dir=output_dir)
        os.close(fd)
        return Path(name)

    @staticmethod
    def _remove_extra_pages(output_dir: Path, atlas_name: str, page_count: int) -> None:
        """Delete numbered pages left over from an earlier pack that needed more pages."""
        pattern = re.compile(rf"^{re.escape(atlas_name)}(\d+){re.escape(IMAGE_SUFFIX)}$")
        for path in output_dir.iterdir():
            match = pattern.match(path.name)
            if match and int(match.group(1)) > page_count and path.is_file():
                logger.debug(f"Removing stale atlas page {path}")
                path.unlink()

    @staticmethod
    def _commit(staged: List[Tuple[Path, Path]]) -> None:
        # Description goes aside first and comes back last
        backups: List[Tuple[Path, Path]] = []
        committed: List[Path] = []
        try:
            for _, final_path in reversed(staged):
                if final_path.exists():
                    backup_path = final_path.with_name(f".{final_path.name}.bak")
                    os.replace(final_path, backup_path)
                    backups.append((backup_path, final_path))

            for temp_path, final_path in staged:
                os.replace(temp_path, final_path)
                committed.append(final_path)
        except OSError:
            for final_path in committed:
                if final_path.exists():
                    final_path.unlink()
            for backup_path, final_path in backups:
                os.replace(backup_path, final_path)
            raise

        for backup_path, _ in backups:
            backup_path.unlink()
