"""
Configuration management system for the atlas pipeline.
Supports TOML and JSON configuration files with validation.
"""

import os
import json
from dataclasses import dataclass, field

# Handle tomllib import for different Python versions
try:
    import tomllib  # Python 3.11+
except ImportError:
    try:
        import tomli as tomllib  # Python < 3.11 with tomli package
    except ImportError:
        tomllib = None  # Fallback if no TOML support
from typing import Dict, List, Any, Union
from pathlib import Path

from .utils.image import ImageUtils


TEXTURE_FILTERS = (
    "Nearest",
    "Linear",
    "MipMap",
    "MipMapNearestNearest",
    "MipMapLinearNearest",
    "MipMapNearestLinear",
    "MipMapLinearLinear",
)

PIXEL_FORMATS = (
    "Alpha",
    "Intensity",
    "LuminanceAlpha",
    "RGB565",
    "RGBA4444",
    "RGB888",
    "RGBA8888",
)


@dataclass(frozen=True)
class PackSettings:
    """Packing constraints shared read-only by every target in a build pass."""
    max_width: int = 4096
    max_height: int = 4096
    combine_subdirectories: bool = True
    power_of_two: bool = True
    fast: bool = True
    filter_min: str = "MipMapLinearLinear"
    filter_mag: str = "MipMapLinearLinear"
    padding: int = 2
    format: str = "RGBA8888"

    def validate(self) -> List[str]:
        """Validate settings and return list of errors."""
        errors = []

        if self.max_width <= 0 or self.max_height <= 0:
            errors.append("max atlas size must have positive dimensions")

        if self.power_of_two:
            for name, value in (("max_width", self.max_width), ("max_height", self.max_height)):
                if value > 0 and not ImageUtils.is_power_of_two(value):
                    errors.append(f"{name} must be a power of two when power_of_two is enabled")

        if self.padding < 0:
            errors.append("padding must not be negative")

        for name, value in (("filter_min", self.filter_min), ("filter_mag", self.filter_mag)):
            if value not in TEXTURE_FILTERS:
                errors.append(f"{name} must be one of {', '.join(TEXTURE_FILTERS)}")

        if self.format not in PIXEL_FORMATS:
            errors.append(f"format must be one of {', '.join(PIXEL_FORMATS)}")

        return errors


@dataclass
class PipelineConfig:
    """Main configuration class for the atlas pipeline."""

    # Paths
    base_images_dir: str = "../Images"
    base_output_dir: str = "."
    mods_dir: str = "mods"

    # Atlas naming and sources
    atlas_name: str = "game"
    image_extensions: List[str] = field(default_factory=lambda: ["png", "jpg", "jpeg"])

    # Packing settings
    max_width: int = 4096
    max_height: int = 4096
    combine_subdirectories: bool = True
    power_of_two: bool = True
    fast: bool = True
    filter_min: str = "MipMapLinearLinear"
    filter_mag: str = "MipMapLinearLinear"
    padding: int = 2
    format: str = "RGBA8888"

    @classmethod
    def from_file(cls, config_path: Union[str, Path]) -> "PipelineConfig":
        """Load configuration from TOML or JSON file."""
        config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        if config_path.suffix.lower() == '.toml':
            return cls._from_toml(config_path)
        elif config_path.suffix.lower() == '.json':
            return cls._from_json(config_path)
        else:
            raise ValueError(f"Unsupported configuration format: {config_path.suffix}")

    @classmethod
    def _from_toml(cls, config_path: Path) -> "PipelineConfig":
        """Load configuration from TOML file."""
        if tomllib is None:
            raise ImportError("TOML support not available. Install tomli package for Python < 3.11")

        with open(config_path, 'rb') as f:
            data = tomllib.load(f)
        return cls._from_dict(data)

    @classmethod
    def _from_json(cls, config_path: Path) -> "PipelineConfig":
        """Load configuration from JSON file."""
        with open(config_path, 'r') as f:
            data = json.load(f)
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "PipelineConfig":
        """Create configuration from dictionary."""
        config_data = {}

        if 'paths' in data:
            paths = data['paths']
            config_data['base_images_dir'] = paths.get('base_images_dir', '../Images')
            config_data['base_output_dir'] = paths.get('base_output_dir', '.')
            config_data['mods_dir'] = paths.get('mods_dir', 'mods')

        if 'atlas' in data:
            atlas = data['atlas']
            config_data['atlas_name'] = atlas.get('name', 'game')
            if 'image_extensions' in atlas:
                config_data['image_extensions'] = list(atlas['image_extensions'])

        if 'packing' in data:
            packing = data['packing']
            if 'max_size' in packing:
                config_data['max_width'], config_data['max_height'] = packing['max_size']
            config_data['combine_subdirectories'] = packing.get('combine_subdirectories', True)
            config_data['power_of_two'] = packing.get('power_of_two', True)
            config_data['fast'] = packing.get('fast', True)
            config_data['filter_min'] = packing.get('filter_min', 'MipMapLinearLinear')
            config_data['filter_mag'] = packing.get('filter_mag', 'MipMapLinearLinear')
            config_data['padding'] = packing.get('padding', 2)
            config_data['format'] = packing.get('format', 'RGBA8888')

        return cls(**config_data)

    @classmethod
    def default(cls) -> "PipelineConfig":
        """Create default configuration with environment variable overrides."""
        return cls._apply_env_overrides(cls())

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Create configuration from environment variables only."""
        config = cls()
        return cls._apply_env_overrides(config)

    @classmethod
    def _apply_env_overrides(cls, config: "PipelineConfig") -> "PipelineConfig":
        """Apply environment variable overrides to configuration."""

        # Paths
        if os.getenv('ATLAS_PIPELINE_BASE_IMAGES_DIR'):
            config.base_images_dir = os.getenv('ATLAS_PIPELINE_BASE_IMAGES_DIR', '../Images')

        if os.getenv('ATLAS_PIPELINE_BASE_OUTPUT_DIR'):
            config.base_output_dir = os.getenv('ATLAS_PIPELINE_BASE_OUTPUT_DIR', '.')

        if os.getenv('ATLAS_PIPELINE_MODS_DIR'):
            config.mods_dir = os.getenv('ATLAS_PIPELINE_MODS_DIR', 'mods')

        # Atlas naming and sources
        if os.getenv('ATLAS_PIPELINE_ATLAS_NAME'):
            config.atlas_name = os.getenv('ATLAS_PIPELINE_ATLAS_NAME', 'game')

        if os.getenv('ATLAS_PIPELINE_IMAGE_EXTENSIONS'):
            config.image_extensions = [
                ext.strip() for ext in os.getenv('ATLAS_PIPELINE_IMAGE_EXTENSIONS', '').split(',')
                if ext.strip()
            ]

        # Packing settings
        if os.getenv('ATLAS_PIPELINE_MAX_WIDTH'):
            config.max_width = int(os.getenv('ATLAS_PIPELINE_MAX_WIDTH', '4096'))

        if os.getenv('ATLAS_PIPELINE_MAX_HEIGHT'):
            config.max_height = int(os.getenv('ATLAS_PIPELINE_MAX_HEIGHT', '4096'))

        if os.getenv('ATLAS_PIPELINE_COMBINE_SUBDIRECTORIES'):
            config.combine_subdirectories = os.getenv('ATLAS_PIPELINE_COMBINE_SUBDIRECTORIES', 'true').lower() == 'true'

        if os.getenv('ATLAS_PIPELINE_POWER_OF_TWO'):
            config.power_of_two = os.getenv('ATLAS_PIPELINE_POWER_OF_TWO', 'true').lower() == 'true'

        if os.getenv('ATLAS_PIPELINE_FAST'):
            config.fast = os.getenv('ATLAS_PIPELINE_FAST', 'true').lower() == 'true'

        if os.getenv('ATLAS_PIPELINE_FILTER'):
            config.filter_min = config.filter_mag = os.getenv('ATLAS_PIPELINE_FILTER', 'MipMapLinearLinear')

        if os.getenv('ATLAS_PIPELINE_PADDING'):
            config.padding = int(os.getenv('ATLAS_PIPELINE_PADDING', '2'))

        return config

    def pack_settings(self) -> PackSettings:
        """Build the immutable packing settings for one build pass."""
        return PackSettings(
            max_width=self.max_width,
            max_height=self.max_height,
            combine_subdirectories=self.combine_subdirectories,
            power_of_two=self.power_of_two,
            fast=self.fast,
            filter_min=self.filter_min,
            filter_mag=self.filter_mag,
            padding=self.padding,
            format=self.format,
        )

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.atlas_name:
            errors.append("atlas_name must not be empty")
        elif os.sep in self.atlas_name or "/" in self.atlas_name:
            errors.append("atlas_name must be a plain file name")

        if not self.image_extensions:
            errors.append("image_extensions must list at least one extension")

        errors.extend(self.pack_settings().validate())

        return errors
