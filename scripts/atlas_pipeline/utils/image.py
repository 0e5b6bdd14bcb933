"""
Image loading and sizing helpers for atlas packing.
"""

from typing import Union
from pathlib import Path
from PIL import Image


class ImageUtils:
    """Utility class for the image operations the packer needs."""

    @staticmethod
    def load_image(path: Union[str, Path]) -> Image.Image:
        """
        Load an image from disk and decode it fully.

        Args:
            path: Image file path

        Returns:
            RGBA PIL Image detached from the source file

        Raises:
            ValueError: If the file cannot be decoded as an image
        """
        try:
            with Image.open(path) as image:
                image.load()
                return ImageUtils.ensure_rgba(image)
        except (OSError, SyntaxError) as e:
            raise ValueError(f"Cannot load image from path '{path}': {e}")

    @staticmethod
    def save_png(image: Image.Image, path: Union[str, Path], compress_level: int = 6) -> None:
        """Save image as PNG; the target format is fixed so temporary names can have any suffix."""
        image.save(path, format='PNG', compress_level=compress_level)

    @staticmethod
    def ensure_rgba(image: Image.Image) -> Image.Image:
        """Convert image to RGBA mode if not already."""
        if image.mode != 'RGBA':
            return image.convert('RGBA')
        return image.copy()

    @staticmethod
    def is_power_of_two(n: int) -> bool:
        """Check if number is a power of two."""
        return n > 0 and (n & (n - 1)) == 0

    @staticmethod
    def next_power_of_two(n: int) -> int:
        """Find the next power of two greater than or equal to n."""
        if n <= 0:
            return 1

        if n & (n - 1) == 0:
            return n

        power = 1
        while power < n:
            power <<= 1

        return power
