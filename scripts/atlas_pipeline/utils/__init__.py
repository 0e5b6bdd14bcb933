"""
Utility modules for source tree scanning and image handling.
"""

from .image import ImageUtils
from .tree import SourceFile, scan, scan_images, is_hidden, DEFAULT_IMAGE_EXTENSIONS

__all__ = [
    "ImageUtils",
    "SourceFile",
    "scan",
    "scan_images",
    "is_hidden",
    "DEFAULT_IMAGE_EXTENSIONS",
]
