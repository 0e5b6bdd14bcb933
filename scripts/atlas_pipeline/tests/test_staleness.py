"""
Unit tests for atlas staleness detection.
"""

import os
import shutil
import tempfile
import time
import unittest
from pathlib import Path

from atlas_pipeline.processing.staleness import (
    BuildTarget,
    SourceDirectoryError,
    find_atlas_output,
    is_stale,
    newer_sources,
)

SECOND = 1_000_000_000


def set_mtime(path: Path, mtime_ns: int) -> None:
    os.utime(path, ns=(mtime_ns, mtime_ns))


class StalenessTestCase(unittest.TestCase):
    """Common fixture: a source directory and an output directory."""

    def setUp(self):
        """Set up test environment."""
        self.temp_dir = Path(tempfile.mkdtemp())
        self.source_dir = self.temp_dir / "Images"
        self.output_dir = self.temp_dir / "out"
        self.source_dir.mkdir()
        self.output_dir.mkdir()
        self.target = BuildTarget(self.source_dir, self.output_dir, "game")
        self.watermark = time.time_ns() - 1000 * SECOND

    def tearDown(self):
        """Clean up test environment."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def write_atlas(self, mtime_ns: int = None) -> None:
        mtime_ns = self.watermark if mtime_ns is None else mtime_ns
        self.target.description_path.write_text("game.png\n")
        self.target.image_path.write_bytes(b"png")
        set_mtime(self.target.description_path, mtime_ns)
        set_mtime(self.target.image_path, mtime_ns)

    def write_source(self, relative: str, mtime_ns: int) -> Path:
        path = self.source_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"image")
        set_mtime(path, mtime_ns)
        return path


class TestBuildTarget(unittest.TestCase):
    """Test derived output paths."""

    def test_output_paths(self):
        """Test description and image paths."""
        target = BuildTarget(Path("mods/m/Images"), Path("mods/m"), "game")
        self.assertEqual(target.description_path, Path("mods/m/game.atlas"))
        self.assertEqual(target.image_path, Path("mods/m/game.png"))

    def test_display_name_defaults_to_source(self):
        """Test display name fallback."""
        target = BuildTarget(Path("Images"), Path("."), "game")
        self.assertEqual(target.display_name, "Images")
        self.assertEqual(BuildTarget(Path("Images"), Path("."), "game", "base").display_name, "base")


class TestFindAtlasOutput(StalenessTestCase):
    """Test locating existing atlas artifacts."""

    def test_no_output(self):
        """Test missing output."""
        self.assertIsNone(find_atlas_output(self.target))

    def test_description_without_image(self):
        """Test that a lone description does not count as output."""
        self.target.description_path.write_text("game.png\n")
        self.assertIsNone(find_atlas_output(self.target))

    def test_image_without_description(self):
        """Test that a lone image does not count as output."""
        self.target.image_path.write_bytes(b"png")
        self.assertIsNone(find_atlas_output(self.target))

    def test_watermark_is_description_mtime(self):
        """Test that the description file's mtime is the watermark."""
        self.write_atlas()
        set_mtime(self.target.image_path, self.watermark + 50 * SECOND)

        output = find_atlas_output(self.target)
        self.assertEqual(output.modified_time, self.watermark)
        self.assertEqual(output.image_path, self.target.image_path)


class TestIsStale(StalenessTestCase):
    """Test the staleness decision."""

    def test_missing_output_is_stale_for_empty_source(self):
        """Test bootstrap with an empty source directory."""
        self.assertTrue(is_stale(self.target))

    def test_missing_output_is_stale_with_old_sources(self):
        """Test bootstrap regardless of source contents."""
        self.write_source("old.png", self.watermark - 100 * SECOND)
        self.assertTrue(is_stale(self.target))

    def test_missing_image_is_stale(self):
        """Test that losing only the image forces a repack."""
        self.write_atlas()
        self.target.image_path.unlink()
        self.assertTrue(is_stale(self.target))

    def test_empty_source_with_atlas_is_fresh(self):
        """Test that an empty source directory never invalidates an atlas."""
        self.write_atlas()
        self.assertFalse(is_stale(self.target))

    def test_older_sources_are_fresh(self):
        """Test that sources older than the atlas do not invalidate it."""
        self.write_source("a.png", self.watermark - 10 * SECOND)
        self.write_source("units/b.jpg", self.watermark - 5 * SECOND)
        self.write_atlas()
        self.assertFalse(is_stale(self.target))

    def test_equal_mtime_is_fresh(self):
        """Test that only strictly newer sources invalidate."""
        self.write_source("a.png", self.watermark)
        self.write_atlas()
        self.assertFalse(is_stale(self.target))

    def test_touched_qualifying_file_is_stale(self):
        """Test that touching any one qualifying file invalidates the atlas."""
        for extension in ["png", "jpg", "jpeg"]:
            with self.subTest(extension=extension):
                path = self.write_source(f"deep/nested/file.{extension}", self.watermark - SECOND)
                self.write_atlas()
                self.assertFalse(is_stale(self.target))

                set_mtime(path, self.watermark + SECOND)
                self.assertTrue(is_stale(self.target))
                path.unlink()

    def test_touched_non_qualifying_file_is_fresh(self):
        """Test that non-image files never invalidate."""
        self.write_source("readme.txt", self.watermark + 100 * SECOND)
        self.write_source("atlas.json", self.watermark + 100 * SECOND)
        self.write_atlas()
        self.assertFalse(is_stale(self.target))

    def test_extension_filter_is_case_sensitive(self):
        """Test that upper-case extensions are ignored by default."""
        self.write_source("LOUD.PNG", self.watermark + 100 * SECOND)
        self.write_atlas()
        self.assertFalse(is_stale(self.target))
        self.assertTrue(is_stale(self.target, ["PNG"]))

    def test_missing_source_directory_raises(self):
        """Test that a missing source directory is a caller error."""
        shutil.rmtree(self.source_dir)
        self.write_atlas()
        with self.assertRaises(SourceDirectoryError):
            is_stale(self.target)

    def test_other_targets_do_not_affect_staleness(self):
        """Test that a newer file in a sibling target is ignored."""
        other_source = self.temp_dir / "OtherImages"
        other_source.mkdir()
        sibling = other_source / "new.png"
        sibling.write_bytes(b"x")
        set_mtime(sibling, self.watermark + 100 * SECOND)

        self.write_source("a.png", self.watermark - SECOND)
        self.write_atlas()

        other = BuildTarget(other_source, self.temp_dir / "other_out", "game")
        self.assertTrue(is_stale(other))
        self.assertFalse(is_stale(self.target))


class TestNewerSources(StalenessTestCase):
    """Test listing files that invalidate an atlas."""

    def test_all_qualifying_files_without_atlas(self):
        """Test that every image is listed when there is no atlas."""
        self.write_source("a.png", self.watermark)
        self.write_source("b.txt", self.watermark)
        names = [source.path.name for source in newer_sources(self.target)]
        self.assertEqual(names, ["a.png"])

    def test_only_newer_files_with_atlas(self):
        """Test that only files newer than the watermark are listed."""
        self.write_source("old.png", self.watermark - SECOND)
        self.write_source("new1.png", self.watermark + SECOND)
        self.write_source("new2.jpg", self.watermark + 2 * SECOND)
        self.write_atlas()

        names = sorted(source.path.name for source in newer_sources(self.target))
        self.assertEqual(names, ["new1.png", "new2.jpg"])


if __name__ == '__main__':
    unittest.main()
