"""
Unit tests for mod build target discovery.
"""

import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from atlas_pipeline.processing.mods import (
    MOD_IMAGES_DIR,
    discover_mod_targets,
    list_mod_directories,
    mod_build_target,
)


class TestModDiscovery(unittest.TestCase):
    """Test which mod directories become build targets."""

    def setUp(self):
        """Set up a mods directory."""
        self.temp_dir = Path(tempfile.mkdtemp())
        self.mods_root = self.temp_dir / "mods"
        self.mods_root.mkdir()

    def tearDown(self):
        """Clean up test environment."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def make_mod(self, name: str, with_images: bool = True) -> Path:
        mod_dir = self.mods_root / name
        mod_dir.mkdir()
        if with_images:
            (mod_dir / MOD_IMAGES_DIR).mkdir()
        return mod_dir

    def test_missing_mods_root(self):
        """Test that a missing mods root yields no targets."""
        self.assertEqual(discover_mod_targets(self.temp_dir / "absent", "game"), [])

    def test_mods_root_is_a_file(self):
        """Test that a file in place of the mods root yields no targets."""
        path = self.temp_dir / "mods.txt"
        path.write_text("not a directory")
        self.assertEqual(discover_mod_targets(path, "game"), [])

    def test_qualifying_mod_becomes_target(self):
        """Test that a mod with Images is always a target."""
        mod_dir = self.make_mod("Vikings")

        targets = discover_mod_targets(self.mods_root, "game")

        self.assertEqual(len(targets), 1)
        self.assertEqual(targets[0].source_dir, mod_dir / "Images")
        self.assertEqual(targets[0].output_dir, mod_dir)
        self.assertEqual(targets[0].atlas_name, "game")
        self.assertEqual(targets[0].label, "mod:Vikings")

    def test_mod_without_images_skipped(self):
        """Test that a mod lacking an Images subdirectory is never a target."""
        self.make_mod("RulesOnly", with_images=False)
        self.assertEqual(discover_mod_targets(self.mods_root, "game"), [])

    def test_mod_with_images_file_skipped(self):
        """Test that a file named Images does not qualify."""
        mod_dir = self.make_mod("Odd", with_images=False)
        (mod_dir / "Images").write_text("not a directory")
        self.assertEqual(discover_mod_targets(self.mods_root, "game"), [])

    def test_lowercase_images_not_matched_on_case_sensitive_fs(self):
        """Test that the Images directory name is exact where the filesystem is case-sensitive."""
        mod_dir = self.make_mod("Lower", with_images=False)
        (mod_dir / "images").mkdir()
        if (mod_dir / "Images").exists():
            self.skipTest("case-insensitive filesystem")
        self.assertEqual(discover_mod_targets(self.mods_root, "game"), [])

    def test_hidden_mod_skipped(self):
        """Test that hidden mod directories are never targets."""
        self.make_mod(".Hidden")
        self.assertEqual(discover_mod_targets(self.mods_root, "game"), [])

    def test_files_in_mods_root_ignored(self):
        """Test that plain files in the mods root are ignored."""
        (self.mods_root / "readme.md").write_text("mods")
        self.make_mod("Real")
        self.assertEqual([t.label for t in discover_mod_targets(self.mods_root, "game")], ["mod:Real"])

    def test_targets_in_stable_name_order(self):
        """Test that mods are returned in directory name order."""
        for name in ["Zulus", "Aztecs", "Mongols"]:
            self.make_mod(name)
        self.make_mod("Empty", with_images=False)

        labels = [target.label for target in discover_mod_targets(self.mods_root, "game")]
        self.assertEqual(labels, ["mod:Aztecs", "mod:Mongols", "mod:Zulus"])

    def test_unreadable_mods_root_skipped(self):
        """Test that a mods root that cannot be listed yields no targets."""
        self.make_mod("Vikings")
        with patch.object(Path, "iterdir", side_effect=PermissionError("denied")):
            self.assertEqual(list_mod_directories(self.mods_root), [])

    def test_mod_build_target_custom_name(self):
        """Test building a target with another atlas name."""
        target = mod_build_target(Path("mods/X"), "tiles")
        self.assertEqual(target.description_path, Path("mods/X/tiles.atlas"))
        self.assertEqual(target.image_path, Path("mods/X/tiles.png"))


if __name__ == '__main__':
    unittest.main()
