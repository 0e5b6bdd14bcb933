#!/usr/bin/env python3
"""
Run the atlas pipeline CLI from a source checkout.

    python scripts/atlas_pipeline.py build
"""

import sys
from pathlib import Path

# atlas_pipeline lives next to this script
scripts_dir = Path(__file__).parent
if str(scripts_dir) not in sys.path:
    sys.path.insert(0, str(scripts_dir))

from atlas_pipeline.cli import app

if __name__ == "__main__":
    app()
