"""
Pytest configuration for neopersist tests.

Record types and runner helpers shared by the test modules live in
records.py, importable because this directory is put on the path.
"""

import sys
from pathlib import Path

# Ensure src and tests directories are in path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))
