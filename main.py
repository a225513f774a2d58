#!/usr/bin/env python3
"""LC-3 VM Command Line Interface.

Run an object image without installing the package.

Usage:
    python main.py programs/hello.obj
    python main.py programs/hello.obj --trace
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from lc3_vm.cli import main


if __name__ == "__main__":
    sys.exit(main())
