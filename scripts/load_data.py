#!/usr/bin/env python3
"""Load synthetic control objects and facial features vectors into ClickHouse.

Runs the ``ffv-gen`` entry point from a source checkout:

    python scripts/load_data.py --config config.example.yaml
    python scripts/load_data.py --config config.example.yaml --n 10 --batch-size 3 --dry-run
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from ffv_gen.cli import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
