#!/usr/bin/env python3
"""
Load study vignettes from a JSON file.

Usage:
    python scripts/load_vignettes.py vignettes.json
"""

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path to import ddx_survey modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from ddx_survey.config import settings
from ddx_survey.db_init import init_database
from ddx_survey.db_loader import load_vignettes


def main():
    parser = argparse.ArgumentParser(description="Load vignettes into the study database")
    parser.add_argument("json_file", type=Path, help="JSON file with a list of vignettes")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if not args.json_file.exists():
        print(f"❌ File not found: {args.json_file}")
        sys.exit(1)

    print(f"📁 Database: {settings.database_path}")
    init_database()

    try:
        ids = load_vignettes(args.json_file)
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(1)

    print(f"✅ Loaded {len(ids)} vignettes (ids {ids[0]}-{ids[-1]})" if ids else "⚠️  No vignettes in file")


if __name__ == "__main__":
    main()
