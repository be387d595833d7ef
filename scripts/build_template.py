#!/usr/bin/env python3
"""
Write the built-in timecard template to disk.

Usage:
  python scripts/build_template.py [--layout per_job_block] [--output PATH]
"""

import argparse
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config.settings import DEFAULT_TEMPLATE_PATH
from timecard_engine.cell_mapper import load_layout
from timecard_engine.errors import TemplateLayoutError
from timecard_engine.template import build_default_template


def main() -> int:
    parser = argparse.ArgumentParser(description="Write the built-in timecard template")
    parser.add_argument("--layout", help="Layout name from settings (default: ACTIVE_TEMPLATE_LAYOUT)")
    parser.add_argument("--output", default=str(project_root / DEFAULT_TEMPLATE_PATH), help="Output .xlsx path")
    args = parser.parse_args()

    try:
        layout = load_layout(args.layout)
    except TemplateLayoutError as e:
        print(f"Error: {e}")
        return 1

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(build_default_template(layout))
    print(f"Wrote {layout.name} template to {output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
