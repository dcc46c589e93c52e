#!/usr/bin/env python3
"""
Command-line script to preview a project's workflow schedule.

Usage:
    python scripts/preview_workflow.py [--interior-pages N] [--due-date YYYY-MM-DD] [--direction backward]

Options:
    --reference-date YYYY-MM-DD  Start date for forward scheduling (defaults to today)
    --direction forward|backward Anchor at the reference date or at the due date
    Page counts, weekly speeds and batch sizes default to a new project's values.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from panelflow.datetime_utils import to_date
from panelflow.scheduling.preview import run_preview_script

INT_OPTIONS = {
    'interior_pages': 'interior_page_count',
    'covers': 'cover_count',
    'filler_pages': 'filler_page_count',
    'penciler_ppw': 'penciler_pages_per_week',
    'inker_ppw': 'inker_pages_per_week',
    'colorist_ppw': 'colorist_pages_per_week',
    'letterer_ppw': 'letterer_pages_per_week',
    'pencil_batch': 'pencil_batch_size',
    'ink_batch': 'ink_batch_size',
    'letter_batch': 'letter_batch_size',
    'approval_days': 'approval_days',
}

DATE_OPTIONS = {
    'due_date': 'due_date',
    'plot_deadline': 'plot_deadline',
    'cover_deadline': 'cover_deadline',
}


def main():
    parser = argparse.ArgumentParser(
        description='Preview a workflow schedule without touching the database'
    )
    parser.add_argument('--reference-date', type=str, help='Reference date (YYYY-MM-DD, defaults to today)')
    parser.add_argument('--direction', choices=['forward', 'backward'], help='Scheduling direction')
    for option in INT_OPTIONS:
        parser.add_argument(f"--{option.replace('_', '-')}", dest=option, type=int)
    for option in DATE_OPTIONS:
        parser.add_argument(f"--{option.replace('_', '-')}", dest=option, type=str, help='YYYY-MM-DD')

    args = parser.parse_args()

    overrides = {}
    for option, field in INT_OPTIONS.items():
        value = getattr(args, option)
        if value is not None:
            overrides[field] = value
    try:
        for option, field in DATE_OPTIONS.items():
            overrides[field] = to_date(getattr(args, option))
    except ValueError as e:
        print(f"\nFatal error: {e}", file=sys.stderr)
        sys.exit(1)

    results = run_preview_script(overrides, args.reference_date, args.direction)
    sys.exit(1 if 'error' in results else 0)


if __name__ == '__main__':
    main()
