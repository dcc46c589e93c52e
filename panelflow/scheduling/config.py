"""
Scheduling configuration module.

Fixed stage durations and the defaults a new project is created with.
"""

from typing import Dict


class SchedulingConfig:
    """
    Configuration for workflow and timeline calculations.

    Durations are calendar days. Page-driven stages are converted with
    ceil(pages * 7 / pages_per_week), i.e. always rounded up to a whole day.
    """

    DAYS_PER_WEEK: int = 7

    # Fixed-length stages
    PLOT_DURATION_DAYS: int = 7
    SCRIPT_DURATION_DAYS: int = 14
    DAYS_PER_COVER: int = 7
    MIN_COVER_DURATION_DAYS: int = 7
    PROOF_DURATION_DAYS: int = 7
    PRODUCTION_DURATION_DAYS: int = 7

    # Filler/editorial pages are written at a fixed rate
    FILLER_PAGES_PER_WEEK: int = 5

    # Print logistics (shared with the deadline calculator)
    PRINTER_QUEUE_DAYS: int = 7
    PRINTING_DAYS: int = 14
    SHIPPING_DAYS: int = 5
    DISTRIBUTOR_PROCESSING_DAYS: int = 7
    FULFILLMENT_PROCESSING_DAYS: int = 3

    # Defaults for a newly created project
    PROJECT_DEFAULTS: Dict[str, int] = {
        'interior_page_count': 22,
        'cover_count': 1,
        'filler_page_count': 0,
        'penciler_pages_per_week': 5,
        'inker_pages_per_week': 7,
        'colorist_pages_per_week': 10,
        'letterer_pages_per_week': 15,
        'pencil_batch_size': 5,
        'ink_batch_size': 5,
        'letter_batch_size': 5,
        'approval_days': 2,
    }

    # Progress classifier: 5 working days out of 7
    WORKING_DAYS_PER_WEEK: int = 5

    @classmethod
    def print_duration_days(cls) -> int:
        """Printer queue plus press time for the workflow's print stage."""
        return cls.PRINTER_QUEUE_DAYS + cls.PRINTING_DAYS

    @classmethod
    def cover_duration_days(cls, cover_count: int) -> int:
        return max(cls.MIN_COVER_DURATION_DAYS, cover_count * cls.DAYS_PER_COVER)
