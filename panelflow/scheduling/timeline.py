"""
Deadline / distribution timeline calculator.

Pure functions: a single anchor date plus per-channel processing durations
map to five milestone dates, either forward from the completion date or
backward from the target availability date. No database dependencies.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional

from panelflow.datetime_utils import add_days, format_date, format_date_display, subtract_days, to_date
from panelflow.errors import InvalidDuration, InvalidTimelineInput
from panelflow.scheduling.config import SchedulingConfig


class CalculationDirection(Enum):
    FORWARD = "forward"
    BACKWARD = "backward"


class DistributionMethod(Enum):
    DISTRIBUTOR = "distributor"
    DIRECT = "direct"
    FULFILLMENT = "fulfillment"
    EVENT = "event"


DURATION_FIELDS = (
    'printer_queue_days',
    'printing_days',
    'shipping_days',
    'distributor_processing_days',
    'fulfillment_processing_days',
)


@dataclass
class TimelineFormData:
    """Input to the calculator. `start_date` anchors forward runs, `target_date` backward runs."""
    direction: CalculationDirection = CalculationDirection.FORWARD
    distribution_method: DistributionMethod = DistributionMethod.DISTRIBUTOR
    start_date: Optional[date] = None
    target_date: Optional[date] = None
    printer_queue_days: int = SchedulingConfig.PRINTER_QUEUE_DAYS
    printing_days: int = SchedulingConfig.PRINTING_DAYS
    shipping_days: int = SchedulingConfig.SHIPPING_DAYS
    distributor_processing_days: int = SchedulingConfig.DISTRIBUTOR_PROCESSING_DAYS
    fulfillment_processing_days: int = SchedulingConfig.FULFILLMENT_PROCESSING_DAYS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TimelineFormData':
        """
        Build form data from a JSON payload.

        Missing durations fall back to the defaults. Dates are ISO strings.

        Raises:
            InvalidTimelineInput: unknown direction/method or unparseable date
        """
        try:
            direction = CalculationDirection(data.get('direction', CalculationDirection.FORWARD.value))
        except ValueError:
            raise InvalidTimelineInput(f"direction must be 'forward' or 'backward', got {data.get('direction')!r}")

        try:
            method = DistributionMethod(data.get('distribution_method', DistributionMethod.DISTRIBUTOR.value))
        except ValueError:
            valid = ', '.join(m.value for m in DistributionMethod)
            raise InvalidTimelineInput(
                f"distribution_method must be one of: {valid}. Got: {data.get('distribution_method')!r}"
            )

        try:
            start_date = to_date(data.get('start_date'))
            target_date = to_date(data.get('target_date'))
        except ValueError as e:
            raise InvalidTimelineInput(str(e))

        durations = {field: data[field] for field in DURATION_FIELDS if data.get(field) is not None}

        return cls(
            direction=direction,
            distribution_method=method,
            start_date=start_date,
            target_date=target_date,
            **durations,
        )


@dataclass
class TimelineResult:
    completion_date: date
    printer_queue_date: date
    printing_complete_date: date
    shipping_arrival_date: date
    in_store_date: date

    def to_dict(self) -> dict:
        """Serialize for JSON response"""
        return {
            'completion_date': format_date(self.completion_date),
            'printer_queue_date': format_date(self.printer_queue_date),
            'printing_complete_date': format_date(self.printing_complete_date),
            'shipping_arrival_date': format_date(self.shipping_arrival_date),
            'in_store_date': format_date(self.in_store_date),
        }


def validate_duration(field: str, value) -> int:
    """
    Check a day count.

    Raises:
        InvalidDuration: value is not an integer (bools rejected) or is negative
    """
    if isinstance(value, bool) or not isinstance(value, int):
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        else:
            raise InvalidDuration(field, value)
    if value < 0:
        raise InvalidDuration(field, value)
    return value


def channel_processing_days(form: TimelineFormData) -> int:
    """
    Post-shipping processing days for the distribution channel.

    Direct and event sales have no extra processing time.
    """
    method = form.distribution_method
    if method is DistributionMethod.DISTRIBUTOR:
        return validate_duration('distributor_processing_days', form.distributor_processing_days)
    elif method is DistributionMethod.FULFILLMENT:
        return validate_duration('fulfillment_processing_days', form.fulfillment_processing_days)
    elif method in (DistributionMethod.DIRECT, DistributionMethod.EVENT):
        return 0
    raise InvalidTimelineInput(f"Unsupported distribution method: {method!r}")


def calculate_timeline(form: TimelineFormData) -> TimelineResult:
    """
    Calculate the five print/distribution milestones.

    Forward: completion -> +printer queue -> +printing -> +shipping -> +channel processing.
    Backward: the exact mirror, subtracting from the target in-store date.

    Args:
        form: Calculator input

    Returns:
        TimelineResult with every date populated

    Raises:
        InvalidDuration: a day count is negative or not a whole number
        InvalidTimelineInput: the anchor date for the chosen direction is missing
    """
    printer_queue_days = validate_duration('printer_queue_days', form.printer_queue_days)
    printing_days = validate_duration('printing_days', form.printing_days)
    shipping_days = validate_duration('shipping_days', form.shipping_days)
    processing_days = channel_processing_days(form)

    if form.direction is CalculationDirection.FORWARD:
        if form.start_date is None:
            raise InvalidTimelineInput("start_date is required for a forward calculation")
        completion_date = form.start_date
        printer_queue_date = add_days(completion_date, printer_queue_days)
        printing_complete_date = add_days(printer_queue_date, printing_days)
        shipping_arrival_date = add_days(printing_complete_date, shipping_days)
        in_store_date = add_days(shipping_arrival_date, processing_days)

    elif form.direction is CalculationDirection.BACKWARD:
        if form.target_date is None:
            raise InvalidTimelineInput("target_date is required for a backward calculation")
        in_store_date = form.target_date
        shipping_arrival_date = subtract_days(in_store_date, processing_days)
        printing_complete_date = subtract_days(shipping_arrival_date, shipping_days)
        printer_queue_date = subtract_days(printing_complete_date, printing_days)
        completion_date = subtract_days(printer_queue_date, printer_queue_days)

    else:
        raise InvalidTimelineInput(f"Unsupported direction: {form.direction!r}")

    return TimelineResult(
        completion_date=completion_date,
        printer_queue_date=printer_queue_date,
        printing_complete_date=printing_complete_date,
        shipping_arrival_date=shipping_arrival_date,
        in_store_date=in_store_date,
    )


AVAILABILITY_LABELS = {
    DistributionMethod.DISTRIBUTOR: ('Distributor', 'In-Store Date'),
    DistributionMethod.FULFILLMENT: ('Destination', 'Customer Shipment Date'),
    DistributionMethod.DIRECT: ('Destination', 'Availability Date'),
    DistributionMethod.EVENT: ('Destination', 'Availability Date'),
}

CHANNEL_DESCRIPTIONS = {
    DistributionMethod.DISTRIBUTOR: "Distribution through distributor",
    DistributionMethod.DIRECT: "Direct to customers",
    DistributionMethod.FULFILLMENT: "Through fulfillment center",
    DistributionMethod.EVENT: "For an event",
}


def format_timeline_summary(form: TimelineFormData, result: TimelineResult) -> str:
    """Plain-text summary of a calculation, suitable for sharing."""
    if form.direction is CalculationDirection.FORWARD:
        direction_text = "Forward calculation (completion to in-store)"
    else:
        direction_text = "Backward calculation (in-store to completion)"

    arrival_label, availability_label = AVAILABILITY_LABELS[form.distribution_method]

    lines = [
        "Comic Book Timeline Calculator Results:",
        direction_text,
        CHANNEL_DESCRIPTIONS[form.distribution_method],
        "",
        "Important Dates:",
        f"- Completion Date: {format_date_display(result.completion_date)}",
        f"- Printer Queue Date: {format_date_display(result.printer_queue_date)}",
        f"- Printing Complete: {format_date_display(result.printing_complete_date)}",
        f"- Arrival at {arrival_label}: {format_date_display(result.shipping_arrival_date)}",
        f"- {availability_label}: {format_date_display(result.in_store_date)}",
    ]
    return "\n".join(lines)
