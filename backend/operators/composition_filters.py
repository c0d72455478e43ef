"""Whole-composition filter validation and application."""

from __future__ import annotations

import logging

from models.timeline_models import CompositionFilters, TimelineData
from operators.timeline_operator import InvalidOperationError
from operators.timeline_utils import filters_are_identity

logger = logging.getLogger(__name__)


# field -> (min, max, message)
FILTER_RANGES: dict[str, tuple[float, float, str]] = {
    "contrast": (0.5, 2.0, "Contrast must be between 0.5 and 2.0"),
    "saturation": (0.0, 3.0, "Saturation must be between 0 and 3.0"),
    "brightness": (0.5, 2.0, "Brightness must be between 0.5 and 2.0"),
    "hue_rotate": (-180.0, 180.0, "Hue rotation must be between -180 and 180 degrees"),
    "sepia": (0.0, 1.0, "Sepia must be between 0 and 1"),
    "grayscale": (0.0, 1.0, "Grayscale must be between 0 and 1"),
    "invert": (0.0, 1.0, "Invert must be between 0 and 1"),
    "blur": (0.0, 10.0, "Blur must be between 0 and 10 pixels"),
}


def validate_filters(filters: CompositionFilters) -> None:
    for name, (low, high, message) in FILTER_RANGES.items():
        value = getattr(filters, name)
        if value is not None and not low <= value <= high:
            raise InvalidOperationError(message)


def describe_filters(filters: CompositionFilters) -> str:
    parts = [
        f"{name}={value:g}"
        for name, value in filters.model_dump(exclude_none=True).items()
    ]
    return ", ".join(parts) if parts else "none"


def apply_filters(timeline: TimelineData, filters: CompositionFilters) -> str:
    """
    Merge ``filters`` over the current ones; unset fields keep their value.

    Returns a human-readable message.
    """
    validate_filters(filters)
    current = timeline.composition_filters or CompositionFilters()
    merged = current.model_copy(update=filters.model_dump(exclude_none=True))
    timeline.composition_filters = None if filters_are_identity(merged) else merged

    message = f"Applied composition filters: {describe_filters(filters)}"
    logger.info(message)
    return message


def clear_filters(timeline: TimelineData) -> str:
    timeline.composition_filters = None
    return "Cleared composition filters"
