"""Decide whether a freshly extracted sample differs from the stored one."""
from typing import Optional

from covidstats.parse.models import NUMERIC_FIELDS, PartialSample


def changed_fields(previous: PartialSample, current: PartialSample) -> list[str]:
    """Names of the numeric fields whose values differ. ``None`` equals ``None``."""
    return [
        name
        for name, old, new in zip(NUMERIC_FIELDS, previous.numbers(), current.numbers())
        if old != new
    ]


def changed(previous: Optional[PartialSample], current: PartialSample) -> bool:
    """True when ``current`` must be persisted.

    The first observation (no previous sample) is always persisted.
    Timestamp and country never take part in the comparison.
    """
    if previous is None:
        return True
    return bool(changed_fields(previous, current))
