from datetime import datetime


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Return True when the two ranges share an instant.

    Touching ranges do not overlap: an appointment ending at 10:00 leaves
    10:00 free for the next one.
    """
    return a_start < b_end and a_end > b_start


def duration_minutes(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60
