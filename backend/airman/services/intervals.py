from __future__ import annotations

import re

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def parse_time_to_minutes(value: str) -> int:
    if not isinstance(value, str) or not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def overlaps(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open ``[start, end)`` overlap test; adjacent intervals do not overlap.

    ``start < end`` is not checked here.
    """
    return start_a < end_b and start_b < end_a


def time_ranges_overlap(start_a: str, end_a: str, start_b: str, end_b: str) -> bool:
    return overlaps(
        parse_time_to_minutes(start_a),
        parse_time_to_minutes(end_a),
        parse_time_to_minutes(start_b),
        parse_time_to_minutes(end_b),
    )
