"""Shared test fixtures and measurement builders."""

from tests.fixtures.measurements import (
    FIXED_NOW,
    PERIOD,
    URL,
    fixed_clock,
    make_measurement_payload,
    make_history,
)

__all__ = [
    "FIXED_NOW",
    "PERIOD",
    "URL",
    "fixed_clock",
    "make_measurement_payload",
    "make_history",
]
