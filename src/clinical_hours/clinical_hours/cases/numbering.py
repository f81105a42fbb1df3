from __future__ import annotations

from datetime import date

from ..core.constants import CASE_NUMBER_PREFIX
from .repository import CaseNumberCounter


def case_period(day: date) -> str:
    return day.strftime("%y%m")


def format_case_number(prefix: str, day: date, sequence: int) -> str:
    """``PREFIX-YYMM-NNNN``; the sequence restarts every month."""
    return f"{prefix}-{case_period(day)}-{int(sequence):04d}"


class CaseNumberGenerator:
    def __init__(self, counter: CaseNumberCounter, *, prefix: str = CASE_NUMBER_PREFIX):
        self._counter = counter
        self._prefix = prefix

    def next_number(self, day: date) -> str:
        return format_case_number(self._prefix, day, self._counter.next_sequence(case_period(day)))
