from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from .model import net_hours


class HoursCalculator(ABC):
    """Calculator interface (Strategy Pattern for accrued hours)."""

    @abstractmethod
    def session_hours(self, *, time_in: datetime, time_out: datetime, break_minutes: int) -> float:
        raise NotImplementedError


class StandardHoursCalculator(HoursCalculator):
    """Standard rule: (out - in) - break_minutes, not below 0."""

    def session_hours(self, *, time_in: datetime, time_out: datetime, break_minutes: int) -> float:
        return net_hours(time_in, time_out, break_minutes)
