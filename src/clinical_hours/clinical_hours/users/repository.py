from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import User


class UserRepository(Protocol):
    """Repository interface for User.

    Note (DIP): services depend on this interface, not on a concrete database.
    """

    def get_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def list_students(
        self,
        *,
        batch: Optional[str] = None,
        semester: Optional[int] = None,
        search: Optional[str] = None,
        supervisor_id: Optional[int] = None,
        active_only: bool = True,
    ) -> Sequence[User]:
        raise NotImplementedError

    def update_profile(self, user_id: int, *, changes: dict) -> bool:
        """Apply whitelisted profile fields. Never touches completed_hours."""

        raise NotImplementedError

    def set_supervisor(self, user_id: int, *, supervisor_id: int) -> bool:
        raise NotImplementedError

    def set_allotted_hours(self, user_id: int, *, hours: float) -> bool:
        raise NotImplementedError

    def set_active(self, user_id: int, *, is_active: bool) -> bool:
        raise NotImplementedError
