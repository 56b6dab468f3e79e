from __future__ import annotations

from typing import Any

from ..constants import ADMIN


class ProgramAccessError(PermissionError):
    """Raised when a user may not see or change a program."""


def is_admin(user: Any) -> bool:
    return bool(user and getattr(user, "role", None) == ADMIN)


def can_access_program(user: Any, program: Any) -> bool:
    """Admins see every program; everyone else only the ones they conduct."""

    if not user or program is None:
        return False
    if is_admin(user):
        return True
    return getattr(program, "conducted_by", None) == getattr(user, "id", None)


def require_program_access(user: Any, program: Any) -> None:
    if not can_access_program(user, program):
        raise ProgramAccessError("Access denied")
