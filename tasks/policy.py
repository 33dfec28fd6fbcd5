"""
Who may do what to which task.

Every task operation goes through ``authorize``; nothing else in the app
compares roles. The functions here never touch the database: callers hand in
the principal and the already-loaded task or user.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from .exceptions import Forbidden, Unauthorized
from .models import Role


class Action(str, Enum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"


@dataclass(frozen=True)
class Principal:
    user_id: int
    name: str
    email: str
    role: str

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(user_id=user.pk, name=user.name, email=user.email, role=str(user.role))

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def _admin_rule(principal: Principal, action: Action, task) -> bool:
    return True


def _user_rule(principal: Principal, action: Action, task) -> bool:
    if action == Action.CREATE:
        return True
    return task is not None and task.assigned_person_id == principal.user_id


RULES: Dict[str, Callable[[Principal, Action, object], bool]] = {
    Role.ADMIN.value: _admin_rule,
    Role.USER.value: _user_rule,
}


def can_access(principal: Optional[Principal], action: Action, task=None) -> bool:
    if principal is None:
        return False
    rule = RULES.get(principal.role)
    if rule is None:
        return False
    return rule(principal, Action(action), task)


def require_principal(principal: Optional[Principal]) -> Principal:
    if principal is None:
        raise Unauthorized("Sign in to continue.")
    return principal


def authorize(principal: Optional[Principal], action: Action, task=None) -> None:
    require_principal(principal)
    if not can_access(principal, action, task):
        raise Forbidden()


def require_admin(principal: Optional[Principal]) -> None:
    require_principal(principal)
    if not principal.is_admin:
        raise Forbidden()


def may_assign_to(principal: Principal, assignee) -> bool:
    """Non-admins can only hand work to other regular users."""
    if principal.is_admin:
        return True
    return assignee.role != Role.ADMIN
