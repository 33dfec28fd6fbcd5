from typing import Optional

from .models import TaskStatus


def _squash(value: str) -> str:
    return "".join(value.split()).lower()


def parse_status(raw) -> Optional[str]:
    """
    Map a query-string status onto a TaskStatus value.
    Case and whitespace are ignored, so "inprogress", "InProgress" and
    "In Progress" all match. Returns None for anything else.
    """
    if raw is None:
        return None
    wanted = _squash(str(raw))
    if not wanted:
        return None
    for status in TaskStatus:
        if wanted in (_squash(status.value), _squash(status.name), _squash(str(status.label))):
            return status.value
    return None
