"""
Task and category data operations.

Each function takes the acting ``Principal`` explicitly and asks
``tasks.policy`` before reading or writing. Task writes are validated as a
whole: every broken rule is reported in one ``ValidationError`` keyed by form
field, so the caller can redisplay the form with all messages at once.

Updates use optimistic concurrency. ``Task.version`` is compared in the
``UPDATE`` statement itself; a stale version matches zero rows and the
update fails with ``Conflict`` instead of overwriting.
"""

import logging
from datetime import date

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils.dateparse import parse_date

from .exceptions import Conflict, NotFound, ValidationError
from .models import DATE_ORDER_MESSAGE, Category, Role, Task, TaskStatus
from .policy import Action, authorize, may_assign_to, require_admin, require_principal
from .utils import parse_status

logger = logging.getLogger(__name__)
User = get_user_model()

# Fields a caller may set; anything else in a payload (ids, version) is ignored.
TASK_FIELDS = (
    "name",
    "description",
    "assigned_date",
    "submission_date",
    "status",
    "assigned_person_id",
    "category_name",
)

REQUIRED = "This field is required."


def _coerce_date(value):
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    try:
        return parse_date(str(value))
    except ValueError:
        return None


def _coerce_id(value):
    if value in (None, ""):
        return None
    if isinstance(value, User):
        return value.pk
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _snapshot(task):
    return {
        "name": task.name,
        "description": task.description,
        "assigned_date": task.assigned_date,
        "submission_date": task.submission_date,
        "status": task.status,
        "assigned_person_id": task.assigned_person_id,
        "category_name": task.category_id,
    }


def _validate(principal, data):
    """
    Check a complete task payload and return the column values to store.
    Raises ValidationError listing every problem found.
    """
    errors = {}

    def add(field, message):
        errors.setdefault(field, []).append(message)

    name = (data.get("name") or "").strip()
    if not name:
        add("name", REQUIRED)
    elif len(name) > 100:
        add("name", "Name must be at most 100 characters.")

    description = (data.get("description") or "").strip()
    if len(description) > 500:
        add("description", "Description must be at most 500 characters.")

    raw_status = data.get("status")
    status = TaskStatus.PENDING.value if raw_status in (None, "") else parse_status(raw_status)
    if status is None:
        add("status", "Select a valid status.")

    assignee_id = _coerce_id(data.get("assigned_person_id"))
    if assignee_id is None or assignee_id <= 0:
        add("assigned_person", "Please select a user to assign.")
    else:
        assignee = User.objects.filter(pk=assignee_id).first()
        if assignee is None:
            add("assigned_person", "Selected user not found.")
        elif not may_assign_to(principal, assignee):
            add("assigned_person", "You cannot assign tasks to Admin users.")

    category_name = (data.get("category_name") or "").strip()
    if not category_name:
        add("category", "Please select a category.")
    elif not Category.objects.filter(pk=category_name).exists():
        add("category", "Selected category not found.")

    assigned_date = _coerce_date(data.get("assigned_date"))
    submission_date = _coerce_date(data.get("submission_date"))
    if assigned_date is None:
        add("assigned_date", REQUIRED)
    if submission_date is None:
        add("submission_date", REQUIRED)
    if assigned_date and submission_date and assigned_date > submission_date:
        add("assigned_date", DATE_ORDER_MESSAGE)

    if errors:
        raise ValidationError(errors)

    return {
        "name": name,
        "description": description,
        "status": status,
        "assigned_person_id": assignee_id,
        "category_id": category_name,
        "assigned_date": assigned_date,
        "submission_date": submission_date,
    }


def _tasks():
    return Task.objects.select_related("assigned_person", "category")


def _load(task_id):
    pk = _coerce_id(task_id)
    if pk is None:
        raise NotFound("Task not found.")
    try:
        return _tasks().get(pk=pk)
    except Task.DoesNotExist:
        raise NotFound("Task not found.")


def get_task(task_id, principal):
    require_principal(principal)
    task = _load(task_id)
    authorize(principal, Action.VIEW, task)
    return task


def create_task(data, principal):
    authorize(principal, Action.CREATE)
    values = _validate(principal, {k: data.get(k) for k in TASK_FIELDS})
    task = Task.objects.create(**values)
    logger.info("Task %s created by user %s", task.pk, principal.user_id)
    return task


def update_task(task_id, patch, principal, expected_version=None):
    require_principal(principal)
    # Ownership is checked against the stored row, not the submitted one.
    task = _load(task_id)
    authorize(principal, Action.EDIT, task)

    state = _snapshot(task)
    state.update({k: v for k, v in patch.items() if k in TASK_FIELDS})
    values = _validate(principal, state)

    version = task.version if expected_version is None else _coerce_id(expected_version)
    with transaction.atomic():
        updated = Task.objects.filter(pk=task.pk, version=version).update(
            version=F("version") + 1, **values
        )
    if not updated:
        if not Task.objects.filter(pk=task.pk).exists():
            raise NotFound("Task not found.")
        logger.warning(
            "Stale update of task %s by user %s (version %s)",
            task.pk,
            principal.user_id,
            version,
        )
        raise Conflict(task.pk)

    logger.info("Task %s updated by user %s", task.pk, principal.user_id)
    return _tasks().get(pk=task.pk)


def delete_task(task_id, principal):
    require_principal(principal)
    task = _load(task_id)
    authorize(principal, Action.DELETE, task)
    task.delete()
    logger.info("Task %s deleted by user %s", task_id, principal.user_id)


def list_tasks(principal, status=None):
    """
    Tasks the principal may see, optionally narrowed to one status.
    A status that does not parse is ignored rather than rejected.
    """
    require_principal(principal)
    qs = _tasks()
    if not principal.is_admin:
        qs = qs.filter(assigned_person_id=principal.user_id)
    parsed = parse_status(status)
    if parsed is not None:
        qs = qs.filter(status=parsed)
    return qs.order_by("submission_date", "id")


def assignable_users(principal):
    require_principal(principal)
    qs = User.objects.order_by("name", "id")
    if not principal.is_admin:
        qs = qs.filter(role=Role.USER)
    return qs


def list_categories(principal):
    require_principal(principal)
    return Category.objects.order_by("name")


def create_category(principal, name, description=""):
    require_admin(principal)
    name = (name or "").strip()
    if not name:
        raise ValidationError({"name": [REQUIRED]})
    if len(name) > 100:
        raise ValidationError({"name": ["Name must be at most 100 characters."]})
    if len((description or "").strip()) > 250:
        raise ValidationError({"description": ["Description must be at most 250 characters."]})
    if Category.objects.filter(pk=name).exists():
        raise ValidationError({"name": ["A category with this name already exists."]})
    try:
        with transaction.atomic():
            category = Category.objects.create(name=name, description=(description or "").strip())
    except IntegrityError:
        raise ValidationError({"name": ["A category with this name already exists."]})
    logger.info("Category %r created by user %s", name, principal.user_id)
    return category
