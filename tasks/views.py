import logging
from datetime import datetime, timedelta
from functools import wraps

from django.contrib import messages
from django.contrib.auth.views import redirect_to_login
from django.core.cache import cache
from django.http import HttpResponseRedirect
from django.shortcuts import redirect, render
from django.utils.http import url_has_allowed_host_and_scheme
from django.views.decorators.cache import never_cache
from django.views.decorators.csrf import csrf_protect
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from . import authentication, repository
from .exceptions import (
    Conflict,
    DuplicateEmail,
    InvalidCredentials,
    Unauthorized,
    ValidationError,
)
from .forms import CategoryForm, ChangePasswordForm, SignInForm, SignUpForm, TaskForm
from .models import CustomUser, TaskStatus
from .policy import require_admin
from .utils import parse_status

logger = logging.getLogger(__name__)


def rate_limit(limit: int = 20, per: int = 60):
    """
    Basic per-session rate limiter (in-memory cache) for form submissions.
    - limit: number of POSTs allowed per `per` seconds
    - GETs are never counted, so the page itself always loads.
    """

    def decorator(view_func):
        @wraps(view_func)
        def _wrapped_view(request, *args, **kwargs):
            if request.method != "POST":
                return view_func(request, *args, **kwargs)
            if not request.session.session_key:
                request.session.create()
            cache_key = f"rate_limit_{request.session.session_key}_{view_func.__name__}"
            requests = cache.get(cache_key, [])
            now = datetime.now()
            requests = [ts for ts in requests if ts > now - timedelta(seconds=per)]
            if len(requests) >= limit:
                messages.warning(request, "Please slow down. Too many requests.")
                return HttpResponseRedirect(request.path)
            requests.append(now)
            cache.set(cache_key, requests, per)
            return view_func(request, *args, **kwargs)

        return _wrapped_view

    return decorator


def principal_required(view_func):
    """
    Resolve the signed-in principal once and hand it to the view as its
    second argument. Anonymous requests, and anything raising Unauthorized,
    go to the sign-in page.
    """

    @wraps(view_func)
    def _wrapped_view(request, *args, **kwargs):
        principal = authentication.resolve_principal(request)
        if principal is None:
            return redirect_to_login(request.get_full_path())
        try:
            return view_func(request, principal, *args, **kwargs)
        except Unauthorized:
            return redirect_to_login(request.get_full_path())

    return _wrapped_view


def _apply_errors(form, exc: ValidationError):
    for field, errors in exc.message_dict.items():
        target = field if field in form.fields else None
        for error in errors:
            form.add_error(target, error)


def home(request):
    return redirect("sign_in")


# ---------- User ----------


@rate_limit(limit=10, per=60)
@never_cache
@require_http_methods(["GET", "POST"])
@csrf_protect
def sign_up(request):
    form = SignUpForm(request.POST or None)
    if request.method == "POST" and form.is_valid():
        data = form.cleaned_data
        try:
            authentication.register(
                name=data["name"],
                email=data["email"],
                raw_password=data["password"],
                role=data.get("role") or None,
                designation=data["designation"],
                department=data["department"],
            )
        except DuplicateEmail as exc:
            logger.info("Sign-up rejected: email already registered")
            _apply_errors(form, exc)
        else:
            messages.success(request, "Registration successful! Please sign in.")
            return redirect("sign_in")
    return render(request, "tasks/user/sign_up.html", {"form": form})


@rate_limit(limit=5, per=60)
@never_cache
@require_http_methods(["GET", "POST"])
@csrf_protect
def sign_in(request):
    form = SignInForm(request.POST or None)
    if request.method == "POST" and form.is_valid():
        try:
            authentication.sign_in(
                request, form.cleaned_data["email"], form.cleaned_data["password"]
            )
        except InvalidCredentials as exc:
            form.add_error(None, str(exc))
        else:
            next_url = request.POST.get("next") or request.GET.get("next")
            if next_url and url_has_allowed_host_and_scheme(
                next_url,
                allowed_hosts={request.get_host()},
                require_https=request.is_secure(),
            ):
                return redirect(next_url)
            return redirect("task_index")
    return render(
        request,
        "tasks/user/sign_in.html",
        {"form": form, "next": request.GET.get("next", "")},
    )


@never_cache
@require_POST
def logout_view(request):
    authentication.sign_out(request)
    messages.info(request, "You have been logged out successfully.")
    return redirect("sign_in")


@never_cache
@require_http_methods(["GET", "POST"])
@principal_required
def change_password(request, principal):
    form = ChangePasswordForm(request.POST or None)
    if request.method == "POST" and form.is_valid():
        try:
            authentication.change_password(
                request,
                form.cleaned_data["current_password"],
                form.cleaned_data["new_password"],
                form.cleaned_data["confirm_password"],
            )
        except InvalidCredentials as exc:
            form.add_error("current_password", str(exc))
        except ValidationError as exc:
            _apply_errors(form, exc)
        else:
            messages.success(request, "Password changed successfully")
            return redirect("sign_in")
    return render(request, "tasks/user/change_password.html", {"form": form})


@require_GET
@principal_required
def profile(request, principal):
    user = CustomUser.objects.get(pk=principal.user_id)
    return render(request, "tasks/user/profile.html", {"profile": user})


# ---------- Tasks ----------


def _task_form(principal, *args, **kwargs):
    return TaskForm(
        *args,
        users=repository.assignable_users(principal),
        categories=repository.list_categories(principal),
        **kwargs,
    )


@require_GET
@principal_required
def task_index(request, principal):
    tasks = repository.list_tasks(principal)
    return render(
        request,
        "tasks/task/index.html",
        {"tasks": tasks, "statuses": TaskStatus.choices, "filter": None},
    )


@require_GET
@principal_required
def task_filter(request, principal):
    # An unknown status falls back to the unfiltered list.
    status = parse_status(request.GET.get("status"))
    tasks = repository.list_tasks(principal, status)
    return render(
        request,
        "tasks/task/index.html",
        {"tasks": tasks, "statuses": TaskStatus.choices, "filter": status},
    )


@require_http_methods(["GET", "POST"])
@principal_required
def task_create(request, principal):
    form = _task_form(principal, request.POST or None)
    if request.method == "POST" and form.is_valid():
        try:
            repository.create_task(form.task_data(), principal)
        except ValidationError as exc:
            _apply_errors(form, exc)
        else:
            messages.success(request, "Task created successfully!")
            return redirect("task_index")
    return render(request, "tasks/task/form.html", {"form": form, "task": None})


@require_http_methods(["GET", "POST"])
@principal_required
def task_edit(request, principal, task_id):
    task = repository.get_task(task_id, principal)
    if request.method == "POST":
        form = _task_form(principal, request.POST)
        if form.is_valid():
            try:
                repository.update_task(
                    task.pk,
                    form.task_data(),
                    principal,
                    expected_version=form.cleaned_data.get("version"),
                )
            except ValidationError as exc:
                _apply_errors(form, exc)
            except Conflict:
                form.add_error(
                    None,
                    "This task was changed by someone else. Reload it and try again.",
                )
            else:
                messages.success(request, "Task updated.")
                return redirect("task_index")
    else:
        form = _task_form(principal, initial=TaskForm.initial_for(task))
    return render(request, "tasks/task/form.html", {"form": form, "task": task})


@require_GET
@principal_required
def task_details(request, principal, task_id):
    task = repository.get_task(task_id, principal)
    return render(request, "tasks/task/details.html", {"task": task})


@require_http_methods(["GET", "POST"])
@principal_required
def task_delete(request, principal, task_id):
    if request.method == "POST":
        repository.delete_task(task_id, principal)
        messages.success(request, "Task deleted.")
        return redirect("task_index")
    task = repository.get_task(task_id, principal)
    return render(request, "tasks/task/delete.html", {"task": task})


# ---------- Categories ----------


@require_GET
@principal_required
def category_index(request, principal):
    categories = repository.list_categories(principal)
    return render(request, "tasks/category/index.html", {"categories": categories})


@require_http_methods(["GET", "POST"])
@principal_required
def category_create(request, principal):
    require_admin(principal)

    form = CategoryForm(request.POST or None)
    if request.method == "POST" and form.is_valid():
        try:
            repository.create_category(
                principal,
                form.cleaned_data["name"],
                form.cleaned_data.get("description", ""),
            )
        except ValidationError as exc:
            _apply_errors(form, exc)
        else:
            messages.success(request, "Category added successfully!")
            return redirect("task_index")
    return render(request, "tasks/category/form.html", {"form": form})
