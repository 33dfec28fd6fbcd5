import logging

from django.contrib import auth
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.db import IntegrityError, transaction

from .exceptions import DuplicateEmail, InvalidCredentials, Unauthorized, ValidationError
from .models import Department, Designation, Role
from .policy import Principal

logger = logging.getLogger(__name__)
User = get_user_model()


def _normalize(email):
    return User.objects.normalize_email((email or "").strip())


def register(
    name,
    email,
    raw_password,
    role=Role.USER,
    designation=Designation.SDE,
    department=Department.IT,
):
    """Create an account. Only the salted hash of ``raw_password`` is stored."""
    email = _normalize(email)
    if User.objects.filter(email__iexact=email).exists():
        raise DuplicateEmail(email)
    try:
        with transaction.atomic():
            user = User.objects.create_user(
                email=email,
                password=raw_password,
                name=(name or "").strip(),
                role=role or Role.USER,
                designation=designation,
                department=department,
            )
    except IntegrityError:
        # Lost a race with another sign-up for the same address.
        raise DuplicateEmail(email)
    logger.info("Registered user %s (%s)", user.pk, user.role)
    return user


def sign_in(request, email, raw_password):
    """
    Check the credentials and attach the user to the request's session.
    Unknown email and wrong password fail the same way.
    """
    email = _normalize(email)
    # Addresses are unique ignoring case; authenticate against the stored spelling.
    stored = (
        User.objects.filter(email__iexact=email).values_list("email", flat=True).first()
    )
    user = auth.authenticate(request, email=stored or email, password=raw_password)
    if user is None:
        logger.warning("Failed sign-in attempt")
        raise InvalidCredentials()
    auth.login(request, user)
    return Principal.from_user(user)


def sign_out(request):
    auth.logout(request)


def resolve_principal(request):
    user = getattr(request, "user", None)
    if user is None or not user.is_authenticated:
        return None
    return Principal.from_user(user)


def change_password(request, current_password, new_password, confirm_password):
    principal = resolve_principal(request)
    if principal is None:
        raise Unauthorized("Sign in to continue.")

    user = User.objects.get(pk=principal.user_id)
    if not user.check_password(current_password):
        raise InvalidCredentials("Current password is incorrect.")
    if new_password != confirm_password:
        raise ValidationError(
            {"confirm_password": ["The new password and confirmation do not match."]}
        )
    try:
        validate_password(new_password, user)
    except ValidationError as exc:
        raise ValidationError({"new_password": exc.messages})

    user.set_password(new_password)
    user.save(update_fields=["password"])
    logger.info("User %s changed their password", user.pk)
    # The active session ends with the old password.
    sign_out(request)
