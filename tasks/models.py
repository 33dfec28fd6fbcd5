# tasks/models.py
from django.conf import settings
from django.contrib.auth.base_user import BaseUserManager
from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.db import models

DATE_ORDER_MESSAGE = "Assigned Date must be on or before Submission Date."


class Role(models.TextChoices):
    USER = "User", "User"
    ADMIN = "Admin", "Admin"


class Designation(models.TextChoices):
    SDE = "SDE", "SDE"
    ITE = "ITE", "ITE"
    HR = "HR", "HR"
    TA = "TA", "TA"


class Department(models.TextChoices):
    IT = "IT", "IT"
    HR = "HR", "HR"
    FINANCE = "Finance", "Finance"
    MARKETING = "Marketing", "Marketing"
    ADMIN = "Admin", "Admin"


class TaskStatus(models.TextChoices):
    PENDING = "Pending", "Pending"
    COMPLETED = "Completed", "Completed"
    IN_PROGRESS = "InProgress", "In Progress"
    OVERDUE = "Overdue", "Overdue"


class UserManager(BaseUserManager):
    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError("The email address must be set")
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("role", Role.ADMIN)
        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")
        return self._create_user(email, password, **extra_fields)


class CustomUser(AbstractUser):
    username = None
    first_name = None
    last_name = None

    name = models.CharField("full name", max_length=150)
    email = models.EmailField("email address", unique=True)
    designation = models.CharField(
        max_length=10, choices=Designation.choices, default=Designation.SDE
    )
    department = models.CharField(
        max_length=20, choices=Department.choices, default=Department.IT
    )
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.USER)

    objects = UserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["name"]

    def __str__(self):
        return f"{self.name} ({self.role})"

    def get_full_name(self):
        return self.name

    def get_short_name(self):
        return self.name

    @property
    def is_admin(self):
        return self.role == Role.ADMIN


class Category(models.Model):
    name = models.CharField(max_length=100, primary_key=True)
    description = models.CharField(max_length=250, blank=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "categories"

    def __str__(self):
        return self.name


class Task(models.Model):
    name = models.CharField(max_length=100)
    description = models.CharField(max_length=500, blank=True)
    assigned_date = models.DateField()
    submission_date = models.DateField()
    status = models.CharField(
        max_length=20, choices=TaskStatus.choices, default=TaskStatus.PENDING
    )

    # Users are never removed out from under their tasks.
    assigned_person = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="tasks",
    )
    category = models.ForeignKey(
        Category,
        on_delete=models.CASCADE,
        related_name="tasks",
        db_column="category_name",
    )

    # Bumped by every successful update; compared on write.
    version = models.PositiveIntegerField(default=1)

    def __str__(self):
        return self.name

    def clean(self):
        super().clean()
        if (
            self.assigned_date
            and self.submission_date
            and self.assigned_date > self.submission_date
        ):
            raise ValidationError({"assigned_date": DATE_ORDER_MESSAGE})

    @property
    def category_name(self):
        return self.category_id
