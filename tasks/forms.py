
from django import forms
from django.contrib.auth import password_validation
from django.contrib.auth.forms import UserCreationForm

from .models import Category, CustomUser, Department, Designation, Role, Task, TaskStatus


def _control(**attrs):
    attrs.setdefault("class", "form-control")
    return attrs


class SignUpForm(forms.Form):
    name = forms.CharField(
        label="Full Name",
        max_length=150,
        widget=forms.TextInput(attrs=_control(placeholder="Enter your full name")),
    )
    email = forms.EmailField(
        widget=forms.EmailInput(attrs=_control(placeholder="Enter your email")),
    )
    password = forms.CharField(
        widget=forms.PasswordInput(attrs=_control(placeholder="Create a password")),
    )
    confirm_password = forms.CharField(
        label="Confirm Password",
        widget=forms.PasswordInput(attrs=_control(placeholder="Confirm your password")),
    )
    designation = forms.ChoiceField(
        choices=Designation.choices,
        widget=forms.Select(attrs=_control()),
    )
    department = forms.ChoiceField(
        choices=Department.choices,
        widget=forms.Select(attrs=_control()),
    )
    role = forms.ChoiceField(
        choices=Role.choices,
        initial=Role.USER,
        required=False,
        widget=forms.Select(attrs=_control()),
    )

    def clean_confirm_password(self):
        password = self.cleaned_data.get("password")
        confirm = self.cleaned_data.get("confirm_password")
        if password and confirm and password != confirm:
            raise forms.ValidationError("Passwords do not match.")
        return confirm

    def clean(self):
        cleaned = super().clean()
        password = cleaned.get("password")
        if password:
            try:
                password_validation.validate_password(password)
            except forms.ValidationError as exc:
                self.add_error("password", exc)
        return cleaned


class SignInForm(forms.Form):
    email = forms.EmailField(widget=forms.EmailInput(attrs=_control()))
    password = forms.CharField(widget=forms.PasswordInput(attrs=_control()))


class ChangePasswordForm(forms.Form):
    current_password = forms.CharField(
        label="Current password",
        widget=forms.PasswordInput(attrs=_control()),
    )
    new_password = forms.CharField(
        label="New password",
        widget=forms.PasswordInput(attrs=_control()),
    )
    confirm_password = forms.CharField(
        label="Confirm new password",
        widget=forms.PasswordInput(attrs=_control()),
    )


class TaskForm(forms.Form):
    """
    Task create/edit form. The assignee dropdown is limited to the users the
    principal may assign to; the repository checks the same rule again.
    """

    name = forms.CharField(max_length=100, widget=forms.TextInput(attrs=_control()))
    description = forms.CharField(
        max_length=500,
        required=False,
        widget=forms.Textarea(attrs=_control(rows=3)),
    )
    assigned_date = forms.DateField(widget=forms.DateInput(attrs=_control(type="date")))
    submission_date = forms.DateField(widget=forms.DateInput(attrs=_control(type="date")))
    status = forms.ChoiceField(
        choices=TaskStatus.choices,
        initial=TaskStatus.PENDING,
        widget=forms.Select(attrs=_control()),
    )
    assigned_person = forms.ModelChoiceField(
        queryset=CustomUser.objects.none(),
        label="Assigned Person",
        empty_label="Select a user",
        widget=forms.Select(attrs=_control()),
    )
    category = forms.ModelChoiceField(
        queryset=Category.objects.none(),
        empty_label="Select a category",
        widget=forms.Select(attrs=_control()),
    )
    version = forms.IntegerField(required=False, widget=forms.HiddenInput())

    def __init__(self, *args, users=None, categories=None, **kwargs):
        super().__init__(*args, **kwargs)
        if users is not None:
            self.fields["assigned_person"].queryset = users
        if categories is not None:
            self.fields["category"].queryset = categories

    @classmethod
    def initial_for(cls, task):
        return {
            "name": task.name,
            "description": task.description,
            "assigned_date": task.assigned_date,
            "submission_date": task.submission_date,
            "status": task.status,
            "assigned_person": task.assigned_person_id,
            "category": task.category_id,
            "version": task.version,
        }

    def task_data(self):
        data = self.cleaned_data
        return {
            "name": data["name"],
            "description": data.get("description", ""),
            "assigned_date": data["assigned_date"],
            "submission_date": data["submission_date"],
            "status": data["status"],
            "assigned_person_id": data["assigned_person"].pk,
            "category_name": data["category"].pk,
        }


class CategoryForm(forms.Form):
    name = forms.CharField(max_length=100, widget=forms.TextInput(attrs=_control()))
    description = forms.CharField(
        max_length=250,
        required=False,
        widget=forms.Textarea(attrs=_control(rows=2)),
    )


class CustomUserCreationForm(UserCreationForm):
    """Add-user form for the admin site."""

    class Meta:
        model = CustomUser
        fields = ["email", "name", "designation", "department", "role"]


class TaskAdminForm(forms.ModelForm):
    """
    Admin change form for tasks. Carries the version the page was loaded at
    so a save over someone else's newer update is refused.
    """

    loaded_version = forms.IntegerField(widget=forms.HiddenInput, required=False)

    class Meta:
        model = Task
        fields = "__all__"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if self.instance.pk:
            self.fields["loaded_version"].initial = self.instance.version

    def clean(self):
        cleaned_data = super().clean()
        expected = cleaned_data.get("loaded_version")
        if self.instance.pk and expected is not None:
            current = (
                Task.objects.filter(pk=self.instance.pk)
                .values_list("version", flat=True)
                .first()
            )
            if current != expected:
                raise forms.ValidationError(
                    "This task was changed by someone else. Reload it and try again."
                )
        return cleaned_data
