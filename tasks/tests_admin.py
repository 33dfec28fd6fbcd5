from datetime import date

from django.core.exceptions import ValidationError
from django.test import TestCase
from django.urls import reverse

from .models import Category, CustomUser, Task


class TaskAdminTests(TestCase):
    def setUp(self):
        self.root = CustomUser.objects.create_superuser(
            email="root@example.com", password="pass1234", name="Root"
        )
        self.alice = CustomUser.objects.create_user(
            email="alice@example.com", password="pass1234", name="Alice"
        )
        self.category = Category.objects.create(name="Ops")
        self.task = Task.objects.create(
            name="Rotate keys",
            assigned_date=date(2024, 1, 1),
            submission_date=date(2024, 1, 10),
            assigned_person=self.alice,
            category=self.category,
        )
        self.client.force_login(self.root)
        self.url = reverse("admin:tasks_task_change", args=[self.task.pk])

    def post_change(self, **overrides):
        data = {
            "name": "Rotate keys",
            "description": "",
            "category": "Ops",
            "assigned_person": self.alice.pk,
            "status": "Pending",
            "assigned_date": "2024-01-01",
            "submission_date": "2024-01-10",
            "loaded_version": 1,
            "_save": "Save",
        }
        data.update(overrides)
        return self.client.post(self.url, data)

    def test_change_saves_and_bumps_version(self):
        resp = self.post_change(name="Rotate all keys")
        self.assertEqual(resp.status_code, 302)
        self.task.refresh_from_db()
        self.assertEqual(self.task.name, "Rotate all keys")
        self.assertEqual(self.task.version, 2)

    def test_assigned_date_after_submission_date_is_rejected(self):
        resp = self.post_change(assigned_date="2024-02-01", submission_date="2024-01-01")
        self.assertEqual(resp.status_code, 200)
        self.assertIn("assigned_date", resp.context["adminform"].form.errors)
        self.task.refresh_from_db()
        self.assertEqual(self.task.assigned_date, date(2024, 1, 1))
        self.assertEqual(self.task.version, 1)

    def test_stale_version_is_rejected(self):
        Task.objects.filter(pk=self.task.pk).update(name="Changed elsewhere", version=2)
        resp = self.post_change(name="Mine", loaded_version=1)
        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, "changed by someone else")
        self.task.refresh_from_db()
        self.assertEqual(self.task.name, "Changed elsewhere")
        self.assertEqual(self.task.version, 2)

    def test_changelist_links_use_admin_urls(self):
        resp = self.client.get(reverse("admin:tasks_task_changelist"))
        self.assertContains(resp, reverse("admin:tasks_task_change", args=[self.task.pk]))
        self.assertContains(resp, reverse("admin:tasks_task_delete", args=[self.task.pk]))


class TaskModelTests(TestCase):
    def test_clean_rejects_inverted_dates(self):
        task = Task(assigned_date=date(2024, 2, 1), submission_date=date(2024, 1, 1))
        with self.assertRaises(ValidationError) as ctx:
            task.clean()
        self.assertIn("assigned_date", ctx.exception.message_dict)
