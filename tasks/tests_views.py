from datetime import date, timedelta

from django.conf import settings
from django.contrib.sessions.models import Session
from django.test import Client, TestCase
from django.urls import reverse
from django.utils import timezone

from .models import Category, CustomUser, Task, TaskStatus


class ViewTestCase(TestCase):
    def setUp(self):
        self.admin = CustomUser.objects.create_user(
            email="admin@example.com", password="pass1234", name="Admin", role="Admin"
        )
        self.alice = CustomUser.objects.create_user(
            email="alice@example.com", password="pass1234", name="Alice", role="User"
        )
        self.bob = CustomUser.objects.create_user(
            email="bob@example.com", password="pass1234", name="Bob", role="User"
        )
        self.category = Category.objects.create(name="Ops")
        self.today = date.today()
        self.client = Client()

    def make_task(self, assignee, **overrides):
        values = {
            "name": "Existing task",
            "assigned_date": self.today,
            "submission_date": self.today + timedelta(days=2),
            "assigned_person": assignee,
            "category": self.category,
        }
        values.update(overrides)
        return Task.objects.create(**values)

    def form_data(self, **overrides):
        data = {
            "name": "Write report",
            "description": "",
            "assigned_date": self.today.isoformat(),
            "submission_date": (self.today + timedelta(days=7)).isoformat(),
            "status": TaskStatus.PENDING,
            "assigned_person": self.alice.pk,
            "category": "Ops",
        }
        data.update(overrides)
        return data


class AnonymousAccessTests(ViewTestCase):
    def test_task_pages_redirect_to_sign_in(self):
        for name in ("task_index", "task_create", "category_index", "profile"):
            resp = self.client.get(reverse(name))
            self.assertEqual(resp.status_code, 302, name)
            self.assertTrue(resp["Location"].startswith(reverse("sign_in")), name)

    def test_root_redirects_to_sign_in(self):
        resp = self.client.get("/")
        self.assertRedirects(resp, reverse("sign_in"))


class SignUpViewTests(ViewTestCase):
    def sign_up(self, email, password="Correct-Horse-77"):
        return self.client.post(
            reverse("sign_up"),
            {
                "name": "Carol",
                "email": email,
                "password": password,
                "confirm_password": password,
                "designation": "HR",
                "department": "HR",
                "role": "User",
            },
        )

    def test_sign_up_creates_user_and_redirects(self):
        resp = self.sign_up("carol@example.com")
        self.assertRedirects(resp, reverse("sign_in"))
        user = CustomUser.objects.get(email="carol@example.com")
        self.assertEqual(user.designation, "HR")
        self.assertTrue(user.check_password("Correct-Horse-77"))

    def test_duplicate_email_shows_field_error(self):
        resp = self.sign_up("alice@example.com")
        self.assertEqual(resp.status_code, 200)
        self.assertFormError(resp.context["form"], "email", "Email already exists.")
        self.assertEqual(CustomUser.objects.filter(email="alice@example.com").count(), 1)

    def test_password_mismatch(self):
        resp = self.client.post(
            reverse("sign_up"),
            {
                "name": "Dan",
                "email": "dan@example.com",
                "password": "Correct-Horse-77",
                "confirm_password": "Correct-Horse-78",
                "designation": "SDE",
                "department": "IT",
            },
        )
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(CustomUser.objects.filter(email="dan@example.com").exists())


class SignInViewTests(ViewTestCase):
    def test_sign_in_then_logout(self):
        resp = self.client.post(
            reverse("sign_in"), {"email": "alice@example.com", "password": "pass1234"}
        )
        self.assertRedirects(resp, reverse("task_index"))
        old_session = self.client.cookies[settings.SESSION_COOKIE_NAME].value

        resp = self.client.post(reverse("logout"))
        self.assertRedirects(resp, reverse("sign_in"))

        # The old session token is no longer accepted.
        replay = Client()
        replay.cookies[settings.SESSION_COOKIE_NAME] = old_session
        resp = replay.get(reverse("task_index"))
        self.assertEqual(resp.status_code, 302)

    def test_bad_credentials(self):
        resp = self.client.post(
            reverse("sign_in"), {"email": "alice@example.com", "password": "wrong"}
        )
        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, "Invalid email or password.")

    def test_logout_requires_post(self):
        self.client.force_login(self.alice)
        resp = self.client.get(reverse("logout"))
        self.assertEqual(resp.status_code, 405)

    def test_session_settings(self):
        self.assertEqual(settings.SESSION_COOKIE_AGE, 30 * 60)
        self.assertTrue(settings.SESSION_SAVE_EVERY_REQUEST)
        self.assertTrue(settings.SESSION_COOKIE_HTTPONLY)

    def test_next_redirect_stays_on_site(self):
        data = {"email": "alice@example.com", "password": "pass1234"}
        resp = self.client.post(
            reverse("sign_in") + "?next=" + reverse("category_index"), data
        )
        self.assertRedirects(resp, reverse("category_index"))

        resp = Client().post(reverse("sign_in") + "?next=https://evil.example/", data)
        self.assertRedirects(resp, reverse("task_index"))

    def test_sign_in_page_loads_are_not_rate_limited(self):
        for _ in range(8):
            self.assertEqual(self.client.get(reverse("sign_in")).status_code, 200)

    def test_too_many_attempts_then_page_still_loads(self):
        bad = {"email": "alice@example.com", "password": "wrong"}
        for _ in range(5):
            self.assertEqual(self.client.post(reverse("sign_in"), bad).status_code, 200)

        resp = self.client.post(reverse("sign_in"), bad)
        self.assertRedirects(resp, reverse("sign_in"), fetch_redirect_response=False)

        resp = self.client.get(reverse("sign_in"))
        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, "Too many requests")


class SessionTimeoutTests(ViewTestCase):
    def sign_in(self):
        self.client.post(
            reverse("sign_in"), {"email": "alice@example.com", "password": "pass1234"}
        )
        return Session.objects.get(
            session_key=self.client.cookies[settings.SESSION_COOKIE_NAME].value
        )

    def test_idle_session_is_rejected(self):
        session = self.sign_in()
        session.expire_date = timezone.now() - timedelta(seconds=1)
        session.save()

        resp = self.client.get(reverse("task_index"))
        self.assertEqual(resp.status_code, 302)
        self.assertTrue(resp["Location"].startswith(reverse("sign_in")))

    def test_activity_pushes_expiry_forward(self):
        session = self.sign_in()
        session.expire_date = timezone.now() + timedelta(minutes=5)
        session.save()

        resp = self.client.get(reverse("task_index"))
        self.assertEqual(resp.status_code, 200)
        session.refresh_from_db()
        self.assertGreater(session.expire_date, timezone.now() + timedelta(minutes=25))


class ChangePasswordViewTests(ViewTestCase):
    def test_change_password_signs_out(self):
        self.client.force_login(self.alice)
        resp = self.client.post(
            reverse("change_password"),
            {
                "current_password": "pass1234",
                "new_password": "Fresh-Password-9",
                "confirm_password": "Fresh-Password-9",
            },
        )
        self.assertRedirects(resp, reverse("sign_in"))
        self.alice.refresh_from_db()
        self.assertTrue(self.alice.check_password("Fresh-Password-9"))
        resp = self.client.get(reverse("task_index"))
        self.assertEqual(resp.status_code, 302)

    def test_wrong_current_password(self):
        self.client.force_login(self.alice)
        resp = self.client.post(
            reverse("change_password"),
            {
                "current_password": "nope",
                "new_password": "Fresh-Password-9",
                "confirm_password": "Fresh-Password-9",
            },
        )
        self.assertEqual(resp.status_code, 200)
        self.assertFormError(
            resp.context["form"], "current_password", "Current password is incorrect."
        )


class TaskViewTests(ViewTestCase):
    def test_index_is_role_scoped(self):
        self.make_task(self.alice, name="Alice task")
        self.make_task(self.bob, name="Bob task")

        self.client.force_login(self.alice)
        resp = self.client.get(reverse("task_index"))
        self.assertContains(resp, "Alice task")
        self.assertNotContains(resp, "Bob task")

        self.client.force_login(self.admin)
        resp = self.client.get(reverse("task_index"))
        self.assertContains(resp, "Alice task")
        self.assertContains(resp, "Bob task")

    def test_filter_with_unknown_status_lists_everything_visible(self):
        self.make_task(self.alice, name="Open task")
        self.make_task(self.alice, name="Closed task", status=TaskStatus.COMPLETED)
        self.client.force_login(self.alice)

        resp = self.client.get(reverse("task_filter"), {"status": "completed"})
        self.assertContains(resp, "Closed task")
        self.assertNotContains(resp, "Open task")

        resp = self.client.get(reverse("task_filter"), {"status": "bogus"})
        self.assertContains(resp, "Closed task")
        self.assertContains(resp, "Open task")

    def test_create_form_hides_admins_from_users(self):
        self.client.force_login(self.alice)
        resp = self.client.get(reverse("task_create"))
        choices = list(resp.context["form"].fields["assigned_person"].queryset)
        self.assertEqual(choices, [self.alice, self.bob])

    def test_create_task(self):
        self.client.force_login(self.alice)
        resp = self.client.post(reverse("task_create"), self.form_data())
        self.assertRedirects(resp, reverse("task_index"))
        self.assertEqual(Task.objects.get().assigned_person, self.alice)

    def test_user_cannot_assign_to_admin(self):
        self.client.force_login(self.alice)
        resp = self.client.post(
            reverse("task_create"), self.form_data(assigned_person=self.admin.pk)
        )
        self.assertEqual(resp.status_code, 200)
        self.assertIn("assigned_person", resp.context["form"].errors)
        self.assertFalse(Task.objects.exists())

    def test_date_order_is_a_form_error(self):
        self.client.force_login(self.alice)
        resp = self.client.post(
            reverse("task_create"),
            self.form_data(
                assigned_date=(self.today + timedelta(days=9)).isoformat(),
            ),
        )
        self.assertEqual(resp.status_code, 200)
        self.assertFormError(
            resp.context["form"],
            "assigned_date",
            "Assigned Date must be on or before Submission Date.",
        )

    def test_details_of_other_users_task_is_forbidden(self):
        task = self.make_task(self.alice)
        self.client.force_login(self.bob)
        self.assertEqual(
            self.client.get(reverse("task_details", args=[task.pk])).status_code, 403
        )
        self.assertEqual(
            self.client.get(reverse("task_edit", args=[task.pk])).status_code, 403
        )

    def test_missing_task_is_404(self):
        self.client.force_login(self.admin)
        resp = self.client.get(reverse("task_details", args=[987654]))
        self.assertEqual(resp.status_code, 404)

    def test_edit_prefills_and_saves(self):
        task = self.make_task(self.alice)
        self.client.force_login(self.alice)
        resp = self.client.get(reverse("task_edit", args=[task.pk]))
        self.assertEqual(resp.context["form"].initial["version"], 1)

        resp = self.client.post(
            reverse("task_edit", args=[task.pk]),
            self.form_data(name="Renamed", version=1),
        )
        self.assertRedirects(resp, reverse("task_index"))
        task.refresh_from_db()
        self.assertEqual(task.name, "Renamed")
        self.assertEqual(task.version, 2)

    def test_edit_with_stale_version_reports_conflict(self):
        task = self.make_task(self.alice)
        Task.objects.filter(pk=task.pk).update(name="Changed elsewhere", version=2)
        self.client.force_login(self.alice)
        resp = self.client.post(
            reverse("task_edit", args=[task.pk]),
            self.form_data(name="Mine", version=1),
        )
        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, "changed by someone else")
        task.refresh_from_db()
        self.assertEqual(task.name, "Changed elsewhere")

    def test_non_owner_post_edit_leaves_row_unchanged(self):
        task = self.make_task(self.alice)
        before = Task.objects.filter(pk=task.pk).values().get()
        self.client.force_login(self.bob)
        resp = self.client.post(
            reverse("task_edit", args=[task.pk]),
            self.form_data(name="Hijacked", assigned_person=self.bob.pk, version=1),
        )
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(Task.objects.filter(pk=task.pk).values().get(), before)

    def test_delete_flow(self):
        task = self.make_task(self.alice)
        self.client.force_login(self.bob)
        self.assertEqual(
            self.client.post(reverse("task_delete", args=[task.pk])).status_code, 403
        )
        self.assertTrue(Task.objects.filter(pk=task.pk).exists())

        self.client.force_login(self.alice)
        resp = self.client.get(reverse("task_delete", args=[task.pk]))
        self.assertContains(resp, task.name)
        resp = self.client.post(reverse("task_delete", args=[task.pk]))
        self.assertRedirects(resp, reverse("task_index"))
        self.assertFalse(Task.objects.filter(pk=task.pk).exists())

    def test_profile_pages(self):
        self.client.force_login(self.bob)
        for name in ("profile", "task_profile"):
            resp = self.client.get(reverse(name))
            self.assertContains(resp, "bob@example.com")


class CategoryViewTests(ViewTestCase):
    def test_admin_creates_category(self):
        self.client.force_login(self.admin)
        resp = self.client.post(
            reverse("category_create"), {"name": "Infra", "description": "Servers"}
        )
        self.assertRedirects(resp, reverse("task_index"))
        self.assertTrue(Category.objects.filter(pk="Infra").exists())

    def test_user_cannot_create_category(self):
        self.client.force_login(self.alice)
        self.assertEqual(self.client.get(reverse("category_create")).status_code, 403)
        resp = self.client.post(reverse("category_create"), {"name": "Infra"})
        self.assertEqual(resp.status_code, 403)
        self.assertFalse(Category.objects.filter(pk="Infra").exists())

    def test_duplicate_category(self):
        self.client.force_login(self.admin)
        resp = self.client.post(reverse("category_create"), {"name": "Ops"})
        self.assertEqual(resp.status_code, 200)
        self.assertIn("name", resp.context["form"].errors)

    def test_index_lists_categories(self):
        self.client.force_login(self.bob)
        self.assertContains(self.client.get(reverse("category_index")), "Ops")
