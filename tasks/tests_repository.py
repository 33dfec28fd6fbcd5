from datetime import date, timedelta

from django.test import TestCase

from . import repository
from .exceptions import Conflict, Forbidden, NotFound, Unauthorized, ValidationError
from .models import Category, CustomUser, Task, TaskStatus
from .policy import Principal


class RepositoryTestCase(TestCase):
    def setUp(self):
        self.admin = CustomUser.objects.create_user(
            email="admin@example.com", password="pass1234", name="Zed Admin", role="Admin"
        )
        self.alice = CustomUser.objects.create_user(
            email="alice@example.com", password="pass1234", name="Alice", role="User"
        )
        self.bob = CustomUser.objects.create_user(
            email="bob@example.com", password="pass1234", name="Bob", role="User"
        )
        self.as_admin = Principal.from_user(self.admin)
        self.as_alice = Principal.from_user(self.alice)
        self.as_bob = Principal.from_user(self.bob)

        self.category = Category.objects.create(name="Ops", description="Operations")
        self.today = date.today()

    def task_data(self, **overrides):
        data = {
            "name": "Rotate keys",
            "description": "Quarterly rotation",
            "assigned_date": self.today,
            "submission_date": self.today + timedelta(days=3),
            "status": TaskStatus.PENDING,
            "assigned_person_id": self.alice.pk,
            "category_name": "Ops",
        }
        data.update(overrides)
        return data

    def make_task(self, assignee, **overrides):
        values = {
            "name": "Existing task",
            "assigned_date": self.today,
            "submission_date": self.today + timedelta(days=1),
            "assigned_person": assignee,
            "category": self.category,
        }
        values.update(overrides)
        return Task.objects.create(**values)


class CreateTaskTests(RepositoryTestCase):
    def test_user_creates_task_for_self(self):
        task = repository.create_task(self.task_data(), self.as_alice)
        self.assertEqual(task.assigned_person_id, self.alice.pk)
        self.assertEqual(task.category_name, "Ops")
        self.assertEqual(task.status, TaskStatus.PENDING)
        self.assertEqual(task.version, 1)

    def test_status_defaults_to_pending(self):
        task = repository.create_task(self.task_data(status=""), self.as_alice)
        self.assertEqual(task.status, TaskStatus.PENDING)

    def test_user_cannot_assign_to_admin(self):
        with self.assertRaises(ValidationError) as ctx:
            repository.create_task(
                self.task_data(assigned_person_id=self.admin.pk), self.as_alice
            )
        self.assertIn("assigned_person", ctx.exception.message_dict)
        self.assertFalse(Task.objects.exists())

    def test_admin_may_assign_to_admin(self):
        task = repository.create_task(
            self.task_data(assigned_person_id=self.admin.pk), self.as_admin
        )
        self.assertEqual(task.assigned_person_id, self.admin.pk)

    def test_assigning_to_admin_fails_even_when_other_fields_are_bad(self):
        data = self.task_data(
            assigned_person_id=self.admin.pk,
            name="",
            submission_date=self.today - timedelta(days=1),
        )
        with self.assertRaises(ValidationError) as ctx:
            repository.create_task(data, self.as_bob)
        errors = ctx.exception.message_dict
        self.assertEqual(errors["assigned_person"], ["You cannot assign tasks to Admin users."])
        self.assertIn("name", errors)
        self.assertIn("assigned_date", errors)

    def test_all_problems_are_reported_together(self):
        data = self.task_data(
            name="  ",
            status="Archived",
            assigned_person_id=999999,
            category_name="Nope",
            assigned_date=None,
        )
        with self.assertRaises(ValidationError) as ctx:
            repository.create_task(data, self.as_admin)
        self.assertEqual(
            set(ctx.exception.message_dict),
            {"name", "status", "assigned_person", "category", "assigned_date"},
        )

    def test_assigned_date_after_submission_date_is_rejected(self):
        data = self.task_data(
            assigned_date=self.today + timedelta(days=5),
            submission_date=self.today,
        )
        with self.assertRaises(ValidationError) as ctx:
            repository.create_task(data, self.as_admin)
        self.assertEqual(
            ctx.exception.message_dict["assigned_date"],
            ["Assigned Date must be on or before Submission Date."],
        )

    def test_same_day_dates_are_allowed(self):
        task = repository.create_task(
            self.task_data(submission_date=self.today), self.as_alice
        )
        self.assertEqual(task.assigned_date, task.submission_date)

    def test_iso_date_strings_are_accepted(self):
        task = repository.create_task(
            self.task_data(assigned_date="2030-01-01", submission_date="2030-01-31"),
            self.as_alice,
        )
        self.assertEqual(task.submission_date, date(2030, 1, 31))

    def test_missing_principal_is_unauthorized(self):
        with self.assertRaises(Unauthorized):
            repository.create_task(self.task_data(), None)

    def test_ops_category_scenario(self):
        ops = repository.create_category(self.as_admin, "Ops Two", "")
        data = self.task_data(
            assigned_person_id=self.admin.pk,
            category_name=ops.name,
            assigned_date=self.today,
            submission_date=self.today + timedelta(days=7),
        )
        with self.assertRaises(ValidationError) as ctx:
            repository.create_task(data, self.as_alice)
        self.assertEqual(list(ctx.exception.message_dict), ["assigned_person"])


class GetTaskTests(RepositoryTestCase):
    def test_owner_and_admin_can_read(self):
        task = repository.create_task(self.task_data(), self.as_alice)
        self.assertEqual(repository.get_task(task.pk, self.as_alice).pk, task.pk)
        self.assertEqual(repository.get_task(task.pk, self.as_admin).pk, task.pk)

    def test_other_user_is_forbidden(self):
        task = repository.create_task(self.task_data(), self.as_alice)
        with self.assertRaises(Forbidden):
            repository.get_task(task.pk, self.as_bob)

    def test_missing_or_malformed_id_is_not_found(self):
        with self.assertRaises(NotFound):
            repository.get_task(424242, self.as_admin)
        with self.assertRaises(NotFound):
            repository.get_task("abc", self.as_admin)

    def test_related_rows_are_joined(self):
        task = repository.create_task(self.task_data(), self.as_alice)
        fetched = repository.get_task(task.pk, self.as_alice)
        with self.assertNumQueries(0):
            self.assertEqual(fetched.assigned_person.name, "Alice")
            self.assertEqual(fetched.category.description, "Operations")


class UpdateTaskTests(RepositoryTestCase):
    def test_owner_updates_and_version_moves(self):
        task = self.make_task(self.alice)
        updated = repository.update_task(
            task.pk, {"status": TaskStatus.COMPLETED}, self.as_alice
        )
        self.assertEqual(updated.status, TaskStatus.COMPLETED)
        self.assertEqual(updated.version, 2)
        self.assertEqual(updated.name, "Existing task")

    def test_non_owner_is_forbidden_and_row_is_untouched(self):
        task = self.make_task(self.alice)
        before = Task.objects.filter(pk=task.pk).values().get()
        with self.assertRaises(Forbidden):
            repository.update_task(
                task.pk,
                {"name": "Hijacked", "assigned_person_id": self.bob.pk},
                self.as_bob,
            )
        self.assertEqual(Task.objects.filter(pk=task.pk).values().get(), before)

    def test_ownership_is_checked_against_stored_row(self):
        bobs_task = self.make_task(self.bob)
        # A forged id inside the patch does not change which row is checked.
        with self.assertRaises(Forbidden):
            repository.update_task(
                bobs_task.pk,
                {"id": 1, "assigned_person_id": self.alice.pk},
                self.as_alice,
            )

    def test_patch_is_validated_as_a_whole(self):
        task = self.make_task(self.alice)
        with self.assertRaises(ValidationError) as ctx:
            repository.update_task(
                task.pk,
                {"submission_date": self.today - timedelta(days=10)},
                self.as_alice,
            )
        self.assertIn("assigned_date", ctx.exception.message_dict)
        task.refresh_from_db()
        self.assertEqual(task.version, 1)

    def test_user_cannot_reassign_to_admin(self):
        task = self.make_task(self.alice)
        with self.assertRaises(ValidationError) as ctx:
            repository.update_task(
                task.pk, {"assigned_person_id": self.admin.pk}, self.as_alice
            )
        self.assertIn("assigned_person", ctx.exception.message_dict)

    def test_missing_task_is_not_found(self):
        with self.assertRaises(NotFound):
            repository.update_task(999999, {"name": "x"}, self.as_admin)

    def test_stale_version_conflicts_and_first_write_survives(self):
        task = self.make_task(self.alice)
        read_version = task.version

        first = repository.update_task(
            task.pk, {"name": "First"}, self.as_alice, expected_version=read_version
        )
        self.assertEqual(first.version, read_version + 1)

        with self.assertRaises(Conflict):
            repository.update_task(
                task.pk, {"name": "Second"}, self.as_admin, expected_version=read_version
            )

        stored = repository.get_task(task.pk, self.as_alice)
        self.assertEqual(stored.name, "First")
        self.assertEqual(stored.version, read_version + 1)


class DeleteTaskTests(RepositoryTestCase):
    def test_owner_deletes(self):
        task = self.make_task(self.alice)
        repository.delete_task(task.pk, self.as_alice)
        self.assertFalse(Task.objects.filter(pk=task.pk).exists())

    def test_non_owner_is_forbidden(self):
        task = self.make_task(self.alice)
        with self.assertRaises(Forbidden):
            repository.delete_task(task.pk, self.as_bob)
        self.assertTrue(Task.objects.filter(pk=task.pk).exists())

    def test_admin_deletes_any_task(self):
        task = self.make_task(self.bob)
        repository.delete_task(task.pk, self.as_admin)
        self.assertFalse(Task.objects.filter(pk=task.pk).exists())

    def test_missing_task_is_not_found(self):
        with self.assertRaises(NotFound):
            repository.delete_task(999999, self.as_admin)


class ListTasksTests(RepositoryTestCase):
    def setUp(self):
        super().setUp()
        self.alice_pending = self.make_task(self.alice, name="A1")
        self.alice_done = self.make_task(self.alice, name="A2", status=TaskStatus.COMPLETED)
        self.bob_pending = self.make_task(self.bob, name="B1")
        self.admin_task = self.make_task(self.admin, name="Z1", status=TaskStatus.IN_PROGRESS)

    def test_user_sees_exactly_own_tasks(self):
        for principal, user in ((self.as_alice, self.alice), (self.as_bob, self.bob)):
            visible = set(repository.list_tasks(principal).values_list("pk", flat=True))
            owned = set(Task.objects.filter(assigned_person=user).values_list("pk", flat=True))
            self.assertEqual(visible, owned)

    def test_admin_sees_everything(self):
        self.assertEqual(repository.list_tasks(self.as_admin).count(), 4)

    def test_status_filter_is_role_scoped(self):
        names = [t.name for t in repository.list_tasks(self.as_alice, "Completed")]
        self.assertEqual(names, ["A2"])
        names = [t.name for t in repository.list_tasks(self.as_admin, "Pending")]
        self.assertEqual(sorted(names), ["A1", "B1"])

    def test_status_filter_ignores_case_and_spacing(self):
        for raw in ("inprogress", "InProgress", "In Progress", "IN_PROGRESS"):
            names = [t.name for t in repository.list_tasks(self.as_admin, raw)]
            self.assertEqual(names, ["Z1"], raw)

    def test_unknown_status_returns_unfiltered_scoped_list(self):
        names = sorted(t.name for t in repository.list_tasks(self.as_alice, "Someday"))
        self.assertEqual(names, ["A1", "A2"])

    def test_anonymous_is_unauthorized(self):
        with self.assertRaises(Unauthorized):
            repository.list_tasks(None)


class AssignableUsersTests(RepositoryTestCase):
    def test_admin_sees_all_users_by_name(self):
        names = [u.name for u in repository.assignable_users(self.as_admin)]
        self.assertEqual(names, ["Alice", "Bob", "Zed Admin"])

    def test_user_never_sees_admins(self):
        names = [u.name for u in repository.assignable_users(self.as_alice)]
        self.assertEqual(names, ["Alice", "Bob"])


class CategoryTests(RepositoryTestCase):
    def test_admin_creates_category(self):
        category = repository.create_category(self.as_admin, " Infra ", "Servers")
        self.assertEqual(category.name, "Infra")
        self.assertEqual(
            [c.name for c in repository.list_categories(self.as_bob)], ["Infra", "Ops"]
        )

    def test_user_cannot_create_category(self):
        with self.assertRaises(Forbidden):
            repository.create_category(self.as_alice, "Infra")
        self.assertFalse(Category.objects.filter(pk="Infra").exists())

    def test_duplicate_name_is_a_validation_error(self):
        with self.assertRaises(ValidationError) as ctx:
            repository.create_category(self.as_admin, "Ops")
        self.assertIn("name", ctx.exception.message_dict)

    def test_deleting_category_removes_its_tasks(self):
        task = self.make_task(self.alice)
        self.category.delete()
        self.assertFalse(Task.objects.filter(pk=task.pk).exists())
