from types import SimpleNamespace

from django.test import SimpleTestCase

from .exceptions import Forbidden, Unauthorized
from .policy import Action, Principal, authorize, can_access, may_assign_to, require_admin


def make_task(assignee_id):
    return SimpleNamespace(assigned_person_id=assignee_id)


class CanAccessTests(SimpleTestCase):
    def setUp(self):
        self.admin = Principal(user_id=1, name="Ada", email="ada@example.com", role="Admin")
        self.owner = Principal(user_id=2, name="Bo", email="bo@example.com", role="User")
        self.other = Principal(user_id=3, name="Cy", email="cy@example.com", role="User")

    def test_admin_may_do_everything(self):
        task = make_task(self.owner.user_id)
        for action in Action:
            self.assertTrue(can_access(self.admin, action, task), action)

    def test_owner_may_view_edit_delete(self):
        task = make_task(self.owner.user_id)
        for action in (Action.VIEW, Action.EDIT, Action.DELETE):
            self.assertTrue(can_access(self.owner, action, task), action)

    def test_non_owner_is_refused(self):
        task = make_task(self.owner.user_id)
        for action in (Action.VIEW, Action.EDIT, Action.DELETE):
            self.assertFalse(can_access(self.other, action, task), action)

    def test_user_may_always_create(self):
        self.assertTrue(can_access(self.other, Action.CREATE))

    def test_plain_strings_are_accepted_as_actions(self):
        self.assertTrue(can_access(self.owner, "view", make_task(self.owner.user_id)))

    def test_anonymous_is_refused(self):
        self.assertFalse(can_access(None, Action.CREATE))
        self.assertFalse(can_access(None, Action.VIEW, make_task(1)))

    def test_unknown_role_is_refused(self):
        ghost = Principal(user_id=9, name="?", email="g@example.com", role="Guest")
        self.assertFalse(can_access(ghost, Action.CREATE))


class AuthorizeTests(SimpleTestCase):
    def test_missing_principal_raises_unauthorized(self):
        with self.assertRaises(Unauthorized):
            authorize(None, Action.VIEW, make_task(1))

    def test_non_owner_raises_forbidden(self):
        principal = Principal(user_id=5, name="E", email="e@example.com", role="User")
        with self.assertRaises(Forbidden):
            authorize(principal, Action.EDIT, make_task(6))

    def test_require_admin(self):
        user = Principal(user_id=5, name="E", email="e@example.com", role="User")
        admin = Principal(user_id=6, name="F", email="f@example.com", role="Admin")
        with self.assertRaises(Unauthorized):
            require_admin(None)
        with self.assertRaises(Forbidden):
            require_admin(user)
        require_admin(admin)


class AssignmentTests(SimpleTestCase):
    def test_user_cannot_assign_to_admin(self):
        principal = Principal(user_id=5, name="E", email="e@example.com", role="User")
        self.assertFalse(may_assign_to(principal, SimpleNamespace(role="Admin")))
        self.assertTrue(may_assign_to(principal, SimpleNamespace(role="User")))

    def test_admin_can_assign_to_anyone(self):
        principal = Principal(user_id=6, name="F", email="f@example.com", role="Admin")
        self.assertTrue(may_assign_to(principal, SimpleNamespace(role="Admin")))
        self.assertTrue(may_assign_to(principal, SimpleNamespace(role="User")))
