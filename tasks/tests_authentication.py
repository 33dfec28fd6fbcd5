from django.contrib.auth.models import AnonymousUser
from django.contrib.sessions.middleware import SessionMiddleware
from django.test import RequestFactory, TestCase

from . import authentication
from .exceptions import DuplicateEmail, InvalidCredentials, Unauthorized, ValidationError
from .models import CustomUser, Role


def build_request(user=None):
    request = RequestFactory().post("/")
    SessionMiddleware(lambda r: None).process_request(request)
    request.session.save()
    request.user = user or AnonymousUser()
    return request


class RegisterTests(TestCase):
    def test_register_hashes_password(self):
        user = authentication.register("Alice", "alice@example.com", "pw1")
        self.assertNotEqual(user.password, "pw1")
        self.assertTrue(user.check_password("pw1"))
        self.assertEqual(user.role, Role.USER)

    def test_duplicate_email_is_rejected_and_store_unchanged(self):
        authentication.register("A", "a@x.com", "pw1")
        with self.assertRaises(DuplicateEmail) as ctx:
            authentication.register("A again", "a@x.com", "pw2")
        self.assertIn("email", ctx.exception.message_dict)
        self.assertEqual(CustomUser.objects.filter(email="a@x.com").count(), 1)
        self.assertTrue(CustomUser.objects.get(email="a@x.com").check_password("pw1"))

    def test_duplicate_check_ignores_case(self):
        authentication.register("A", "a@x.com", "pw1")
        with self.assertRaises(DuplicateEmail):
            authentication.register("B", "A@X.COM", "pw2")

    def test_register_admin(self):
        user = authentication.register("Root", "root@example.com", "pw", role=Role.ADMIN)
        self.assertTrue(user.is_admin)


class SignInTests(TestCase):
    def setUp(self):
        self.user = authentication.register("Alice", "alice@example.com", "secret-pass-1")

    def test_sign_in_returns_principal_and_starts_session(self):
        request = build_request()
        principal = authentication.sign_in(request, "alice@example.com", "secret-pass-1")
        self.assertEqual(principal.user_id, self.user.pk)
        self.assertEqual(principal.email, "alice@example.com")
        self.assertEqual(principal.role, "User")
        self.assertEqual(int(request.session["_auth_user_id"]), self.user.pk)

    def test_sign_in_ignores_email_case(self):
        bob = authentication.register("Bob", "Bob@x.com", "secret-pass-2")
        principal = authentication.sign_in(build_request(), "bob@x.com", "secret-pass-2")
        self.assertEqual(principal.user_id, bob.pk)
        principal = authentication.sign_in(build_request(), "ALICE@example.com", "secret-pass-1")
        self.assertEqual(principal.user_id, self.user.pk)

    def test_unknown_email_and_wrong_password_look_the_same(self):
        with self.assertRaises(InvalidCredentials) as unknown:
            authentication.sign_in(build_request(), "nobody@example.com", "secret-pass-1")
        with self.assertRaises(InvalidCredentials) as wrong:
            authentication.sign_in(build_request(), "alice@example.com", "nope")
        self.assertEqual(str(unknown.exception), str(wrong.exception))

    def test_sign_out_clears_session(self):
        request = build_request()
        authentication.sign_in(request, "alice@example.com", "secret-pass-1")
        authentication.sign_out(request)
        self.assertNotIn("_auth_user_id", request.session)
        self.assertIsNone(authentication.resolve_principal(request))


class ChangePasswordTests(TestCase):
    def setUp(self):
        self.user = authentication.register("Alice", "alice@example.com", "secret-pass-1")
        self.request = build_request()
        authentication.sign_in(self.request, "alice@example.com", "secret-pass-1")

    def test_wrong_current_password(self):
        with self.assertRaises(InvalidCredentials):
            authentication.change_password(
                self.request, "bad", "another-pass-22", "another-pass-22"
            )
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password("secret-pass-1"))

    def test_confirmation_mismatch(self):
        with self.assertRaises(ValidationError) as ctx:
            authentication.change_password(
                self.request, "secret-pass-1", "another-pass-22", "another-pass-23"
            )
        self.assertIn("confirm_password", ctx.exception.message_dict)

    def test_success_rehashes_and_signs_out(self):
        authentication.change_password(
            self.request, "secret-pass-1", "another-pass-22", "another-pass-22"
        )
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password("another-pass-22"))
        self.assertIsNone(authentication.resolve_principal(self.request))

    def test_requires_principal(self):
        with self.assertRaises(Unauthorized):
            authentication.change_password(build_request(), "a", "b", "b")
