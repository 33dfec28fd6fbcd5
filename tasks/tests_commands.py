from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from .models import CustomUser, Role


class CreateAdminCommandTests(TestCase):
    def run_command(self, *args):
        out = StringIO()
        call_command('create_admin', *args, stdout=out)
        return out.getvalue()

    def test_creates_new_admin(self):
        output = self.run_command('--email', 'root@example.com', '--password', 'pw')
        user = CustomUser.objects.get(email='root@example.com')
        self.assertEqual(user.role, Role.ADMIN)
        self.assertTrue(user.is_staff)
        self.assertTrue(user.check_password('pw'))
        self.assertIn('Created root@example.com', output)

    def test_promotes_existing_user(self):
        CustomUser.objects.create_user(email='bo@example.com', password='pw', name='Bo')
        output = self.run_command('--email', 'bo@example.com')
        self.assertEqual(CustomUser.objects.get(email='bo@example.com').role, Role.ADMIN)
        self.assertIn('Promoted', output)

    def test_password_needed_for_new_account(self):
        with self.assertRaises(CommandError):
            self.run_command('--email', 'new@example.com')
