from django.test import TestCase, Client
from django.urls import reverse
from .models import CustomUser


class SignUpCsrfTest(TestCase):
    def setUp(self):
        self.client = Client(enforce_csrf_checks=True)

    def test_sign_up_page_contains_csrf(self):
        resp = self.client.get(reverse('sign_up'))
        self.assertEqual(resp.status_code, 200)
        content = resp.content.decode('utf-8')
        self.assertIn('csrfmiddlewaretoken', content)

    def test_post_without_token_is_rejected(self):
        data = {
            'name': 'Test User',
            'email': 'testuser@example.com',
            'password': 'ComplexPass123!',
            'confirm_password': 'ComplexPass123!',
            'designation': 'SDE',
            'department': 'IT',
        }
        resp = self.client.post(reverse('sign_up'), data)
        self.assertEqual(resp.status_code, 403)
        self.assertFalse(CustomUser.objects.filter(email='testuser@example.com').exists())

    def test_post_with_token_creates_user(self):
        url = reverse('sign_up')
        get_resp = self.client.get(url)
        self.assertEqual(get_resp.status_code, 200)
        token = self.client.cookies['csrftoken'].value

        data = {
            'csrfmiddlewaretoken': token,
            'name': 'Test User',
            'email': 'testuser@example.com',
            'password': 'ComplexPass123!',
            'confirm_password': 'ComplexPass123!',
            'designation': 'SDE',
            'department': 'IT',
        }
        post_resp = self.client.post(url, data, follow=True)
        self.assertNotEqual(post_resp.status_code, 403, msg="CSRF still failing")
        user = CustomUser.objects.get(email='testuser@example.com')
        self.assertEqual(user.role, 'User')

    def test_task_create_requires_token(self):
        user = CustomUser.objects.create_user(email='u@example.com', password='pass1234', name='U')
        self.client.force_login(user)
        resp = self.client.post(reverse('task_create'), {'name': 'x'})
        self.assertEqual(resp.status_code, 403)
