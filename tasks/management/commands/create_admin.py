from django.core.management.base import BaseCommand, CommandError

from tasks.authentication import register
from tasks.exceptions import DuplicateEmail
from tasks.models import CustomUser, Department, Designation, Role


class Command(BaseCommand):
    help = 'Create an Admin account, or promote an existing user to Admin.'

    def add_arguments(self, parser):
        parser.add_argument('--email', required=True)
        parser.add_argument('--name', default='Administrator')
        parser.add_argument('--password', help='Required when the account does not exist yet.')
        parser.add_argument('--designation', default=Designation.SDE, choices=Designation.values)
        parser.add_argument('--department', default=Department.ADMIN, choices=Department.values)

    def handle(self, *args, **options):
        email = options['email']
        user = CustomUser.objects.filter(email__iexact=email).first()

        if user is None:
            if not options['password']:
                raise CommandError('--password is required to create a new account.')
            try:
                user = register(
                    name=options['name'],
                    email=email,
                    raw_password=options['password'],
                    role=Role.ADMIN,
                    designation=options['designation'],
                    department=options['department'],
                )
            except DuplicateEmail:
                raise CommandError(f'{email} was registered concurrently; run the command again.')
            self.stdout.write(f'Created {user.email}.')
        elif user.role != Role.ADMIN:
            user.role = Role.ADMIN
            user.save(update_fields=['role'])
            self.stdout.write(f'Promoted {user.email} to Admin.')
        else:
            self.stdout.write(f'{user.email} is already an Admin.')

        if not user.is_staff:
            user.is_staff = True
            user.save(update_fields=['is_staff'])

        self.stdout.write(self.style.SUCCESS('Admin account ready.'))
