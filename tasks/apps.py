from django.apps import AppConfig


class TasksConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'tasks'
    verbose_name = 'Task Board'

    # NOTE: No DB operations in ready(). The first Admin account is created
    # with the create_admin management command instead.
