from django.apps import AppConfig


class TasksConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'tasks'
    verbose_name = 'Tasks'

    def ready(self):
        # Connect the stage-change receivers
        from . import signals  # noqa: F401
