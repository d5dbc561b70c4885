from django.apps import AppConfig


class BookingsConfig(AppConfig):
    name = 'apps.bookings'
    default_auto_field = 'django.db.models.BigAutoField'

    def ready(self) -> None:
        from apps.bookings.application.bootstrap import register_handlers

        register_handlers()
