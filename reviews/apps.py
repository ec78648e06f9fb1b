from django.apps import AppConfig
from django.conf import settings


class ReviewsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'reviews'

    def ready(self):
        from .config import EngineConfig
        from .services import ReviewEngine

        # Конфигурация читается один раз, дальше передается явно
        self.engine = ReviewEngine(EngineConfig.from_settings(settings))
