import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class PhotosyncConfig(AppConfig):
    name = 'photosync'
    default_auto_field = 'django.db.models.BigAutoField'

    services = None

    def ready(self):
        """
        Run when Django app is ready.

        Builds the shared services (stores, engines, sync coordinator).
        """
        # Import here to avoid circular imports
        from photosync.services import build_services

        self.services = build_services()
        logger.debug("photosync services ready")
