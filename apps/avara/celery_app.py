import logging

from avara.core.celery import create_celery_app
from avara.core.logging import setup_logging

setup_logging()

# Worker entrypoint: `celery -A avara.celery_app worker -Q default,agents`
app = create_celery_app()

logging.getLogger(__name__).info("Celery app initialized")
