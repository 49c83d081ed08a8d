from datetime import datetime, timezone
from vnum_api.core.config import get_settings
from vnum_api.core.hasura import HasuraClient
from vnum_api.repositories.validity_repository import ValidityRepository
from vnum_api.services.validity_service import ResellerValidityService
import logging

logger = logging.getLogger("validity_checker")
logger.setLevel(logging.INFO)
handler = logging.StreamHandler()
formatter = logging.Formatter("[%(asctime)s] [%(levelname)s] %(message)s")
handler.setFormatter(formatter)
logger.addHandler(handler)


def expire_lapsed_validity(client: HasuraClient) -> int:
    service = ResellerValidityService(ValidityRepository(client))
    now = datetime.now(timezone.utc)

    expired = service.expire_lapsed(now)
    if expired:
        logger.info(f"{expired} reseller validity window(s) marked as EXPIRED.")
    return expired


# Celery wrapper
from vnum_api.worker_app import celery_app  # noqa: E402


@celery_app.task(bind=True, max_retries=3, name="vnum_api.tasks.validity_checker.expire_lapsed_validity_task")
def expire_lapsed_validity_task(self):
    client = HasuraClient.from_settings(get_settings())
    try:
        return expire_lapsed_validity(client)
    except Exception as e:
        # Retry after 10 seconds
        raise self.retry(exc=e, countdown=10)
    finally:
        client.close()
