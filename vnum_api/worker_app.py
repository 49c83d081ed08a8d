from celery import Celery
from celery.schedules import crontab
from datetime import timedelta
from vnum_api.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

# Autodiscover task modules
celery_app.autodiscover_tasks(["vnum_api.tasks"])

# Force import so Celery registers tasks
import vnum_api.tasks.validity_checker  # noqa: E402,F401
import vnum_api.tasks.wallet_audit  # noqa: E402,F401


celery_app.conf.beat_schedule = {

    # --------------------------------------------------------
    # 1. Flip lapsed reseller validity windows to EXPIRED
    # --------------------------------------------------------
    "expire-lapsed-validity": {
        "task": "vnum_api.tasks.validity_checker.expire_lapsed_validity_task",
        "schedule": timedelta(minutes=int(settings.VALIDITY_EXPIRY_INTERVAL_MINUTES)),
    },

    # --------------------------------------------------------
    # 2. Compare wallet balances with their ledgers
    # --------------------------------------------------------
    "audit-wallet-balances": {
        "task": "vnum_api.tasks.wallet_audit.audit_wallet_balances_task",
        "schedule": crontab(hour=2, minute=0),
    },

}
