from vnum_api.core.config import get_settings
from vnum_api.core.hasura import HasuraClient
from vnum_api.repositories.validity_repository import ValidityRepository
from vnum_api.repositories.wallet_repository import WalletRepository
from vnum_api.services.validity_service import ResellerValidityService
from vnum_api.services.wallet_service import WalletService
import logging

logger = logging.getLogger("wallet_audit")
logger.setLevel(logging.INFO)
handler = logging.StreamHandler()
formatter = logging.Formatter("[%(asctime)s] [%(levelname)s] %(message)s")
handler.setFormatter(formatter)
logger.addHandler(handler)

PAGE_SIZE = 100


def audit_wallet_balances(client: HasuraClient) -> list[dict]:
    """Return the wallets whose balance differs from credits minus debits."""
    repository = WalletRepository(client)
    service = WalletService(repository, ResellerValidityService(ValidityRepository(client)))

    mismatches = []
    offset = 0
    while True:
        wallets = repository.list_wallets(limit=PAGE_SIZE, offset=offset)
        for wallet in wallets:
            report = service.reconcile_balance(wallet)
            if report["drift"] != 0:
                logger.warning(
                    f"Wallet {report['wallet_id']} (reseller {wallet.get('reseller_id')}): "
                    f"balance={report['balance']} ledger={report['ledger_balance']} drift={report['drift']}"
                )
                mismatches.append(report)

        if len(wallets) < PAGE_SIZE:
            break
        offset += PAGE_SIZE

    logger.info(f"Wallet audit finished: {len(mismatches)} mismatch(es).")
    return mismatches


# Celery wrapper
from vnum_api.worker_app import celery_app  # noqa: E402


@celery_app.task(bind=True, max_retries=3, name="vnum_api.tasks.wallet_audit.audit_wallet_balances_task")
def audit_wallet_balances_task(self):
    client = HasuraClient.from_settings(get_settings())
    try:
        return [
            {key: str(value) for key, value in report.items()}
            for report in audit_wallet_balances(client)
        ]
    except Exception as e:
        raise self.retry(exc=e, countdown=60)
    finally:
        client.close()
