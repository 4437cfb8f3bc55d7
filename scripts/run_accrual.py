"""
Monthly leave accrual. Run from cron (or any scheduler) on the 1st:

    0 0 1 * * cd /srv/hr-platform && python -m scripts.run_accrual
"""
import sys
import os
import logging

# Ensure we can import app modules
sys.path.append(os.getcwd())

from app.core.logging import setup_logging
from app.database import SessionLocal
from app.services.leave_balance_service import run_accrual_for_all_tenants

setup_logging()
logger = logging.getLogger(__name__)


def main() -> int:
    db = SessionLocal()
    try:
        results = run_accrual_for_all_tenants(db)
    except Exception:
        logger.exception("Leave accrual run failed")
        return 1
    finally:
        db.close()

    for subdomain, updated in results.items():
        logger.info(f"Accrued leave for tenant {subdomain}", extra={"tenant": subdomain, "updated": updated})
    logger.info(f"Accrual complete for {len(results)} tenant(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
