"""
Housekeeping: mark issued cart coupons past their expiry as expired.

Run periodically (e.g. from cron):
    python -m scripts.expire_coupons
"""
import logging

from bundle_discounts.db import SessionLocal
from bundle_discounts.repositories.coupons import expire_old_coupons

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main():
    db = SessionLocal()
    try:
        count = expire_old_coupons(db)
        logger.info(f"Expired {count} cart coupons")
    finally:
        db.close()

if __name__ == '__main__':
    main()
