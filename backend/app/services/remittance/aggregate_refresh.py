"""
Outstanding Fees Aggregator

Post-pass job that recomputes each lawyer's displayed outstanding-fees total.

The total is always recomputed from transactions, never adjusted
incrementally. Every lawyer in the directory is refreshed, not only those
with overdue obligations, so a lawyer who just settled drops to zero.
Failures here are display-only and never fail a compliance run.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models.db_models import LawyerDB, TransactionDB, TransactionStatus


logger = logging.getLogger(__name__)


class OutstandingFeesAggregator:
    """
    Recomputes LawyerDB.outstanding_fees_total.

    Usage:
        aggregator = OutstandingFeesAggregator(db)
        summary = aggregator.refresh_all(now)
    """

    # Lawyers loaded per directory page
    DEFAULT_BATCH_SIZE = 200

    def __init__(self, db: Session):
        self.db = db

    def compute_outstanding(self, lawyer_id: str) -> Decimal:
        """Sum of collected, unremitted platform fees for a lawyer."""
        total = self.db.query(
            func.coalesce(func.sum(TransactionDB.platform_fee_amount), 0)
        ).filter(
            TransactionDB.lawyer_id == lawyer_id,
            TransactionDB.status == TransactionStatus.COMPLETED,
            TransactionDB.fee_collected.is_(True),
            TransactionDB.fee_remitted.is_(False),
        ).scalar()
        return Decimal(total or 0)

    def refresh_lawyer(self, lawyer_id: str, now: Optional[datetime] = None) -> Decimal:
        """Recompute and store one lawyer's outstanding total."""
        now = now or datetime.utcnow()
        total = self.compute_outstanding(lawyer_id)

        lawyer = self.db.query(LawyerDB).filter(LawyerDB.id == lawyer_id).first()
        if lawyer is None:
            raise LookupError(f"Lawyer {lawyer_id} not found")

        lawyer.outstanding_fees_total = total
        lawyer.outstanding_fees_updated_at = now
        self.db.commit()
        return total

    def iter_lawyer_ids(self, batch_size: int = DEFAULT_BATCH_SIZE) -> Iterator[List[str]]:
        """Yield lawyer ids in keyset-paginated batches."""
        last_id = None
        while True:
            query = self.db.query(LawyerDB.id).order_by(LawyerDB.id)
            if last_id is not None:
                query = query.filter(LawyerDB.id > last_id)
            batch = [row[0] for row in query.limit(batch_size).all()]
            if not batch:
                return
            yield batch
            last_id = batch[-1]

    def refresh_all(
        self,
        now: Optional[datetime] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> Dict[str, Any]:
        """
        Refresh every lawyer in the directory.

        Per-lawyer failures are rolled back, logged and counted. A failed
        directory listing ends the refresh early and is reported in
        listing_error; it is never raised.

        Returns:
            Summary with refreshed/failed counts and failure details
        """
        now = now or datetime.utcnow()
        refreshed = 0
        failures = []
        listing_error = None

        try:
            for batch in self.iter_lawyer_ids(batch_size):
                for lawyer_id in batch:
                    try:
                        self.refresh_lawyer(lawyer_id, now)
                        refreshed += 1
                    except Exception as e:
                        self.db.rollback()
                        failures.append({
                            "lawyer_id": lawyer_id,
                            "error": str(e),
                        })
                        logger.error(f"Outstanding fees refresh failed for lawyer {lawyer_id}: {e}")
        except SQLAlchemyError as e:
            # Lawyers already refreshed keep their totals; the rest wait for the next run
            self.db.rollback()
            listing_error = str(e)
            logger.error(f"Lawyer directory listing failed during outstanding fees refresh: {e}")

        logger.info(f"Outstanding fees refreshed for {refreshed} lawyers ({len(failures)} failed)")

        return {
            "lawyers_refreshed": refreshed,
            "failed": len(failures),
            "failures": failures,
            "listing_error": listing_error,
        }
