"""
Idempotency Service - replay-safe mutations keyed by a client marker.

Both data paths write through this ledger (table idempotency_keys), so a
mutation that reached the database on one path and is replayed on the other
returns the stored result instead of being applied twice.

Row shape:
    key (unique), operation, user_id, status ('pending' | 'completed'),
    response (json), created_at
"""

from typing import Any, Callable, Dict, Optional
import logging

from civic_hub.config.supabase import get_db
from civic_hub.core.errors import CivicHubError, ConflictError, ValidationError
from civic_hub.utils.supabase_helpers import execute, first_row

logger = logging.getLogger(__name__)

TABLE = "idempotency_keys"
PENDING = "pending"
COMPLETED = "completed"


class IdempotencyService:
    """Claim-apply-complete ledger for mutating operations."""

    def __init__(self, db=None):
        self.db = db if db is not None else get_db()

    def run(
        self,
        key: Optional[str],
        operation: str,
        user_id: Optional[str],
        apply: Callable[[], Dict[str, Any]],
    ) -> Dict[str, Any]:
        """
        Apply a mutation at most once per key.

        Without a key the mutation is applied directly.
        """
        if not key:
            return apply()

        existing = self._lookup(key)
        if existing is not None:
            return self._replay(existing, operation, user_id)

        try:
            execute(self.db.table(TABLE).insert({
                "key": key,
                "operation": operation,
                "user_id": user_id,
                "status": PENDING,
            }))
        except ConflictError:
            # Lost the race to another attempt with the same key
            existing = self._lookup(key)
            if existing is None:
                raise
            return self._replay(existing, operation, user_id)

        try:
            result = apply()
        except CivicHubError as e:
            # A retryable failure may have landed after the write; the claim
            # stays pending so a replay cannot apply the mutation again.
            if e.retryable:
                logger.warning(f"Idempotency key {key} left pending after {operation} failed: {e.message}")
            else:
                self._release(key)
            raise

        execute(
            self.db.table(TABLE)
            .update({"status": COMPLETED, "response": result})
            .eq("key", key)
        )
        logger.info(f"Idempotency key {key} completed for {operation}")
        return result

    def _lookup(self, key: str) -> Optional[Dict[str, Any]]:
        return first_row(execute(
            self.db.table(TABLE).select("*").eq("key", key).limit(1)
        ))

    def _replay(self, row: Dict[str, Any], operation: str, user_id: Optional[str]) -> Dict[str, Any]:
        if row.get("operation") != operation or (user_id and row.get("user_id") not in (None, user_id)):
            raise ValidationError(
                "Idempotency key was already used for a different operation",
                error="Idempotency key reuse",
            )
        if row.get("status") != COMPLETED:
            raise ConflictError("An operation with this idempotency key is still in progress")
        logger.info(f"Replaying stored result for idempotency key {row.get('key')} ({operation})")
        return row.get("response") or {}

    def _release(self, key: str) -> None:
        try:
            execute(self.db.table(TABLE).delete().eq("key", key).eq("status", PENDING))
        except Exception as e:
            logger.warning(f"Failed to release idempotency key {key}: {e}")
