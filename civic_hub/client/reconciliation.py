"""
Reconciliation state for one in-flight operation intent.

Lives exactly as long as the operation: created when it starts, dropped
when it succeeds or its single replay is spent. Never persisted.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from civic_hub.client.base import DataPath, Path
from civic_hub.client.intents import OperationIntent

MAX_ATTEMPTS = 2


@dataclass
class ReconciliationState:
    intent: OperationIntent
    attempted_paths: List[Path] = field(default_factory=list)

    @property
    def idempotency_marker(self) -> Optional[str]:
        return self.intent.idempotency_key

    @property
    def attempts(self) -> int:
        return len(self.attempted_paths)

    def begin_attempt(self, path: Path) -> None:
        if path in self.attempted_paths or self.attempts >= MAX_ATTEMPTS:
            raise RuntimeError(
                f"{self.intent.name} already attempted on {[p.value for p in self.attempted_paths]}; "
                f"refusing another attempt on {path.value}"
            )
        self.attempted_paths.append(path)

    def replay_blocker(self, alternate: DataPath) -> Optional[str]:
        """
        Why the intent may not be replayed on alternate, or None if it may.
        """
        if self.attempts >= MAX_ATTEMPTS:
            return "retry already used"
        if alternate.path in self.attempted_paths:
            return f"already attempted on {alternate.path.value}"
        if self.intent.mutating:
            if not self.idempotency_marker:
                return "mutation has no idempotency marker"
            if not alternate.supports_replay(self.intent.name):
                return f"{alternate.path.value} path cannot replay {self.intent.name} by marker"
        return None
