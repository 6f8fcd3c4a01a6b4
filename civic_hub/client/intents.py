"""
Operation intents: what the caller asked for, independent of which path
ends up executing it.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional


class OperationKind(str, Enum):
    """Path preference is tracked separately for each kind."""
    AUTH = "auth"
    READ_LIST = "read_list"
    READ_SINGLE = "read_single"
    MUTATE = "mutate"


OPERATION_KINDS: Dict[str, OperationKind] = {
    "register": OperationKind.AUTH,
    "login": OperationKind.AUTH,
    "refresh": OperationKind.AUTH,
    "list_issues": OperationKind.READ_LIST,
    "user_issues": OperationKind.READ_LIST,
    "user_upvoted": OperationKind.READ_LIST,
    "current_user": OperationKind.READ_SINGLE,
    "get_issue": OperationKind.READ_SINGLE,
    "get_profile": OperationKind.READ_SINGLE,
    "user_stats": OperationKind.READ_SINGLE,
    "create_issue": OperationKind.MUTATE,
    "update_issue": OperationKind.MUTATE,
    "delete_issue": OperationKind.MUTATE,
    "toggle_upvote": OperationKind.MUTATE,
    "add_comment": OperationKind.MUTATE,
    "update_profile": OperationKind.MUTATE,
}


@dataclass(frozen=True)
class OperationIntent:
    name: str
    kind: OperationKind
    params: Mapping[str, Any] = field(default_factory=dict)
    idempotency_key: Optional[str] = None

    @classmethod
    def create(cls, name: str, **params: Any) -> "OperationIntent":
        """
        Build an intent for a DataPath operation.

        Mutations get a fresh idempotency key here, once, so the original
        attempt and its replay carry the same marker.
        """
        try:
            kind = OPERATION_KINDS[name]
        except KeyError:
            raise ValueError(f"Unknown operation: {name}")
        key = str(uuid.uuid4()) if kind is OperationKind.MUTATE else None
        return cls(name=name, kind=kind, params=MappingProxyType(dict(params)), idempotency_key=key)

    @property
    def mutating(self) -> bool:
        return self.kind is OperationKind.MUTATE

    def call_kwargs(self) -> Dict[str, Any]:
        kwargs = dict(self.params)
        if self.mutating:
            kwargs["idempotency_key"] = self.idempotency_key
        return kwargs
