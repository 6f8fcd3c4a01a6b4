"""
Client core: one API over two data paths (the REST API and Supabase
directly), with a shared session and single-retry fallback.
"""

from typing import Optional

from civic_hub.client.base import DataPath, Path
from civic_hub.client.intents import OperationIntent, OperationKind
from civic_hub.client.orchestrator import ConnectivityReport, FallbackOrchestrator, PathSelector
from civic_hub.client.primary import PrimaryClient
from civic_hub.client.reconciliation import ReconciliationState
from civic_hub.client.secondary import SecondaryClient
from civic_hub.client.session_store import Credential, SessionStore


def create_orchestrator(session_store: Optional[SessionStore] = None) -> FallbackOrchestrator:
    """Wire both paths to one session store using settings for everything else."""
    store = session_store or SessionStore()
    return FallbackOrchestrator(PrimaryClient(store), SecondaryClient(store), store)


__all__ = [
    "ConnectivityReport",
    "Credential",
    "DataPath",
    "FallbackOrchestrator",
    "OperationIntent",
    "OperationKind",
    "Path",
    "PathSelector",
    "PrimaryClient",
    "ReconciliationState",
    "SecondaryClient",
    "SessionStore",
    "create_orchestrator",
]
