"""Application services - routing, startup reconciliation and library events."""

from librarysync.application.services.library_events import LibraryEventHandlers
from librarysync.application.services.provider_router import (
    ProviderRouter,
    RequestKind,
    RouteMatch,
)

# Startup only: run once after providers are registered, before events flow.
from librarysync.application.services.reconciliation_service import (
    PassResult,
    ReconciliationReport,
    ReconciliationService,
)

__all__ = [
    "LibraryEventHandlers",
    "PassResult",
    "ProviderRouter",
    "ReconciliationReport",
    "ReconciliationService",
    "RequestKind",
    "RouteMatch",
]
