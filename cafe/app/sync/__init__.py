"""Optimistic synchronization between the console and the document store."""

from .coordinator import MutationKind, MutationStatus, OptimisticMutationCoordinator, PendingMutation
from .featured import BoundedFeaturedSet
from .paginator import CursorPaginator, Page
from .slots import BookingAttempt, SlotAvailabilityGuard, SlotState

__all__ = [
    "BookingAttempt",
    "BoundedFeaturedSet",
    "CursorPaginator",
    "MutationKind",
    "MutationStatus",
    "OptimisticMutationCoordinator",
    "Page",
    "PendingMutation",
    "SlotAvailabilityGuard",
    "SlotState",
]
