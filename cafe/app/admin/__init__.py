"""Admin console built on the sync core."""

from .console import AdminConsole, CollectionConsole
from .screens import (
    ReviewFilter,
    dashboard_counts,
    filter_faqs,
    filter_reviews,
    home_listing,
    reservation_stats,
    search_messages,
    search_orders,
    set_reservation_status,
    toggle_offer_status,
)

__all__ = [
    "AdminConsole",
    "CollectionConsole",
    "ReviewFilter",
    "dashboard_counts",
    "filter_faqs",
    "filter_reviews",
    "home_listing",
    "reservation_stats",
    "search_messages",
    "search_orders",
    "set_reservation_status",
    "toggle_offer_status",
]
