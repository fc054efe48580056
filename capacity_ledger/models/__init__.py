"""
Modèles SQLAlchemy / SQLAlchemy models.
Importer tous les modèles ici pour que create_all les détecte.
Import all models here so create_all can detect them.
"""

from capacity_ledger.models.lane import Capability, Lane, lane_capabilities
from capacity_ledger.models.sales_item import SalesItem, sales_item_capabilities
from capacity_ledger.models.capacity_interval import CapacityInterval
from capacity_ledger.models.worker_contribution import ContributionInterval, WorkerContribution
from capacity_ledger.models.lane_interval_capacity import LaneIntervalCapacity
from capacity_ledger.models.booking import (
    Booking,
    BookingInterval,
    BookingIntervalContribution,
    BookingStatus,
    booking_sales_items,
)
from capacity_ledger.models.audit import AuditLog

__all__ = [
    "Capability",
    "Lane",
    "lane_capabilities",
    "SalesItem",
    "sales_item_capabilities",
    "CapacityInterval",
    "WorkerContribution",
    "ContributionInterval",
    "LaneIntervalCapacity",
    "Booking",
    "BookingInterval",
    "BookingIntervalContribution",
    "BookingStatus",
    "booking_sales_items",
    "AuditLog",
]
