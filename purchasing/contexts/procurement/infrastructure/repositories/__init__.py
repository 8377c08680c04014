from .purchase_request_repository import PurchaseRequestRepository, StaleAggregateError
from .rfq_item_repository import RfqItemRepository
from .status_event_repository import StatusEventRepository

__all__ = [
    "PurchaseRequestRepository",
    "RfqItemRepository",
    "StaleAggregateError",
    "StatusEventRepository",
]
