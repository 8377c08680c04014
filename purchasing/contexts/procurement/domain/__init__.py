from purchasing.contexts.procurement.domain.errors import (
    InvalidPurchaseRequest,
    InvalidTransition,
    ItemNotFound,
    PurchaseRequestError,
    TransitionResult,
    VendorAlreadySelected,
)
from purchasing.contexts.procurement.domain.purchase_request import OPERATIONS, PurchaseRequest, StatusChange
from purchasing.contexts.procurement.domain.rfq_item import RfqItem
from purchasing.contexts.procurement.domain.status import (
    PURCHASE_REQUEST_TRANSITIONS,
    RFQ_ITEM_TRANSITIONS,
    PurchaseRequestKind,
    PurchaseRequestStatus,
    RfqItemStatus,
)

__all__ = [
    "OPERATIONS",
    "PURCHASE_REQUEST_TRANSITIONS",
    "RFQ_ITEM_TRANSITIONS",
    "InvalidPurchaseRequest",
    "InvalidTransition",
    "ItemNotFound",
    "PurchaseRequest",
    "PurchaseRequestError",
    "PurchaseRequestKind",
    "PurchaseRequestStatus",
    "RfqItem",
    "RfqItemStatus",
    "StatusChange",
    "TransitionResult",
    "VendorAlreadySelected",
]
