from purchasing.core.event_bus import (
    DomainEvent,
    EventBus,
    PurchaseOrderCanceled,
    PurchaseOrderCreated,
    PurchaseOrderReceived,
    PurchaseRequestCreated,
    PurchaseRequestStatusChanged,
    get_event_bus,
    reset_event_bus_for_tests,
)

__all__ = [
    "DomainEvent",
    "EventBus",
    "PurchaseRequestCreated",
    "PurchaseRequestStatusChanged",
    "PurchaseOrderCreated",
    "PurchaseOrderCanceled",
    "PurchaseOrderReceived",
    "get_event_bus",
    "reset_event_bus_for_tests",
]
