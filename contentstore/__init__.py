"""Resource-addressed access to the image catalog and history log."""

from .core.address import ResourceAddress
from .core.config import VERSION as __version__
from .core.errors import (
    ConstraintViolation,
    ContentStoreError,
    InvalidColumn,
    MalformedPredicate,
    SchemaValidationError,
    StorageResetError,
    UnknownResource,
    UnsupportedOperation,
)
from .core.notify import ChangeNotification, NotificationGate, NotificationSink, ObserverBus
from .core.provider import DataProvider
from .core.router import ResourceRouter, Route, RouteResolution
from .core.selection import SelectionBuilder

__all__ = [
    "ChangeNotification",
    "ConstraintViolation",
    "ContentStoreError",
    "DataProvider",
    "InvalidColumn",
    "MalformedPredicate",
    "NotificationGate",
    "NotificationSink",
    "ObserverBus",
    "ResourceAddress",
    "ResourceRouter",
    "Route",
    "RouteResolution",
    "SchemaValidationError",
    "SelectionBuilder",
    "StorageResetError",
    "UnknownResource",
    "UnsupportedOperation",
]
