"""
ossmctl - OSSM BLE Control Library

A Python library for safely controlling OSSM stroke actuators via Bluetooth.
"""

__version__ = "0.1.0"
__description__ = "Connection and command engine for OSSM stroke actuators over BLE"

from .config import ClientConfig
from .controller import OssmController
from .errors import (
    AbortedError,
    DataError,
    DeviceNotFoundError,
    InputValidationError,
    InvalidStateError,
    NotReadyError,
    OperationFailedError,
    OssmError,
    OssmTimeoutError,
    ProtocolError,
    UnexpectedResponseError,
    UnreachableError,
)
from .models import (
    DeviceState,
    EventType,
    Field,
    KnownPattern,
    Page,
    PatternDescriptor,
    Status,
)
from .motion import StrokePattern
from .transport import BleakTransport, Transport

__all__ = [
    "OssmController",
    "ClientConfig",
    "Transport",
    "BleakTransport",
    "DeviceState",
    "PatternDescriptor",
    "EventType",
    "Field",
    "KnownPattern",
    "Page",
    "Status",
    "StrokePattern",
    "OssmError",
    "InputValidationError",
    "NotReadyError",
    "InvalidStateError",
    "UnreachableError",
    "ProtocolError",
    "OperationFailedError",
    "DataError",
    "UnexpectedResponseError",
    "OssmTimeoutError",
    "AbortedError",
    "DeviceNotFoundError",
]
