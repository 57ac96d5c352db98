"""Exception hierarchy raised by the OSSM controller."""


class OssmError(Exception):
    """Base class for every error raised by ossmctl."""


class DeviceNotFoundError(OssmError):
    """No OSSM device answered a scan."""


class InputValidationError(OssmError, ValueError):
    """An argument was out of range or malformed; no I/O was attempted."""


class NotReadyError(OssmError):
    """The operation needs an established link."""


class InvalidStateError(OssmError):
    """The device is not in a state that allows the operation."""


class UnreachableError(InvalidStateError):
    """No route exists in the navigation graph to the requested page."""


class ProtocolError(OssmError):
    """The device did not acknowledge a command as expected."""


class OperationFailedError(ProtocolError):
    """The device answered ``fail:<command>``."""


class DataError(ProtocolError):
    """The device returned data that could not be understood or confirmed."""


class UnexpectedResponseError(DataError):
    """The command echo matched neither success nor failure."""


class OssmTimeoutError(OssmError, TimeoutError):
    """A deadline elapsed while waiting on the device."""


class AbortedError(OssmError):
    """A queued exchange was cancelled before it could complete."""
