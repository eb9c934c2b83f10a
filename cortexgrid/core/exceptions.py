"""Exception hierarchy for cortexgrid.

All errors raised by the library inherit from CortexGridError so callers
can catch everything with one handler while still inspecting the specific
failure. Transport errors are fatal to every in-flight call; request errors
belong to a single caller; session and schema errors describe frames that
the demultiplexer logs and drops.
"""

from typing import List, Optional


class CortexGridError(Exception):
    """Base exception for all cortexgrid errors.

    Attributes:
        message: Human-readable error description.
        headset_id: Optional identifier of the headset the error concerns.
    """

    def __init__(
        self,
        message: str,
        headset_id: Optional[str] = None
    ) -> None:
        self.message = message
        self.headset_id = headset_id
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with optional headset context."""
        if self.headset_id:
            return f"[{self.headset_id}] {self.message}"
        return self.message


class TransportError(CortexGridError):
    """The socket to the Cortex service never opened or closed unexpectedly.

    Fatal to every pending call; recoverable only by a full reconnect.

    Attributes:
        message: Description of the transport failure.
        headset_id: Identifier of the affected headset, if any.
        cause: Optional underlying exception.
    """

    def __init__(
        self,
        message: str,
        headset_id: Optional[str] = None,
        cause: Optional[BaseException] = None
    ) -> None:
        self.cause = cause
        super().__init__(message, headset_id)

    def _format_message(self) -> str:
        """Format message including cause information."""
        base_msg = super()._format_message()
        if self.cause:
            return f"{base_msg} (caused by: {type(self.cause).__name__}: {self.cause})"
        return base_msg


class ConnectionLost(TransportError):
    """A pending call was abandoned before its response arrived.

    Raised into every outstanding future when the socket closes, and into
    a single headset's futures when that headset is disconnected.
    """

    def __init__(
        self,
        message: str = "Connection to Cortex service lost",
        headset_id: Optional[str] = None,
        cause: Optional[BaseException] = None
    ) -> None:
        super().__init__(message, headset_id, cause)


class RequestError(CortexGridError):
    """The Cortex service answered a request with an ``error`` field.

    Surfaced only to the caller that issued the request.

    Attributes:
        message: The ``error.message`` returned by the service.
        code: The ``error.code`` returned by the service, if any.
        method: Name of the method that failed.
    """

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        method: Optional[str] = None,
        headset_id: Optional[str] = None
    ) -> None:
        self.code = code
        self.method = method
        super().__init__(message, headset_id)

    def _format_message(self) -> str:
        base_msg = super()._format_message()
        details = []
        if self.method:
            details.append(f"method: {self.method}")
        if self.code is not None:
            details.append(f"code: {self.code}")
        if details:
            return f"{base_msg} ({', '.join(details)})"
        return base_msg


class UnresolvedSessionError(CortexGridError):
    """A push frame referenced a session id that no headset owns."""

    def __init__(self, session_id: Optional[str]) -> None:
        self.session_id = session_id
        super().__init__(f"No headset registered for session {session_id!r}")


class SchemaNotReadyError(CortexGridError):
    """A metrics frame arrived before the metrics column schema."""

    def __init__(self, message: str = "Metrics column schema not captured yet") -> None:
        super().__init__(message)


class AuthenticationError(CortexGridError):
    """Authorization with the Cortex service failed or returned no token."""

    pass


class DeviceNotFoundError(CortexGridError):
    """The requested headset is not known to the Cortex service.

    Attributes:
        available: Headset ids the service did report.
    """

    def __init__(
        self,
        message: str = "No headset found",
        headset_id: Optional[str] = None,
        available: Optional[List[str]] = None
    ) -> None:
        self.available = available or []
        super().__init__(message, headset_id)


class SessionError(CortexGridError):
    """Creating, using or closing a headset session failed.

    Attributes:
        session_id: Optional identifier of the affected session.
    """

    def __init__(
        self,
        message: str,
        headset_id: Optional[str] = None,
        session_id: Optional[str] = None
    ) -> None:
        self.session_id = session_id
        super().__init__(message, headset_id)

    def _format_message(self) -> str:
        """Format message including session information."""
        base_msg = super()._format_message()
        if self.session_id:
            return f"{base_msg} (session: {self.session_id})"
        return base_msg


class ConfigurationError(CortexGridError):
    """Configuration is missing or invalid.

    Attributes:
        parameter: Optional name of the invalid parameter.
    """

    def __init__(
        self,
        message: str,
        parameter: Optional[str] = None
    ) -> None:
        self.parameter = parameter
        super().__init__(message)

    def _format_message(self) -> str:
        """Format message including parameter information."""
        base_msg = super()._format_message()
        if self.parameter:
            return f"{base_msg} (parameter: {self.parameter})"
        return base_msg
