"""Typed errors raised by composition and call routing.

Every error carries a stable ``code`` so it can travel through a
request/response envelope and be rebuilt on the other side unchanged.
"""

from typing import Optional

from shared.models import ErrorPayload


class CompositionError(Exception):
    """Base exception for all composition and routing errors."""
    code = "COMPOSITION_ERROR"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> ErrorPayload:
        return ErrorPayload(code=self.code, message=self.message)


class MountError(CompositionError):
    """A mount or import was rejected. Prior state is untouched."""
    code = "MOUNT_ERROR"


class CollisionError(MountError):
    """Two capabilities of the same kind would share a final identifier."""
    code = "COLLISION"


class CycleDetectedError(MountError):
    """The mount would make a host (transitively) mount itself."""
    code = "CYCLE_DETECTED"


class SeparatorAmbiguityError(MountError):
    """The separator cannot be told apart from the prefix."""
    code = "SEPARATOR_AMBIGUITY"


class NotFoundError(CompositionError):
    """No local or delegated match for the requested identifier."""
    code = "NOT_FOUND"


class ProxySessionError(CompositionError):
    """A proxied session failed to open, timed out, or broke mid-call."""
    code = "PROXY_SESSION_ERROR"


class ArgumentValidationError(CompositionError):
    """Arguments do not satisfy the capability's declared parameters."""
    code = "VALIDATION_ERROR"


class HandlerError(CompositionError):
    """The capability handler itself raised."""
    code = "EXECUTION_ERROR"


_ERRORS_BY_CODE: dict[str, type[CompositionError]] = {
    cls.code: cls
    for cls in (
        CompositionError,
        MountError,
        CollisionError,
        CycleDetectedError,
        SeparatorAmbiguityError,
        NotFoundError,
        ProxySessionError,
        ArgumentValidationError,
        HandlerError,
    )
}


def error_from_payload(payload: ErrorPayload) -> CompositionError:
    """Rebuild a typed error from its wire form.

    Unknown codes fall back to ``CompositionError`` with the original code kept.
    """
    cls: Optional[type[CompositionError]] = _ERRORS_BY_CODE.get(payload.code)
    if cls is None:
        error = CompositionError(payload.message)
        error.code = payload.code
        return error
    return cls(payload.message)
