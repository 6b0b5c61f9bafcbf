"""Error taxonomy shared by the cart, checkout, lifecycle and store layers."""

from __future__ import annotations


class PdvError(Exception):
    """Base class for every domain error raised by this package."""


class ValidationError(PdvError):
    """Input rejected before any state change (empty cart, bad amount, ...)."""


class InsufficientPayment(ValidationError):
    """Cash tendered is below the order total."""

    def __init__(self, total: object, tendered: object) -> None:
        super().__init__(f"Amount tendered {tendered} is below total {total}")
        self.total = total
        self.tendered = tendered


class IllegalTransition(PdvError):
    """Order status change requested out of sequence."""

    def __init__(self, current: str, target: str | None) -> None:
        target_text = target if target is not None else "<none>"
        super().__init__(f"Illegal status transition {current} -> {target_text}")
        self.current = current
        self.target = target


class BackendFailure(PdvError):
    """A store operation failed (I/O error, constraint violation, ...)."""

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        message = f"Store operation '{operation}' failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.operation = operation
        self.cause = cause
