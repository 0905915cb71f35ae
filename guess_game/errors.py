from typing import Optional


class GuessGameError(Exception):
    kind = "GuessGameError"


class PreconditionViolation(GuessGameError):
    """Raised before any transaction is sent; ``code`` names the failed check."""

    kind = "PreconditionViolation"

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        super().__init__(message or code)


class InvalidAmount(PreconditionViolation, ValueError):
    kind = "InvalidAmount"

    def __init__(self, value: str, message: Optional[str] = None):
        self.value = value
        super().__init__("invalid_amount", message or f"Not a valid non-negative decimal: {value!r}")


class TransportError(GuessGameError):
    kind = "TransportError"

    def __init__(self, message: str, code: Optional[int] = None):
        self.code = code
        super().__init__(message)


class RejectedByContract(GuessGameError):
    kind = "RejectedByContract"

    def __init__(self, reason: Optional[str] = None, tx_hash: Optional[str] = None):
        self.reason = reason
        self.tx_hash = tx_hash
        msg = f"Transaction reverted: {reason}" if reason else "Transaction reverted"
        super().__init__(msg)


class RequestIdNotFound(GuessGameError):
    kind = "RequestIdNotFound"


class ResolutionEventMissing(GuessGameError):
    kind = "ResolutionEventMissing"


class ResolutionTimeout(GuessGameError):
    kind = "Timeout"
