"""Error taxonomy shared by the endpoint, the client and the batch orchestrator."""
from typing import Optional


class ConverterError(Exception):
    """Base exception for all converter errors."""

    def __init__(self, message: str, code: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class ValidationError(ConverterError):
    """Raised when an input file breaks the type or size rules."""

    MISSING_FILE = "missing_file"
    UNSUPPORTED_TYPE = "unsupported_type"
    FILE_TOO_LARGE = "file_too_large"

    _STATUS = {MISSING_FILE: 400, UNSUPPORTED_TYPE: 415, FILE_TOO_LARGE: 413}

    def __init__(self, message: str, code: str, filename: Optional[str] = None):
        super().__init__(message, code, status_code=self._STATUS.get(code, 400))
        self.filename = filename


class ConversionError(ConverterError):
    """Raised when the endpoint rejects an input, fails to encode it, or cannot be reached."""

    ENCODING_FAILED = "encoding_failed"
    NETWORK_ERROR = "network_error"
    HTTP_ERROR = "http_error"

    def __init__(self, message: str, code: str = ENCODING_FAILED, status_code: int = 500):
        super().__init__(message, code, status_code=status_code)


class PackagingError(ConverterError):
    """Raised when the download archive cannot be built or saved."""

    def __init__(self, message: str):
        super().__init__(message, "packaging_failed")


class OperationPreconditionError(ConverterError):
    """Raised when a batch operation is not allowed in the current state."""

    def __init__(self, message: str):
        super().__init__(message, "precondition_failed", status_code=409)


class StateTransitionError(ConverterError):
    """Raised on an illegal job item state transition."""

    def __init__(self, item_id: str, current: str, target: str):
        super().__init__(
            f"Illegal transition for {item_id}: {current} -> {target}",
            "illegal_transition",
        )
        self.item_id = item_id
        self.current = current
        self.target = target
