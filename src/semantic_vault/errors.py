"""Error taxonomy shared by the store, editing and routing layers."""

from __future__ import annotations

from enum import Enum

from pydantic import ValidationError


class ErrorCode(str, Enum):
    VALIDATION = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UPSTREAM = "UPSTREAM_ERROR"
    UNKNOWN = "UNKNOWN_ERROR"


class SemanticVaultError(Exception):
    """Base class for conditions the router reports with a known code."""

    code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRequestError(SemanticVaultError):
    """Unknown operation/action pair or malformed params."""

    code = ErrorCode.VALIDATION


class NotFoundError(SemanticVaultError):
    code = ErrorCode.NOT_FOUND


class NoMatchError(NotFoundError):
    """No span of the file is similar enough to the requested edit anchor."""

    def __init__(self, path: str, best_similarity: float, threshold: float) -> None:
        super().__init__(
            f"No match found for the requested text in {path}: best similarity "
            f"{best_similarity:.2f} is below threshold {threshold:.2f}"
        )
        self.path = path
        self.best_similarity = best_similarity
        self.threshold = threshold


class UpstreamError(SemanticVaultError):
    """A vault store or network collaborator failed."""

    code = ErrorCode.UPSTREAM


def classify_error(exc: BaseException) -> ErrorCode:
    if isinstance(exc, SemanticVaultError):
        return exc.code
    if isinstance(exc, ValidationError):
        return ErrorCode.VALIDATION
    if isinstance(exc, FileNotFoundError):
        return ErrorCode.NOT_FOUND
    if isinstance(exc, (ConnectionError, TimeoutError, OSError)):
        return ErrorCode.UPSTREAM
    return ErrorCode.UNKNOWN


def error_message(exc: BaseException) -> str:
    if isinstance(exc, SemanticVaultError):
        return exc.message
    if isinstance(exc, ValidationError):
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'params'}: {err['msg']}"
            for err in exc.errors()
        )
        return f"Invalid params: {problems}"
    return str(exc) or exc.__class__.__name__
