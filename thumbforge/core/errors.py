"""Typed failures raised by pipeline stages."""

from enum import Enum
from typing import Optional


class GenerationError(Exception):
    """Base class for failures that end a generation.

    Attributes:
        stage: Pipeline stage the failure occurred in, if known
    """

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage


class ValidationError(GenerationError):
    """The request was rejected before any credits were charged."""

    def __init__(self, message: str):
        super().__init__(message, stage="validating")


class InsufficientCreditsError(GenerationError):
    """The user cannot afford the generation."""

    def __init__(self, user_id: str, required: int, available: int):
        super().__init__(
            f"Insufficient credits: {required} required, {available} available",
            stage="validating"
        )
        self.user_id = user_id
        self.required = required
        self.available = available


class AnalysisError(GenerationError):
    """The prompt could not be analyzed."""

    def __init__(self, message: str):
        super().__init__(message, stage="analyzing")


class SynthesisFailure(str, Enum):
    """Failure kinds reported by the image-generation service."""
    RATE_LIMITED = "rate_limited"
    CONTENT_REJECTED = "content_rejected"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self in (SynthesisFailure.RATE_LIMITED, SynthesisFailure.TIMEOUT)


class SynthesisError(GenerationError):
    """The image-generation service failed to produce an image."""

    def __init__(self, kind: SynthesisFailure, message: str):
        super().__init__(message, stage="generating")
        self.kind = kind

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


class PostProductionError(GenerationError):
    """The renderer failed to apply the post-production plan.

    Attributes:
        fatal: True when the renderer could not be reached at all
    """

    def __init__(self, message: str, fatal: bool = False):
        super().__init__(message, stage="post_processing")
        self.fatal = fatal


class LedgerError(Exception):
    """A credit ledger operation violated ledger rules."""


class RecordImmutableError(Exception):
    """A terminal generation record was asked to change."""

    def __init__(self, record_id: str, status: str):
        super().__init__(f"Generation record {record_id} is {status} and cannot change")
        self.record_id = record_id
        self.status = status
