"""
Exceptions raised by the comparison pipeline.
"""
from typing import List, Optional


class ComparisonError(Exception):
    """Base exception for comparison pipeline failures."""
    pass


class QuotaExceededError(ComparisonError):
    """Daily request budget for the LLM API has been used up."""
    pass


class RateLimitTimeoutError(ComparisonError):
    """Waiting for a rate limit slot would exceed the allowed wait."""
    pass


class DocumentNotFoundError(ComparisonError, FileNotFoundError):
    """A logical document path could not be resolved on disk."""

    def __init__(self, logical_path: str, candidates: List[str]):
        self.logical_path = logical_path
        self.candidates = list(candidates)
        super().__init__(
            f"PDF file not found: {logical_path}. Tried paths: {', '.join(self.candidates)}"
        )


class FileProcessingError(ComparisonError):
    """An uploaded file did not become ready for use."""

    def __init__(self, name: str, state: Optional[str] = None, timed_out: bool = False,
                 document=None):
        self.name = name
        self.document = document
        self.state = state
        self.timed_out = timed_out
        if timed_out:
            message = f"File {name} did not finish processing in time"
        else:
            message = f"File {name} failed to process (state: {state})"
        super().__init__(message)


class ResponseParseError(ComparisonError):
    """A normalization tier could not make sense of the model response."""
    pass
