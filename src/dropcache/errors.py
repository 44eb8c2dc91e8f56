from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    INVALID_INPUT = "INVALID_INPUT"
    SNAPSHOT_MALFORMED = "SNAPSHOT_MALFORMED"
    WIKI_FETCH_FAILED = "WIKI_FETCH_FAILED"


class DropCacheError(Exception):
    """Raised for the few expected failures that callers must handle.

    Empty outcomes (blank queries, zero-drop pages, cache misses, missing wiki
    pages) are never reported through this exception. It covers malformed
    snapshot JSON on an explicit import, exhausted wiki retries, and invalid
    caller input.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }
