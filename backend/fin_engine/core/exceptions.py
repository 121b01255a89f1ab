"""Engine error taxonomy.

Only hard failures are exceptions. Business conditions such as an unreachable
break-even point, a loss, or a weekday without history are carried in the
returned values instead.
"""
from typing import Any, Dict, Optional


class EngineError(Exception):
    """Base exception for analytics engine errors."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class InvalidConfiguration(EngineError):
    """Cost inputs that cannot produce a meaningful result (bad branch count, negative or non-numeric costs)."""

    status_code = 422


class UpstreamDataUnavailable(EngineError):
    """The record source failed; nothing is computed on partial data."""

    status_code = 503
