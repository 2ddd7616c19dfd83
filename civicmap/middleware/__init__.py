"""HTTP middleware."""

from civicmap.middleware.timing import timing_middleware

__all__ = ["timing_middleware"]
