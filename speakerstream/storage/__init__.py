"""Storage: enrolled speaker persistence."""
from .enrollment_store import EnrollmentLimitError, JsonEnrollmentStore

__all__ = ["EnrollmentLimitError", "JsonEnrollmentStore"]
