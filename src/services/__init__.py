"""
Services Module - Session store backends.

The HTTP clients and the SQL store are imported from their own modules.
"""

from src.services.models import ActiveSession, CompletionReport, SessionStatus, UserRole
from src.services.results import ServiceResult

__all__ = [
    "ActiveSession",
    "CompletionReport",
    "SessionStatus",
    "UserRole",
    "ServiceResult",
]
