"""Common exceptions for domain and repository layers."""
from __future__ import annotations


class PaymentRelayError(Exception):
    """Base error for service layer."""


class RepositoryError(PaymentRelayError):
    """Raised when repository operations fail."""


class NotFoundError(RepositoryError):
    """Raised when requested entity is missing."""
