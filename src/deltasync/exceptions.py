"""Custom exceptions for the delta sync trader.

Kept in one module so the stream, signal and persistence layers can share
them without importing each other.
"""


class DeltaSyncError(Exception):
    """Base exception for all delta sync errors."""


class PositionAlreadyOpenError(DeltaSyncError):
    """Raised when opening a position while another one is still open."""


class MalformedEventError(DeltaSyncError):
    """Raised when an inbound market data message cannot be decoded."""


class TradeLogError(DeltaSyncError):
    """Raised when a trade record cannot be appended to the trade log."""
