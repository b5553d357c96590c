"""Exception types raised by the cluster evaluation engine."""

from __future__ import annotations


class ClusterEvalError(Exception):
    """Base class for fatal cluster evaluation failures."""
    pass


class ItemSourceError(ClusterEvalError):
    """Raised when the eligible item set cannot be loaded completely."""
    pass


class ReconciliationError(ClusterEvalError):
    """Raised when persisted cluster state cannot be read during reconciliation."""
    pass


class ConfigError(ClusterEvalError):
    """Raised when evaluation configuration is invalid or unreadable."""
    pass
