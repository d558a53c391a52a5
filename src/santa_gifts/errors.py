from __future__ import annotations


class ConfigurationError(ValueError):
    """Malformed round specs, params, salts or settings. Never retryable."""


class IncompleteDisclosureError(ValueError):
    """A disclosure is missing fields required for verification."""


class RevealNotAvailable(RuntimeError):
    """The requested round is still hidden."""


class AuditMismatch(RuntimeError):
    """Re-running an execution audit did not reproduce the recorded result."""
