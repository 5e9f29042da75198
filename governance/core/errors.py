"""Error taxonomy shared by the governance service and its HTTP surface."""
from __future__ import annotations


class GovernanceError(RuntimeError):
    """Base exception for rejected governance operations."""


class AuthorizationError(GovernanceError):
    """Raised when the caller lacks the role required for an action."""


class StateError(GovernanceError):
    """Raised when an action is invalid for the current lifecycle state."""


class ValidationError(GovernanceError):
    """Raised for malformed input or unknown identifiers."""


class ProposalNotFoundError(ValidationError):
    """Raised when a proposal identifier has not been assigned."""


class CryptographicError(GovernanceError):
    """Raised when a submitted ciphertext or proof fails engine validation."""


__all__ = [
    "AuthorizationError",
    "CryptographicError",
    "GovernanceError",
    "ProposalNotFoundError",
    "StateError",
    "ValidationError",
]
