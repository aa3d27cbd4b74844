"""
Identity Provider

The ledger never authenticates anyone. It asks an identity provider which
owner the current session belongs to and scopes every storage call to that
owner id.
"""

from abc import ABC, abstractmethod


class IdentityProviderInterface(ABC):
    """Supplies the owner id of the current session."""

    @abstractmethod
    def current_owner_id(self) -> str:
        """
        Get the owner id for this session.

        Raises:
            PermissionError: no authenticated owner
        """
        pass


class StaticIdentityProvider(IdentityProviderInterface):
    """Always the same owner. For single-user deployments and tests."""

    def __init__(self, owner_id: str):
        if not owner_id or not owner_id.strip():
            raise ValueError("owner_id cannot be empty")
        self._owner_id = owner_id.strip()

    def current_owner_id(self) -> str:
        return self._owner_id
