"""Credential vault contract consumed by the engines."""

from abc import ABC, abstractmethod
from typing import Any
from uuid import UUID

from flowhub.core.errors import CredentialNotFoundException


class CredentialVault(ABC):
    """Resolves a connection id to decrypted connector credentials."""

    @abstractmethod
    def retrieve(self, connection_id: str | UUID) -> dict[str, Any]:
        """Get credentials for a connection.

        Raises:
            CredentialNotFoundException: If no credentials exist for the connection
        """
        pass


class StaticCredentialVault(CredentialVault):
    """Vault backed by an in-process mapping (local runs and tests)."""

    def __init__(self, credentials: dict[str, dict[str, Any]] | None = None):
        self._credentials = {str(k): v for k, v in (credentials or {}).items()}

    def store(self, connection_id: str | UUID, credentials: dict[str, Any]) -> None:
        self._credentials[str(connection_id)] = credentials

    def retrieve(self, connection_id: str | UUID) -> dict[str, Any]:
        credentials = self._credentials.get(str(connection_id))
        if credentials is None:
            raise CredentialNotFoundException(
                f"Credentials not found for connection: {connection_id}"
            )
        return dict(credentials)
