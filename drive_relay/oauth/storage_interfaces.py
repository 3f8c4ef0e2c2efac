# drive_relay/oauth/storage_interfaces.py
from abc import ABC, abstractmethod
from datetime import datetime

from .models import Credential, CSRFState
from ..errors import CredentialNotFoundError


class AbstractCredentialStore(ABC):
    """
    Persists at most one Drive credential per chat user.

    `get` and `delete` raise CredentialNotFoundError when nothing is stored;
    every other failure surfaces as StorageError.
    """

    @abstractmethod
    async def get(self, user_id: str) -> Credential:
        """Load the credential for a user."""
        pass

    @abstractmethod
    async def put(self, user_id: str, credential: Credential) -> None:
        """Store a credential, replacing any previous one."""
        pass

    @abstractmethod
    async def delete(self, user_id: str) -> None:
        """Remove the credential for a user."""
        pass

    async def exists(self, user_id: str) -> bool:
        """Derived connection state: True iff a credential is stored."""
        try:
            await self.get(user_id)
        except CredentialNotFoundError:
            return False
        return True

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the storage backend."""
        pass

    @abstractmethod
    async def teardown(self) -> None:
        """Clean up storage resources."""
        pass


class AbstractCSRFStateStore(ABC):
    """
    Persists single-use OAuth handshake nonces.

    The store does not judge staleness on read; consuming a nonce is what
    makes replay safe.
    """

    @abstractmethod
    async def put(self, state: CSRFState) -> None:
        """Store a freshly issued state."""
        pass

    @abstractmethod
    async def consume(self, nonce: str) -> CSRFState:
        """Atomically read and delete a state. Raises StateNotFoundError if absent."""
        pass

    @abstractmethod
    async def purge_stale(self, older_than: datetime) -> int:
        """Delete unconsumed states created before `older_than`. Returns the number removed."""
        pass

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the storage backend."""
        pass

    @abstractmethod
    async def teardown(self) -> None:
        """Clean up storage resources."""
        pass
