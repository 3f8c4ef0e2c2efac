# drive_relay/drive/provisioner.py
import logging
from typing import Optional, Sequence

from .models import ROOT_FOLDER_ID
from .session import DriveSession
from ..errors import ProvisionFailedError

logger = logging.getLogger(__name__)


class FolderProvisioner:
    """
    Resolves a folder path to a Drive folder id, creating missing segments.

    Each segment is queried before it is created, so sequential resolution
    of the same path never creates duplicates. Two deliveries racing on the
    same missing segment can both create it; no lock prevents that.
    """

    async def resolve_folder(self, session: DriveSession, path: Sequence[str]) -> str:
        """
        Raises:
            ProvisionFailedError: If a lookup or create call fails. Segments
                created before the failure are left in place.
        """
        if not path:
            raise ValueError("Folder path must contain at least one segment.")

        parent_id = ROOT_FOLDER_ID
        for name in path:
            parent_id = await self._find_or_create(session, name, parent_id)
        return parent_id

    async def lookup_folder(self, session: DriveSession, path: Sequence[str]) -> Optional[str]:
        """Like resolve_folder, but returns None at the first missing segment instead of creating it."""
        parent_id = ROOT_FOLDER_ID
        for name in path:
            try:
                folder_id = await session.find_folder(name, parent_id)
            except Exception as e:
                raise ProvisionFailedError(f"failed to search for folder '{name}': {e}") from e
            if folder_id is None:
                return None
            parent_id = folder_id
        return parent_id

    async def _find_or_create(self, session: DriveSession, name: str, parent_id: str) -> str:
        try:
            folder_id = await session.find_folder(name, parent_id)
        except Exception as e:
            raise ProvisionFailedError(f"failed to search for folder '{name}': {e}") from e
        if folder_id:
            return folder_id

        logger.info(f"Folder '{name}' not found under '{parent_id}', creating it.")
        try:
            return await session.create_folder(name, parent_id)
        except Exception as e:
            raise ProvisionFailedError(f"failed to create folder '{name}': {e}") from e
