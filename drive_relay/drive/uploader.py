# drive_relay/drive/uploader.py
import logging
from datetime import datetime, timezone
from typing import AsyncIterable, Callable, List, Optional
from zoneinfo import ZoneInfo

from .models import DriveFile, FOLDER_MIME_TYPE, UploadResult
from .provisioner import FolderProvisioner
from .session import DriveSession, escape_query_value
from ..errors import UploadFailedError

logger = logging.getLogger(__name__)


class UploadOrchestrator:
    """
    Places relayed media under `<root>/<YYYY-MM>` in the user's Drive.

    Filenames are taken as given; callers include the chat message id to
    keep them distinct.
    """

    def __init__(
        self,
        provisioner: FolderProvisioner,
        root_folder_name: str,
        folder_timezone: str = "UTC",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.provisioner = provisioner
        self.root_folder_name = root_folder_name
        self.tz = ZoneInfo(folder_timezone)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def current_folder_path(self) -> List[str]:
        month = self._clock().astimezone(self.tz).strftime("%Y-%m")
        return [self.root_folder_name, month]

    async def upload(
        self,
        session: DriveSession,
        content: AsyncIterable[bytes],
        filename: str,
        content_type: str = "application/octet-stream",
    ) -> UploadResult:
        """
        Raises:
            ProvisionFailedError: Propagated from folder resolution
            UploadFailedError: If the create/media call fails
        """
        folder_id = await self.provisioner.resolve_folder(session, self.current_folder_path())
        try:
            created = await session.create_file(filename, folder_id, content, content_type)
        except Exception as e:
            raise UploadFailedError(f"failed to upload '{filename}': {e}") from e
        logger.info(f"Uploaded '{filename}' to Drive folder {folder_id} as file {created.id}.")
        return UploadResult(remote_file_id=created.id, view_url=created.web_view_link)

    async def list_recent(self, session: DriveSession, limit: int) -> List[DriveFile]:
        """
        Most recently created uploads under the root folder, newest first.

        Uploads live one level down in the month folders, so the month
        folders are listed first and their children queried together. A
        missing root folder means nothing was uploaded yet; it is not created.
        """
        root_id = await self.provisioner.lookup_folder(session, [self.root_folder_name])
        if root_id is None:
            return []

        month_folders = await session.list_files(
            query=(
                f"'{escape_query_value(root_id)}' in parents and trashed=false "
                f"and mimeType='{FOLDER_MIME_TYPE}'"
            ),
            page_size=100,
            order_by="createdTime desc",
            fields="files(id)",
        )
        if not month_folders:
            return []

        parents_clause = " or ".join(f"'{escape_query_value(f.id)}' in parents" for f in month_folders)
        return await session.list_files(
            query=f"({parents_clause}) and trashed=false and mimeType!='{FOLDER_MIME_TYPE}'",
            page_size=limit,
            order_by="createdTime desc",
        )
