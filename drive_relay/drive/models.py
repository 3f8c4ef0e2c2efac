# drive_relay/drive/models.py
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import datetime

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
ROOT_FOLDER_ID = "root"


class DriveFile(BaseModel):
    """Subset of the Drive v3 `File` resource the relay asks for."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: Optional[str] = None
    mime_type: Optional[str] = None
    web_view_link: Optional[str] = None
    created_time: Optional[datetime] = None
    parents: List[str] = Field(default_factory=list)


class UploadResult(BaseModel):
    """Outcome of a relayed upload. Drive remains the system of record."""
    remote_file_id: str
    view_url: Optional[str] = None
