# drive_relay/drive/__init__.py

"""Google Drive access: authenticated sessions, folder provisioning and uploads."""

from .models import DriveFile, UploadResult, FOLDER_MIME_TYPE, ROOT_FOLDER_ID
from .session import DriveSession, DriveSessionFactory
from .provisioner import FolderProvisioner
from .uploader import UploadOrchestrator

__all__ = [
    "DriveFile",
    "UploadResult",
    "FOLDER_MIME_TYPE",
    "ROOT_FOLDER_ID",
    "DriveSession",
    "DriveSessionFactory",
    "FolderProvisioner",
    "UploadOrchestrator",
]
