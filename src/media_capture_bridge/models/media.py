"""Media file models exchanged with the scripting side."""

from __future__ import annotations

import posixpath
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from ..services.storage import MediaStorage


DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".wav": "audio/wav",
    ".mp3": "audio/mpeg",
    ".m4a": "audio/mp4",
    ".wma": "audio/x-ms-wma",
    ".amr": "audio/amr",
    ".mp4": "video/mp4",
    ".3gp": "video/3gpp",
    ".wmv": "video/x-ms-wmv",
    ".avi": "video/x-msvideo",
    ".mov": "video/quicktime",
}


def get_mime_type(file_name: str) -> str:
    """拡張子から mime type を求める"""

    _, ext = posixpath.splitext(file_name.replace("\\", "/"))
    return MIME_TYPES.get(ext.lower(), DEFAULT_MIME_TYPE)


def file_name_of(path: str) -> str:
    return posixpath.basename(path.replace("\\", "/"))


class MediaDescriptor(BaseModel):
    """One captured artifact (wire name: MediaFile)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    file_name: str = Field(default="", alias="name", description="File name without folder")
    file_path: str = Field(default="", alias="fullPath", description="Path inside media storage")
    mime_type: str = Field(default="", alias="type", description="Mime type derived from the extension")
    last_modified: str = Field(default="", alias="lastModifiedDate", description="ISO-8601 last write time")
    size: int = Field(default=0, alias="size", description="Size in bytes")

    @classmethod
    def from_storage(cls, storage: "MediaStorage", path: str, *, size: int) -> "MediaDescriptor":
        """Build a descriptor for an artifact that has just been written.

        Raises StorageError if the storage metadata cannot be read.
        """
        name = file_name_of(path)
        last_write = storage.last_write_time(path)
        return cls(
            file_name=name,
            file_path=path,
            mime_type=get_mime_type(name),
            last_modified=last_write.isoformat(),
            size=size,
        )

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class MediaFormatDescriptor(BaseModel):
    """Format data of a still image (wire name: MediaFileData)."""

    model_config = ConfigDict(frozen=True)

    height: int
    width: int
    bitrate: int = 0
    duration: int = 0
    codecs: str = ""

    def to_dict(self) -> dict:
        return self.model_dump()
