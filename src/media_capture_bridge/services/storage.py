"""Directory-rooted media storage.

Paths handed to the scripting side look like isolated storage paths
(`/CapturedImagesCache/photo.jpg`); they are always resolved below the
configured root directory.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Optional
from uuid import uuid4

from ..exceptions import StorageError

logger = logging.getLogger(__name__)

IMAGE_FOLDER = "CapturedImagesCache"
AUDIO_FOLDER = "AudioCache"
VIDEO_FOLDER = "VideoCache"


class MediaStorage:
    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, path: str) -> Path:
        """Map a storage path to a file below the root."""

        rel = PurePosixPath(path.replace("\\", "/").lstrip("/"))
        if not rel.parts or ".." in rel.parts:
            raise StorageError(path, ValueError("path escapes media storage"))
        return self._root.joinpath(*rel.parts)

    def save(self, folder: str, file_name: str, data: bytes) -> str:
        """Write data to /<folder>/<file_name> and return that path.

        Existing files are never overwritten: on a name collision the file is
        stored as `<stem>-<uuid><suffix>` and that path is returned instead.
        """

        name = PurePosixPath(file_name.replace("\\", "/")).name
        if not name:
            raise StorageError(file_name, ValueError("empty file name"))

        base = name
        path = f"/{folder}/{name}"
        target = self.resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            while True:
                try:
                    with target.open("xb") as f:
                        f.write(data)
                    break
                except FileExistsError:
                    name = _unique_name(base)
                    path = f"/{folder}/{name}"
                    target = self.resolve(path)
                    logger.info(f"{file_name} already exists in {folder}, saving as {name}")
        except OSError as e:
            raise StorageError(path, e) from e

        logger.info(f"Saved {len(data)} bytes to {path}")
        return path

    def open_read(self, path: str) -> BinaryIO:
        try:
            return self.resolve(path).open("rb")
        except OSError as e:
            raise StorageError(path, e) from e

    def last_write_time(self, path: str) -> datetime:
        try:
            mtime = self.resolve(path).stat().st_mtime
        except OSError as e:
            raise StorageError(path, e) from e
        return datetime.fromtimestamp(mtime).astimezone()


def _unique_name(name: str) -> str:
    stem = PurePosixPath(name)
    return f"{stem.stem}-{uuid4()}{stem.suffix}"


_media_storage: Optional[MediaStorage] = None


def get_media_storage(root: str | Path) -> MediaStorage:
    """MediaStorage のシングルトンインスタンスを取得"""

    global _media_storage
    if _media_storage is None:
        _media_storage = MediaStorage(root)
    return _media_storage
