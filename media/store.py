"""
media/store.py -- Local-filesystem media store for avatars and cover images.

The session controller treats uploads as a black box with one contract:

    upload(local_path) -> UploadResult(url)   or raises UploadError

LocalMediaStore satisfies it by moving the uploaded temp file into MEDIA_ROOT
under a random name and returning a URL below MEDIA_BASE_URL. Any remote
object store can replace it as long as it keeps the same contract.

Usage:
    media = LocalMediaStore(Path("public/media"), "/media")
    result = media.upload(Path("/tmp/upload-123.png"))
    result.url   # "/media/3f2a...c1.png"
"""

from __future__ import annotations

import logging
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

logger = logging.getLogger("userauth.media")


@dataclass(frozen=True)
class UploadResult:
    url: str


class UploadError(Exception):
    """The file could not be stored."""


class MediaUploader(Protocol):
    def upload(self, local_path: Path) -> UploadResult: ...


class LocalMediaStore:
    def __init__(self, root: Path, base_url: str) -> None:
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def upload(self, local_path: Path) -> UploadResult:
        """Move local_path into the media root and return its public URL.

        The source file is consumed: on success it no longer exists at
        local_path. On failure the source is removed as well so temp uploads
        never accumulate.
        """
        source = Path(local_path)
        if not source.is_file():
            raise UploadError("upload source is not a readable file")
        name = f"{uuid.uuid4().hex}{source.suffix.lower()}"
        try:
            shutil.move(str(source), self.root / name)
        except OSError as exc:
            source.unlink(missing_ok=True)
            logger.warning("Media upload failed: %s", exc)
            raise UploadError("could not store uploaded file") from exc
        logger.info("Stored media file %s", name)
        return UploadResult(url=f"{self.base_url}/{name}")
