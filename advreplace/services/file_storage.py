from __future__ import annotations

import hashlib
import logging
import shutil
from pathlib import Path

from advreplace.core.config import settings

logger = logging.getLogger(__name__)


class FileStorage:
    """
    Directory-backed file store.

    - content blobs, addressed by sha1: <root>/filedir/ab/cd/abcd...
    - finished job output:             <root>/artifacts/<filearea>/<itemid>/<filename>
    - in-progress job output:          <temp_dir>/<filearea>-<itemid>
    """

    def __init__(self, root: str | Path | None = None, temp_dir: str | Path | None = None):
        self.root = Path(root or settings.file_storage_dir)
        self.temp_dir = Path(temp_dir or settings.temp_dir)

    # content blobs

    def content_path(self, contenthash: str) -> Path:
        return self.root / "filedir" / contenthash[0:2] / contenthash[2:4] / contenthash

    def add_content(self, data: bytes) -> str:
        contenthash = hashlib.sha1(data).hexdigest()
        path = self.content_path(contenthash)
        if not path.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        return contenthash

    def get_content(self, contenthash: str) -> bytes:
        path = self.content_path(contenthash)
        if not path.exists():
            logger.warning("Content %s missing from file store", contenthash)
            return b""
        return path.read_bytes()

    # job artifacts

    def artifact_path(self, filearea: str, itemid: int, filename: str) -> Path:
        folder = (self.root / "artifacts" / filearea / str(itemid)).resolve()
        path = (folder / filename).resolve()
        if path.parent != folder:
            raise ValueError(f"Artifact name {filename!r} leaves the artifact folder")
        return path

    def store_artifact(self, filearea: str, itemid: int, filename: str, source: str | Path) -> Path:
        dest = self.artifact_path(filearea, itemid, filename)
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, dest)
        return dest

    def get_artifact(self, filearea: str, itemid: int, filename: str) -> Path | None:
        path = self.artifact_path(filearea, itemid, filename)
        return path if path.exists() else None

    def delete_artifact(self, filearea: str, itemid: int) -> None:
        shutil.rmtree(self.root / "artifacts" / filearea / str(itemid), ignore_errors=True)

    def temp_path(self, filearea: str, itemid: int) -> Path:
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        return self.temp_dir / f"{filearea}-{itemid}"
