"""
Image stores. Uploads get a public URL under base_url; the API serves that
URL back through read_image.

    MemoryImageStore     — bytes in a dict, for tests and single-process demos
    DirectoryImageStore  — files under a directory (STOREFRONT_UPLOAD_DIR)
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path, PurePosixPath

from kungfu import Ok, Error

from storefront.errors import NotFoundError, ValidationError
from storefront.storage._protocols import Outcome

logger = logging.getLogger(__name__)


def _object_name(filename: str, folder: str) -> Outcome[str]:
    """folder/<millis>-<basename>; directory parts of the client's name are dropped."""
    name = PurePosixPath(filename.strip()).name
    if not name:
        return Error(ValidationError("Image file name is required", field="filename"))
    parts = [p for p in PurePosixPath(folder.strip("/")).parts if p not in ("", ".", "..")]
    return Ok("/".join([*parts, f"{int(time.time() * 1000)}-{name}"]))


class _UrlScheme:
    def __init__(self, base_url: str) -> None:
        self._base_url = base_url.rstrip("/")

    def url_for(self, name: str) -> str:
        return f"{self._base_url}/{name}"

    def name_of(self, url: str) -> str | None:
        prefix = f"{self._base_url}/"
        if not url.startswith(prefix):
            return None
        name = url.removeprefix(prefix)
        if not name or ".." in PurePosixPath(name).parts:
            return None
        return name


class MemoryImageStore(_UrlScheme):
    def __init__(self, base_url: str = "/uploads") -> None:
        super().__init__(base_url)
        self._blobs: dict[str, bytes] = {}

    async def upload_image(self, filename: str, content: bytes, folder: str = "products") -> Outcome[str]:
        if not content:
            return Error(ValidationError("Image file is empty", field="content"))
        match _object_name(filename, folder):
            case Error(e):
                return Error(e)
            case Ok(name):
                self._blobs[name] = content
                logger.info("image stored: %s (%d bytes)", name, len(content))
                return Ok(self.url_for(name))

    async def read_image(self, url: str) -> Outcome[bytes]:
        name = self.name_of(url)
        if name is None or name not in self._blobs:
            return Error(NotFoundError("image", url))
        return Ok(self._blobs[name])

    async def delete_image(self, url: str) -> Outcome[bool]:
        name = self.name_of(url)
        return Ok(name is not None and self._blobs.pop(name, None) is not None)

    def __len__(self) -> int:
        return len(self._blobs)


class DirectoryImageStore(_UrlScheme):
    def __init__(self, root: Path, base_url: str = "/uploads") -> None:
        super().__init__(base_url)
        self._root = root

    def _path(self, name: str) -> Path:
        return self._root.joinpath(*PurePosixPath(name).parts)

    async def upload_image(self, filename: str, content: bytes, folder: str = "products") -> Outcome[str]:
        if not content:
            return Error(ValidationError("Image file is empty", field="content"))
        match _object_name(filename, folder):
            case Error(e):
                return Error(e)
            case Ok(name):
                pass

        path = self._path(name)

        def write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)

        await asyncio.to_thread(write)
        logger.info("image written: %s (%d bytes)", path, len(content))
        return Ok(self.url_for(name))

    async def read_image(self, url: str) -> Outcome[bytes]:
        name = self.name_of(url)
        if name is None:
            return Error(NotFoundError("image", url))
        path = self._path(name)
        if not await asyncio.to_thread(path.is_file):
            return Error(NotFoundError("image", url))
        return Ok(await asyncio.to_thread(path.read_bytes))

    async def delete_image(self, url: str) -> Outcome[bool]:
        name = self.name_of(url)
        if name is None:
            return Ok(False)
        path = self._path(name)

        def unlink() -> bool:
            if not path.is_file():
                return False
            path.unlink()
            return True

        return Ok(await asyncio.to_thread(unlink))


__all__ = ("MemoryImageStore", "DirectoryImageStore")
