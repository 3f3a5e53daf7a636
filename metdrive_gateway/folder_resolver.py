"""Destination folder resolution with an on-disk identifier cache."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import aiofiles

from .http_client import EndpointSpec, HttpJsonClient, ResponseFormatError, bearer_headers
from .oauth import Credential

logger = logging.getLogger(__name__)

DRIVE_HOST = "www.googleapis.com"
FILES_PATH = "/drive/v3/files"
FOLDER_NAME = "MET Artworks"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


@dataclass(frozen=True)
class FolderHandle:
    folder_id: str


class FolderStore:
    """One-line text file holding the cached folder identifier."""

    def __init__(self, path: Path):
        self.path = Path(path)

    async def read(self) -> Optional[str]:
        if not self.path.is_file():
            return None
        async with aiofiles.open(self.path, "r", encoding="utf-8") as handle:
            value = (await handle.read()).strip()
        return value or None

    async def write(self, folder_id: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(self.path, "w", encoding="utf-8") as handle:
            await handle.write(folder_id)


class FolderResolver:
    """
    Return the storage folder that receives every upload.

    The folder is created remotely on first use only. Once an identifier is
    cached it is returned as-is, even if the remote folder has since been
    deleted.
    """

    def __init__(
        self,
        http: HttpJsonClient,
        store: FolderStore,
        folder_name: str = FOLDER_NAME,
        host: str = DRIVE_HOST,
    ):
        self.http = http
        self.store = store
        self.folder_name = folder_name
        self.host = host

    async def resolve(self, credential: Credential) -> FolderHandle:
        """
        Raises:
            HttpClientError: Folder creation request failed
            ResponseFormatError: Creation response carried no folder id
        """
        cached = await self.store.read()
        if cached:
            return FolderHandle(folder_id=cached)

        body = json.dumps({"name": self.folder_name, "mimeType": FOLDER_MIME_TYPE})
        spec = EndpointSpec(
            host=self.host,
            path=FILES_PATH,
            method="POST",
            headers=bearer_headers(credential.access_token, "application/json"),
        )
        response = await self.http.request(spec, body)

        folder_id = response.get("id") if isinstance(response, dict) else None
        if not folder_id:
            raise ResponseFormatError("folder creation response did not include an id")

        await self.store.write(folder_id)
        logger.info(f"Created storage folder {self.folder_name!r} ({folder_id})")
        return FolderHandle(folder_id=folder_id)
