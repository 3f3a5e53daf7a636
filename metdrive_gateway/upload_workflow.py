"""Image and summary upload of one artwork into the storage folder."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Union

from .artwork_finder import ArtworkRecord
from .folder_resolver import DRIVE_HOST, FolderHandle
from .http_client import EndpointSpec, HttpClientError, HttpJsonClient, bearer_headers
from .multipart import MultipartEncoder
from .oauth import Credential

logger = logging.getLogger(__name__)

UPLOAD_PATH = "/upload/drive/v3/files?uploadType=multipart"
VIEWER_URL = "https://drive.google.com/file/d/{file_id}/view"


class UploadError(Exception):
    """Image download or one of the multipart uploads failed."""
    pass


@dataclass(frozen=True)
class UploadResult:
    image_file_id: str
    text_file_id: str


def build_summary(artwork: ArtworkRecord, image_file_id: str) -> str:
    return (
        f"Title: {artwork.display('title')}\n"
        f"Artist: {artwork.display('artist')}\n"
        f"Date: {artwork.display('date')}\n"
        f"Department: {artwork.display('department')}\n"
        f"Image URL: {VIEWER_URL.format(file_id=image_file_id)}"
    )


class UploadWorkflow:
    """Download the artwork image, upload it, then upload a text summary."""

    def __init__(
        self,
        http: HttpJsonClient,
        encoder: MultipartEncoder,
        host: str = DRIVE_HOST,
    ):
        self.http = http
        self.encoder = encoder
        self.host = host

    async def upload(
        self,
        artwork: ArtworkRecord,
        folder: FolderHandle,
        credential: Credential,
    ) -> UploadResult:
        """
        Persist one artwork as ``<title>.jpg`` and ``<title>.txt``.

        The text upload only starts once the image upload returned a file id.
        An already uploaded image is not removed when the text upload fails.

        Raises:
            UploadError: Download or either upload failed
        """
        if not artwork.image_url:
            raise UploadError("artwork has no image URL")

        try:
            image = await self.http.fetch_bytes(EndpointSpec.from_url(artwork.image_url))
        except (HttpClientError, ValueError) as e:
            logger.error(f"Image download from {artwork.image_url} failed: {e}")
            raise UploadError(f"image download failed: {e}") from e

        image_file_id = await self._upload_file(
            {
                "name": f"{artwork.file_stem}.jpg",
                "mimeType": "image/jpeg",
                "parents": [folder.folder_id],
            },
            image,
            "image/jpeg",
            credential,
        )

        text_file_id = await self._upload_file(
            {
                "name": f"{artwork.file_stem}.txt",
                "mimeType": "text/plain",
                "parents": [folder.folder_id],
            },
            build_summary(artwork, image_file_id),
            "text/plain",
            credential,
        )
        logger.info(f"Uploaded {artwork.file_stem!r} as {image_file_id} and {text_file_id}")
        return UploadResult(image_file_id=image_file_id, text_file_id=text_file_id)

    async def _upload_file(
        self,
        metadata: Dict[str, Any],
        content: Union[bytes, str],
        content_kind: str,
        credential: Credential,
    ) -> str:
        payload = self.encoder.encode(metadata, content, content_kind)
        spec = EndpointSpec(
            host=self.host,
            path=UPLOAD_PATH,
            method="POST",
            headers=bearer_headers(credential.access_token, payload.content_type),
        )
        try:
            response = await self.http.request(spec, payload.body)
        except HttpClientError as e:
            logger.error(f"Upload of {metadata['name']!r} failed: {e}")
            raise UploadError(f"upload of {metadata['name']} failed: {e}") from e

        file_id = response.get("id") if isinstance(response, dict) else None
        if not file_id:
            raise UploadError(f"upload of {metadata['name']} returned no file id")
        return file_id
