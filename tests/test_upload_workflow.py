"""Tests for the two-step image and summary upload."""

import httpx
import pytest

from metdrive_gateway.artwork_finder import ArtworkRecord
from metdrive_gateway.folder_resolver import FolderHandle
from metdrive_gateway.http_client import HttpJsonClient
from metdrive_gateway.multipart import BOUNDARY, MultipartEncoder
from metdrive_gateway.oauth import Credential
from metdrive_gateway.upload_workflow import UploadError, UploadWorkflow, build_summary

IMAGE_BYTES = b"\xff\xd8\xff\xe0fake-jpeg"


@pytest.fixture
def artwork():
    return ArtworkRecord(
        object_id=436535,
        title="Wheat Field",
        artist="Van Gogh",
        date="1889",
        department="Painting",
        image_url="http://x/img.jpg",
    )


@pytest.fixture
def folder():
    return FolderHandle(folder_id="folder-1")


@pytest.fixture
def credential():
    return Credential(access_token="ya29.token")


class FakeRemotes:
    """Serves the image download and records Drive uploads."""

    def __init__(self, fail_image_upload=False, fail_text_upload=False, fail_download=False):
        self.fail_image_upload = fail_image_upload
        self.fail_text_upload = fail_text_upload
        self.fail_download = fail_download
        self.downloads = []
        self.image_uploads = []
        self.text_uploads = []
        self.order = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "x":
            self.downloads.append(request)
            if self.fail_download:
                return httpx.Response(404)
            return httpx.Response(200, content=IMAGE_BYTES)

        if request.url.path == "/upload/drive/v3/files":
            if b"Content-Type: image/jpeg" in request.content:
                self.order.append("image")
                if self.fail_image_upload:
                    raise httpx.ConnectError("connection reset", request=request)
                self.image_uploads.append(request)
                return httpx.Response(200, json={"id": "image-file-1"})
            self.order.append("text")
            if self.fail_text_upload:
                return httpx.Response(500, json={"error": "backend"})
            self.text_uploads.append(request)
            return httpx.Response(200, json={"id": "text-file-1"})

        return httpx.Response(404)


def _workflow(remotes: FakeRemotes) -> UploadWorkflow:
    http = HttpJsonClient(transport=httpx.MockTransport(remotes))
    return UploadWorkflow(http, MultipartEncoder())


@pytest.mark.asyncio
async def test_uploads_image_then_text(artwork, folder, credential):
    remotes = FakeRemotes()

    result = await _workflow(remotes).upload(artwork, folder, credential)

    assert result.image_file_id == "image-file-1"
    assert result.text_file_id == "text-file-1"
    assert remotes.order == ["image", "text"]
    assert len(remotes.downloads) == 1

    image_request = remotes.image_uploads[0]
    assert image_request.method == "POST"
    assert image_request.url.params["uploadType"] == "multipart"
    assert image_request.headers["Authorization"] == "Bearer ya29.token"
    assert image_request.headers["Content-Type"] == f"multipart/related; boundary={BOUNDARY}"
    assert IMAGE_BYTES in image_request.content
    assert b'"name":"Wheat Field.jpg"' in image_request.content
    assert b'"parents":["folder-1"]' in image_request.content

    text_request = remotes.text_uploads[0]
    assert b'"name":"Wheat Field.txt"' in text_request.content
    assert b'"mimeType":"text/plain"' in text_request.content
    assert b"Image URL: https://drive.google.com/file/d/image-file-1/view" in text_request.content


@pytest.mark.asyncio
async def test_image_upload_failure_skips_text_upload(artwork, folder, credential):
    remotes = FakeRemotes(fail_image_upload=True)

    with pytest.raises(UploadError):
        await _workflow(remotes).upload(artwork, folder, credential)

    assert remotes.order == ["image"]
    assert len(remotes.text_uploads) == 0


@pytest.mark.asyncio
async def test_text_upload_failure_keeps_uploaded_image(artwork, folder, credential):
    remotes = FakeRemotes(fail_text_upload=True)

    with pytest.raises(UploadError):
        await _workflow(remotes).upload(artwork, folder, credential)

    assert remotes.order == ["image", "text"]
    assert len(remotes.image_uploads) == 1


@pytest.mark.asyncio
async def test_download_failure_aborts_before_uploads(artwork, folder, credential):
    remotes = FakeRemotes(fail_download=True)

    with pytest.raises(UploadError):
        await _workflow(remotes).upload(artwork, folder, credential)

    assert remotes.order == []


@pytest.mark.asyncio
async def test_missing_image_url_raises(folder, credential):
    remotes = FakeRemotes()

    with pytest.raises(UploadError):
        await _workflow(remotes).upload(ArtworkRecord(title="No Image"), folder, credential)

    assert remotes.downloads == []
    assert remotes.order == []


@pytest.mark.asyncio
async def test_untitled_artwork_uses_default_file_names(folder, credential):
    remotes = FakeRemotes()
    artwork = ArtworkRecord(image_url="http://x/img.jpg")

    await _workflow(remotes).upload(artwork, folder, credential)

    assert b'"name":"Artwork.jpg"' in remotes.image_uploads[0].content
    assert b'"name":"Artwork.txt"' in remotes.text_uploads[0].content


def test_summary_lists_fields_and_viewer_url(artwork):
    assert build_summary(artwork, "abc123") == (
        "Title: Wheat Field\n"
        "Artist: Van Gogh\n"
        "Date: 1889\n"
        "Department: Painting\n"
        "Image URL: https://drive.google.com/file/d/abc123/view"
    )


def test_summary_uses_placeholders_for_missing_fields():
    summary = build_summary(ArtworkRecord(), "abc123")

    assert "Title: Unknown\n" in summary
    assert "Artist: Unknown\n" in summary


@pytest.mark.asyncio
async def test_redirect_loop_on_image_download_raises_upload_error(folder, credential):
    uploads = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "x":
            return httpx.Response(302, headers={"Location": "http://x/img.jpg"})
        uploads.append(request)
        return httpx.Response(200, json={"id": "unexpected"})

    workflow = UploadWorkflow(HttpJsonClient(transport=httpx.MockTransport(handler)), MultipartEncoder())

    with pytest.raises(UploadError):
        await workflow.upload(ArtworkRecord(title="Loop", image_url="http://x/img.jpg"), folder, credential)

    assert uploads == []
