"""Tests for the multipart/related body encoder."""

import json

from metdrive_gateway.multipart import BOUNDARY, MultipartEncoder


def _split_parts(body: bytes, boundary: str):
    """Split a body on its boundary into (headers, content) pairs."""
    pieces = body.split(f"\r\n--{boundary}".encode("utf-8"))
    assert pieces[0] == b""
    assert pieces[-1] == b"--"
    parts = []
    for piece in pieces[1:-1]:
        assert piece.startswith(b"\r\n")
        headers, content = piece[2:].split(b"\r\n\r\n", 1)
        parts.append((headers, content))
    return parts


def test_encode_produces_exact_byte_layout():
    metadata = {"name": "Wheat Field.jpg", "mimeType": "image/jpeg", "parents": ["folder-1"]}
    content = b"\xff\xd8\xff\xe0binary\r\n\r\njpeg"

    payload = MultipartEncoder().encode(metadata, content, "image/jpeg")

    expected = (
        b"\r\n---------314159265358979323846\r\n"
        b"Content-Type: application/json\r\n\r\n"
        b'{"name":"Wheat Field.jpg","mimeType":"image/jpeg","parents":["folder-1"]}'
        b"\r\n---------314159265358979323846\r\n"
        b"Content-Type: image/jpeg\r\n\r\n"
        + content
        + b"\r\n---------314159265358979323846--"
    )
    assert payload.body == expected
    assert len(payload) == len(expected)


def test_content_type_header_shares_the_body_boundary():
    payload = MultipartEncoder().encode({"name": "a.txt"}, "text", "text/plain")

    assert payload.boundary == BOUNDARY
    assert payload.content_type == f"multipart/related; boundary={BOUNDARY}"
    assert payload.body.endswith(f"--{BOUNDARY}--".encode("utf-8"))


def test_round_trip_yields_metadata_and_content_parts():
    metadata = {"name": "Artwork.txt", "mimeType": "text/plain", "parents": ["f"]}
    text = "Title: Wheat Field\nArtist: Van Gogh\nDate: 1889"

    payload = MultipartEncoder().encode(metadata, text, "text/plain")
    parts = _split_parts(payload.body, payload.boundary)

    assert len(parts) == 2
    meta_headers, meta_body = parts[0]
    content_headers, content_body = parts[1]
    assert meta_headers == b"Content-Type: application/json"
    assert json.loads(meta_body) == metadata
    assert content_headers == b"Content-Type: text/plain"
    assert content_body == text.encode("utf-8")


def test_text_content_is_utf8_encoded():
    text = "Title: Nymphéas\nArtist: Claude Monet"

    payload = MultipartEncoder().encode({"name": "Nymphéas.txt"}, text, "text/plain")
    parts = _split_parts(payload.body, payload.boundary)

    assert parts[1][1] == text.encode("utf-8")
    assert json.loads(parts[0][1].decode("utf-8")) == {"name": "Nymphéas.txt"}
