"""Encoder for ``multipart/related`` upload bodies."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Union

BOUNDARY = "-------314159265358979323846"


@dataclass(frozen=True)
class MultipartPayload:
    body: bytes
    boundary: str = BOUNDARY

    @property
    def content_type(self) -> str:
        return f"multipart/related; boundary={self.boundary}"

    def __len__(self) -> int:
        return len(self.body)


class MultipartEncoder:
    """
    Serialize a metadata record and one content part into a single body.

    Layout (must byte-match the storage API's multipart grammar):

        CRLF "--" boundary CRLF
        "Content-Type: application/json" CRLF CRLF
        <metadata JSON>
        CRLF "--" boundary CRLF
        "Content-Type: " content_kind CRLF CRLF
        <content bytes>
        CRLF "--" boundary "--"
    """

    boundary = BOUNDARY

    def encode(
        self,
        metadata: Dict[str, Any],
        content: Union[bytes, str],
        content_kind: str,
    ) -> MultipartPayload:
        delimiter = f"\r\n--{self.boundary}\r\n".encode("utf-8")
        close_delim = f"\r\n--{self.boundary}--".encode("utf-8")
        if isinstance(content, str):
            content_part = content.encode("utf-8")
        else:
            content_part = bytes(content)

        body = b"".join([
            delimiter,
            b"Content-Type: application/json\r\n\r\n",
            json.dumps(metadata, separators=(",", ":"), ensure_ascii=False).encode("utf-8"),
            delimiter,
            f"Content-Type: {content_kind}\r\n\r\n".encode("utf-8"),
            content_part,
            close_delim,
        ])
        return MultipartPayload(body=body, boundary=self.boundary)
