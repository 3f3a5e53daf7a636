"""Random artwork lookup against the Met Collection API."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union
from urllib.parse import quote

from .http_client import EndpointSpec, HttpClientError, HttpJsonClient

logger = logging.getLogger(__name__)

COLLECTION_HOST = "collectionapi.metmuseum.org"
SEARCH_PATH = "/public/collection/v1/search"
OBJECT_PATH = "/public/collection/v1/objects"

DEFAULT_NAME = "Artwork"
PLACEHOLDER = "Unknown"

# Characters encodeURIComponent leaves alone beyond quote()'s defaults.
_URI_COMPONENT_SAFE = "!~*'()"


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class ArtworkRecord:
    """One collection object. Every field may be missing."""
    object_id: Optional[int] = None
    title: Optional[str] = None
    artist: Optional[str] = None
    date: Optional[str] = None
    department: Optional[str] = None
    image_url: Optional[str] = None

    @classmethod
    def from_payload(
        cls,
        payload: Dict[str, Any],
        fallback_id: Optional[int] = None,
    ) -> "ArtworkRecord":
        object_id = payload.get("objectID", fallback_id)
        return cls(
            object_id=object_id if isinstance(object_id, int) else None,
            title=_text(payload.get("title")),
            artist=_text(payload.get("artist")) or _text(payload.get("artistDisplayName")),
            date=_text(payload.get("objectDate")),
            department=_text(payload.get("department")),
            image_url=_text(payload.get("primaryImageSmall")),
        )

    @property
    def file_stem(self) -> str:
        return self.title or DEFAULT_NAME

    def display(self, name: str) -> str:
        """Field value for summaries and pages, ``Unknown`` when absent."""
        return getattr(self, name) or PLACEHOLDER


class _NotFound:
    _instance: Optional["_NotFound"] = None

    def __new__(cls) -> "_NotFound":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NotFound"


NotFound = _NotFound()

FindResult = Union[ArtworkRecord, _NotFound]


class ArtworkFinder:
    """Search by keyword, pick one hit at random and fetch its record."""

    def __init__(
        self,
        http: HttpJsonClient,
        host: str = COLLECTION_HOST,
        rng: Optional[random.Random] = None,
    ):
        self.http = http
        self.host = host
        self.rng = rng or random.Random()

    async def find(self, keyword: str) -> FindResult:
        search = EndpointSpec(
            host=self.host,
            path=f"{SEARCH_PATH}?hasImages=true&q={quote(keyword, safe=_URI_COMPONENT_SAFE)}",
        )
        try:
            results = await self.http.request(search)
        except HttpClientError as e:
            logger.warning(f"Search for {keyword!r} failed: {e}")
            return NotFound

        if not isinstance(results, dict) or results.get("total") == 0:
            return NotFound
        object_ids = results.get("objectIDs") or []
        if not object_ids:
            return NotFound

        object_id = object_ids[self.rng.randrange(len(object_ids))]
        logger.info(f"Selected object {object_id} from {len(object_ids)} matches for {keyword!r}")

        detail = EndpointSpec(host=self.host, path=f"{OBJECT_PATH}/{object_id}")
        try:
            payload = await self.http.request(detail)
        except HttpClientError as e:
            # a failed detail fetch is not retried with another candidate
            logger.warning(f"Fetching object {object_id} failed: {e}")
            return NotFound

        if not isinstance(payload, dict):
            logger.warning(f"Object {object_id} returned an unexpected payload")
            return NotFound
        return ArtworkRecord.from_payload(payload, fallback_id=object_id)
