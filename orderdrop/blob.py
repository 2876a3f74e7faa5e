"""Object storage for uploaded order files.

``VercelBlobStore`` talks to the Vercel Blob HTTP API. Anything with the same
``put``/``delete`` methods can stand in for it (tests pass an in-memory fake).
"""
import logging
from typing import Iterable, NamedTuple, Optional, Protocol
from urllib.parse import quote

import requests

from .errors import StorageFailure

logger = logging.getLogger(__name__)

API_VERSION = "7"


class PutBlobResult(NamedTuple):
    url: str
    pathname: str
    content_type: Optional[str] = None


class BlobStore(Protocol):
    def put(self, key: str, data: bytes, content_type: Optional[str] = None, access: str = "public") -> PutBlobResult: ...

    def delete(self, urls: Iterable[str]) -> None: ...


class VercelBlobStore:
    def __init__(self, token: str, api_url: str = "https://blob.vercel-storage.com", timeout: float = 60.0,
                 add_random_suffix: bool = True, session: Optional[requests.Session] = None):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.add_random_suffix = add_random_suffix
        self.session = session or requests.Session()

    def _headers(self) -> dict:
        if not self.token:
            raise StorageFailure("Blob storage token is not configured")
        return {"authorization": f"Bearer {self.token}", "x-api-version": API_VERSION}

    def put(self, key: str, data: bytes, content_type: Optional[str] = None, access: str = "public") -> PutBlobResult:
        headers = self._headers()
        headers["x-vercel-blob-access"] = access
        headers["x-add-random-suffix"] = "1" if self.add_random_suffix else "0"
        if content_type:
            headers["x-content-type"] = content_type
        url = f"{self.api_url}/{quote(key, safe='/')}"
        try:
            resp = self.session.put(url, data=data, headers=headers, timeout=self.timeout)
            resp.raise_for_status()
            body = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise StorageFailure(f"Failed to store {key}") from e
        if "url" not in body:
            raise StorageFailure(f"Blob API returned no url for {key}")
        logger.info("Stored blob %s (%d bytes)", body.get("pathname", key), len(data))
        return PutBlobResult(url=body["url"], pathname=body.get("pathname", key), content_type=body.get("contentType"))

    def delete(self, urls: Iterable[str]) -> None:
        urls = list(urls)
        if not urls:
            return
        headers = self._headers()
        try:
            resp = self.session.post(f"{self.api_url}/delete", json={"urls": urls}, headers=headers, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise StorageFailure("Failed to delete blobs") from e
        logger.info("Deleted %d blobs", len(urls))


def blob_key(order_number: str, kind: str, filename: Optional[str]) -> str:
    """``orders/<orderNumber>/<kind>.<ext>``, keeping the upload's extension."""
    name = kind
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[-1]
        if ext:
            name = f"{kind}.{ext}"
    return f"orders/{quote(order_number, safe='')}/{name}"
