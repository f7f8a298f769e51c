"""Content-addressed store client (IPFS HTTP API)."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from artisan_market.errors import StorageUnavailable


class ContentStore(Protocol):
    """Interface for writing and reading content-addressed blobs."""

    async def put(self, data: bytes) -> str:
        """Store bytes and return their content identifier."""

    async def get(self, url: str) -> bytes:
        """Fetch bytes from a gateway URL."""


@dataclass
class HttpxContentStore(ContentStore):
    """IPFS content store using the HTTP add API and a public gateway."""

    api_url: str
    project_id: str
    project_secret: str
    http_client: httpx.AsyncClient
    timeout: float = 30.0

    @classmethod
    def create(
        cls, api_url: str, project_id: str, project_secret: str, timeout: float = 30.0
    ) -> "HttpxContentStore":
        """Create a content store with a managed httpx session."""
        return cls(
            api_url=api_url.rstrip("/"),
            project_id=project_id,
            project_secret=project_secret,
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def put(self, data: bytes) -> str:
        """Add bytes through /api/v0/add and return the resulting CID."""
        url = f"{self.api_url}/api/v0/add"
        try:
            response = await self.http_client.post(
                url,
                files={"file": ("blob", data)},
                auth=(self.project_id, self.project_secret),
                timeout=self.timeout,
            )
        except httpx.TransportError as exc:
            raise StorageUnavailable(f"Content store unreachable: {exc}") from exc
        if response.status_code in {401, 403}:
            raise StorageUnavailable("Content store rejected the credentials")
        if response.status_code >= 500:
            raise StorageUnavailable(
                f"Content store error: status={response.status_code}"
            )
        response.raise_for_status()
        content_id = response.json().get("Hash")
        if not content_id:
            raise StorageUnavailable("Content store returned no content identifier")
        return str(content_id)

    async def get(self, url: str) -> bytes:
        """Download bytes from a gateway URL."""
        response = await self.http_client.get(
            url, timeout=self.timeout, follow_redirects=True
        )
        response.raise_for_status()
        return response.content

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
