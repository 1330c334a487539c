"""HTTP client for the hosting collaborator's read-url and search endpoints."""

from __future__ import annotations

import asyncio

import httpx

from toolcore.config import ResearchConfig
from toolcore.errors import BadRequest, Transient
from toolcore.logging import get_logger

READ_URL_PATH = "/api/read-url"
SEARCH_PATH = "/api/duckduckgo-search"

logger = get_logger("research.client")


class HostClient:
    """Retrying JSON client; 5xx, timeouts and transport errors are retried."""

    def __init__(self, config: ResearchConfig) -> None:
        self._config = config
        self._client: httpx.AsyncClient | None = None
        # Tests inject an httpx.MockTransport here.
        self._transport: httpx.AsyncBaseTransport | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Lazily create the httpx client on first use."""
        if self._client is None:
            kwargs: dict[str, object] = {
                "base_url": self._config.host_url,
                "timeout": self._config.http_timeout_seconds,
                "headers": {"Content-Type": "application/json"},
            }
            if self._transport is not None:
                kwargs["transport"] = self._transport
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    async def read_url(self, url: str) -> dict[str, object]:
        """Fetch readable content and outbound links for ``url``."""
        if not url.strip():
            raise BadRequest("The 'url' parameter is required.")
        body = await self._post(READ_URL_PATH, {"url": url}, self._config.read_attempts)
        content = body.get("content")
        links = body.get("links")
        return {
            "url": url,
            "content": content if isinstance(content, str) else "",
            "links": links if isinstance(links, list) else [],
        }

    async def search(self, query: str) -> dict[str, object]:
        """Run a web search and return ``{query, results: [{title, link, snippet}]}``."""
        if not query.strip():
            raise BadRequest("The 'query' parameter is required.")
        body = await self._post(SEARCH_PATH, {"query": query}, self._config.search_attempts)
        raw_results = body.get("results")
        results: list[dict[str, str]] = []
        if isinstance(raw_results, list):
            for item in raw_results:
                if not isinstance(item, dict) or not isinstance(item.get("link"), str):
                    continue
                results.append(
                    {
                        "title": str(item.get("title") or ""),
                        "link": item["link"],
                        "snippet": str(item.get("snippet") or ""),
                    }
                )
        return {"query": query, "results": results}

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _post(
        self, path: str, payload: dict[str, object], attempts: int
    ) -> dict[str, object]:
        client = self._get_client()
        last_error = "no attempt made"
        for attempt in range(1, attempts + 1):
            try:
                response = await client.post(path, json=payload)
            except httpx.TimeoutException:
                last_error = f"timed out after {self._config.http_timeout_seconds:g}s"
            except httpx.TransportError as error:
                last_error = f"{type(error).__name__}: {error}"
            else:
                if response.status_code >= 500:
                    last_error = f"HTTP {response.status_code}"
                elif response.status_code >= 400:
                    raise BadRequest(
                        _error_message(response),
                        details={"status_code": response.status_code, "path": path},
                    )
                else:
                    return _json_body(response, path)
            if attempt < attempts:
                delay = self._config.backoff_seconds * (2 ** (attempt - 1))
                logger.debug(
                    "{} attempt {}/{} failed ({}); retrying in {:.2f}s",
                    path,
                    attempt,
                    attempts,
                    last_error,
                    delay,
                )
                await asyncio.sleep(delay)
        raise Transient(
            f"Request to {path} failed after {attempts} attempt(s): {last_error}",
            hint="The hosting service may be unavailable; retry later.",
        )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return f"HTTP {response.status_code}: {response.text[:200]}"


def _json_body(response: httpx.Response, path: str) -> dict[str, object]:
    try:
        body = response.json()
    except ValueError as error:
        raise Transient(f"Response from {path} was not valid JSON.") from error
    if not isinstance(body, dict):
        raise Transient(f"Response from {path} must be a JSON object.")
    return body
