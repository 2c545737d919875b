"""Listing search and extraction using Perplexity.

Runs web searches for rental listings and turns the raw hits into
structured listings with a JSON-schema constrained chat completion.
"""

import json
import logging
import os
import re
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError

from homemates_shared.errors import ProviderError, ProviderNotConfiguredError
from homemates_shared.schemas import Listing, SearchResult

logger = logging.getLogger("perplexity-client")

PROVIDER = "Perplexity"

LISTING_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "listings": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "project_name": {"type": "string"},
                    "price": {"type": "string"},
                    "area_sqft": {"type": "string"},
                    "location": {"type": "string"},
                    "bhk_configuration": {"type": "string"},
                    "source_url": {"type": "string"},
                },
                "required": ["title", "source_url"],
            },
        }
    },
    "required": ["listings"],
}


def ingest_queries(city: str) -> list[str]:
    """Search queries used to ingest listings for a city."""
    return [
        f"flats for rent in {city}",
        f"2 BHK and 3 BHK apartments for rent in {city} with price",
        f"new residential projects in {city} price per sqft",
    ]


@dataclass
class PerplexityConfig:
    """Configuration for the Perplexity API."""

    api_key: str
    model: str = "sonar"
    base_url: str = "https://api.perplexity.ai"
    timeout_seconds: float = 60.0

    @classmethod
    def from_env(cls) -> "PerplexityConfig":
        """Load Perplexity config from environment variables."""
        api_key = os.getenv("PERPLEXITY_API_KEY", "")
        if not api_key:
            logger.warning("PERPLEXITY_API_KEY not set - listing ingest will fail")

        return cls(
            api_key=api_key,
            model=os.getenv("PERPLEXITY_MODEL", "sonar"),
            base_url=os.getenv("PERPLEXITY_BASE_URL", "https://api.perplexity.ai"),
        )

    def is_configured(self) -> bool:
        """Check if the API key is present."""
        return bool(self.api_key)


def _strip_code_fence(content: str) -> str:
    """Remove a markdown code fence the model may wrap JSON in."""
    content = content.strip()
    match = re.match(r"^```(?:json)?\s*(.*?)\s*```$", content, re.DOTALL)
    return match.group(1) if match else content


class PerplexityClient:
    """Searches the web for listings and extracts structured data."""

    def __init__(
        self,
        config: PerplexityConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or PerplexityConfig.from_env()
        self._transport = transport

    def is_configured(self) -> bool:
        return self.config.is_configured()

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        if not self.config.is_configured():
            raise ProviderNotConfiguredError(PROVIDER, ["PERPLEXITY_API_KEY"])

        async with httpx.AsyncClient(
            base_url=self.config.base_url,
            headers={"Authorization": f"Bearer {self.config.api_key}"},
            timeout=self.config.timeout_seconds,
            transport=self._transport,
        ) as client:
            try:
                response = await client.post(path, json=body)
            except httpx.RequestError as e:
                logger.error(f"Perplexity request failed: {path}: {e!s}")
                raise ProviderError(PROVIDER, f"Request failed: {e!s}") from e

        if response.is_error:
            try:
                error = response.json().get("error", {})
                message = error.get("message") if isinstance(error, dict) else str(error)
            except ValueError:
                message = response.text
            message = message or response.reason_phrase
            logger.error(f"Perplexity returned {response.status_code}: {message}")
            raise ProviderError(PROVIDER, message, status_code=response.status_code)

        return response.json()

    async def search(self, query: str, max_results: int = 10) -> list[SearchResult]:
        """Run a web search.

        Args:
            query: Free-text search query.
            max_results: Maximum hits to return (1-20).

        Returns:
            Search hits with title, URL and snippet.
        """
        max_results = max(1, min(max_results, 20))
        logger.info(f"Searching Perplexity: {query!r} (max {max_results})")
        data = await self._post("/search", {"query": query, "max_results": max_results})

        results = []
        for item in data.get("results", []):
            if not item.get("url"):
                continue
            results.append(
                SearchResult(
                    title=item.get("title"),
                    url=item["url"],
                    snippet=item.get("snippet"),
                    date=item.get("date"),
                )
            )
        return results

    async def extract_listings(
        self, results: list[SearchResult], city: str | None = None
    ) -> list[Listing]:
        """Extract structured listings from search hits.

        Args:
            results: Raw search hits to read.
            city: City the listings should be in, used as a hint.

        Returns:
            Listings that have at least a title or project name.
        """
        if not results:
            return []

        sources = "\n\n".join(
            f"[{i + 1}] {r.title or ''}\nURL: {r.url}\n{r.snippet or ''}"
            for i, r in enumerate(results)
        )
        location_hint = f" in {city}" if city else ""
        body = {
            "model": self.config.model,
            "messages": [
                {
                    "role": "system",
                    "content": (
                        "You extract real estate listings from search results. "
                        "Only use facts present in the sources. "
                        "Use the source URL of the result each listing came from."
                    ),
                },
                {
                    "role": "user",
                    "content": (
                        f"Extract every distinct property listing{location_hint} "
                        f"from these search results:\n\n{sources}"
                    ),
                },
            ],
            "response_format": {
                "type": "json_schema",
                "json_schema": {"schema": LISTING_SCHEMA},
            },
        }

        data = await self._post("/chat/completions", body)
        try:
            content = data["choices"][0]["message"]["content"]
            parsed = json.loads(_strip_code_fence(content))
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.error(f"Could not parse Perplexity extraction response: {e!s}")
            raise ProviderError(PROVIDER, "Malformed listing extraction response") from e

        # Some responses drop the wrapper object and return the array itself
        items = parsed.get("listings", []) if isinstance(parsed, dict) else parsed
        if not isinstance(items, list):
            logger.error(f"Perplexity extraction returned {type(items).__name__}, expected a list")
            raise ProviderError(PROVIDER, "Malformed listing extraction response")

        listings = []
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                listing = Listing.model_validate(
                    {k: str(v) for k, v in item.items() if v is not None}
                )
            except ValidationError as e:
                logger.warning(f"Dropping malformed listing: {e!s}")
                continue
            if listing.title or listing.project_name:
                listings.append(listing)

        logger.info(f"Extracted {len(listings)} listings from {len(results)} results")
        return listings


def dedupe_results(results: list[SearchResult]) -> list[SearchResult]:
    """Drop repeated URLs, keeping the first occurrence."""
    seen: set[str] = set()
    unique = []
    for result in results:
        key = result.url.rstrip("/")
        if key in seen:
            continue
        seen.add(key)
        unique.append(result)
    return unique


_perplexity_client: PerplexityClient | None = None


def get_perplexity_client() -> PerplexityClient:
    """Get the Perplexity client singleton."""
    global _perplexity_client
    if _perplexity_client is None:
        _perplexity_client = PerplexityClient()
    return _perplexity_client
