"""switchboard/recommend.py

Model-assisted provider recommendation with a keyword fallback.
"""

from __future__ import annotations

# Standard Library
import json
import asyncio
import logging
from typing import Any

# Third-Party Libraries
import httpx
from ollama import AsyncClient, ResponseError

# Local Modules
from switchboard.catalog import DEFAULT_RECOMMENDATIONS, ProviderCatalog

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """You are a tool-provider recommendation system. Based on the \
user's task, recommend relevant providers from the list below.

Return a JSON object with exactly one key, "servers", holding an array of at \
most {limit} provider ids. Example: {{"servers": ["provider-a", "provider-b"]}}

Available providers:
{providers}"""


class ProviderRecommender:
    """Recommends catalog providers for a free-text task.

    Args:
        catalog: Providers to choose from.
        client: Ollama client; when ``None`` only keyword matching is used.
        model: Ollama model tag.
        timeout: Seconds allowed for the model call.
    """

    def __init__(
        self,
        catalog: ProviderCatalog,
        client: AsyncClient | None = None,
        model: str = "",
        timeout: float = 60.0,
    ) -> None:
        self.catalog = catalog
        self.client = client
        self.model = model
        self.timeout = timeout

    async def recommend(
        self, query: str, use_model: bool = True, limit: int = DEFAULT_RECOMMENDATIONS
    ) -> tuple[list[str], str]:
        """Recommend provider ids for ``query``.

        Returns:
            ``(provider_ids, source)`` where source is ``"ai"`` when the model
            answered usefully and ``"keywords"`` otherwise.
        """
        if use_model and self.client is not None:
            ids = await self._ask_model(query, limit)
            if ids:
                return ids, "ai"
        return self.catalog.recommend(query, limit=limit), "keywords"

    async def _ask_model(self, query: str, limit: int) -> list[str]:
        providers = "\n".join(
            f"{spec.id}: {spec.name} - {spec.description} "
            f"(Category: {spec.category}, Capabilities: {', '.join(spec.capabilities)})"
            for spec in self.catalog.list()
        )
        messages = [
            {
                "role": "system",
                "content": _SYSTEM_PROMPT.format(limit=limit, providers=providers),
            },
            {"role": "user", "content": query},
        ]
        try:
            response = await asyncio.wait_for(
                self.client.chat(
                    model=self.model,
                    messages=messages,
                    format="json",
                    options={"temperature": 0.3},
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, ResponseError, httpx.HTTPError, ConnectionError) as exc:
            logger.warning("Model recommendation failed, using keywords: %s", exc)
            return []

        ids = _parse_server_ids(response.message.content or "")
        known = [provider_id for provider_id in ids if provider_id in self.catalog]
        if len(known) != len(ids):
            logger.info("Dropped unknown recommended ids: %s", set(ids) - set(known))
        return list(dict.fromkeys(known))[:limit]


def _parse_server_ids(raw: str) -> list[str]:
    cleaned = raw.replace("```json", "").replace("```", "").strip()
    try:
        data: Any = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.info("Recommendation reply is not JSON: %r", raw[:200])
        return []
    servers = data.get("servers") if isinstance(data, dict) else None
    if not isinstance(servers, list):
        return []
    return [str(item) for item in servers]
