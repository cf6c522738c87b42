"""switchboard/catalog.py

Static catalog of tool providers and keyword-based recommendation.

Each entry describes how to launch an MCP server over stdio. The registry
looks providers up here by id; the HTTP surface lists and recommends them.
"""

from __future__ import annotations

# Standard Library
import os
import sys
import dataclasses
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

DEFAULT_RECOMMENDATIONS = 3

# Query keywords that earn a bonus for providers in a matching category.
_CATEGORY_BONUSES: dict[str, str] = {
    "code": "Developer Tools",
    "search": "Internet & Research",
    "data": "Database & Data",
}


@dataclasses.dataclass(frozen=True)
class ProviderSpec:
    """Launch specification for one tool provider.

    Attributes:
        id: Catalog identifier, also the namespace prefix of its tools.
        name: Display name.
        description: What the provider offers.
        category: Display category used for filtering and recommendation.
        command: Executable that starts the provider process.
        args: Arguments passed to ``command``.
        env: Extra environment variables for the provider process.
        required_env: Environment variables that must be non-empty before the
            provider can be launched (credentials, connection strings).
        capabilities: Capability keywords used by recommendation.
        tags: Free-form keywords used by recommendation.
    """

    id: str
    name: str
    description: str
    category: str
    command: str
    args: tuple[str, ...] = ()
    env: Mapping[str, str] = dataclasses.field(default_factory=dict)
    required_env: tuple[str, ...] = ()
    capabilities: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()

    def missing_env(self, environ: Mapping[str, str] | None = None) -> list[str]:
        """Return the required variables absent from both ``env`` and the environment."""
        environ = os.environ if environ is None else environ
        return [
            name
            for name in self.required_env
            if not (self.env.get(name) or environ.get(name))
        ]

    def search_text(self) -> str:
        return " ".join(
            [self.name, self.description, *self.tags, *self.capabilities]
        ).lower()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "command": self.command,
            "args": list(self.args),
            "requiredEnv": list(self.required_env),
            "capabilities": list(self.capabilities),
            "tags": list(self.tags),
        }


class ProviderCatalog:
    """Lookup of provider launch specs by id, in registration order."""

    def __init__(self, providers: Iterable[ProviderSpec]) -> None:
        self._providers: dict[str, ProviderSpec] = {}
        for spec in providers:
            if spec.id in self._providers:
                raise ValueError(f"Duplicate provider id: {spec.id!r}")
            self._providers[spec.id] = spec

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    def __len__(self) -> int:
        return len(self._providers)

    def get(self, provider_id: str) -> ProviderSpec | None:
        return self._providers.get(provider_id)

    def list(
        self,
        category: str | None = None,
        query: str | None = None,
        limit: int | None = None,
    ) -> list[ProviderSpec]:
        """List providers, optionally filtered.

        Args:
            category: Case-insensitive substring of the provider category.
            query: Case-insensitive substring of name, description, tags or
                capabilities.
            limit: Maximum number of providers returned.

        Returns:
            Matching providers in registration order.
        """
        providers = list(self._providers.values())
        if category:
            providers = [p for p in providers if category.lower() in p.category.lower()]
        if query:
            needle = query.lower()
            providers = [p for p in providers if needle in p.search_text()]
        if limit is not None:
            providers = providers[:limit]
        return providers

    def recommend(self, query: str, limit: int = DEFAULT_RECOMMENDATIONS) -> list[str]:
        """Recommend provider ids for a free-text task description.

        Each query word found in a provider's search text scores one point;
        keywords in ``_CATEGORY_BONUSES`` add two points to providers in the
        matching category. Providers scoring zero are never recommended.

        Args:
            query: What the user wants to achieve.
            limit: Maximum number of ids returned.

        Returns:
            Provider ids, best match first.
        """
        query_lower = query.lower()
        words = query_lower.split()
        scored: list[tuple[int, int, str]] = []
        for position, spec in enumerate(self._providers.values()):
            text = spec.search_text()
            score = sum(1 for word in words if word in text)
            for keyword, category in _CATEGORY_BONUSES.items():
                if keyword in query_lower and spec.category == category:
                    score += 2
            if score > 0:
                scored.append((-score, position, spec.id))
        scored.sort()
        return [provider_id for _, _, provider_id in scored[:limit]]


def default_catalog(workspace_root: str | Path = ".") -> ProviderCatalog:
    """Build the built-in catalog.

    Args:
        workspace_root: Directory exposed by the ``workspace`` and
            ``filesystem`` providers.

    Returns:
        The default ProviderCatalog.
    """
    root = str(Path(workspace_root).expanduser().resolve())
    return ProviderCatalog(
        [
            ProviderSpec(
                id="workspace",
                name="Workspace Files",
                description=(
                    "Bundled Python provider that reads, writes and lists files "
                    "inside one sandboxed directory."
                ),
                category="Developer Tools",
                command=sys.executable,
                args=("-m", "switchboard.servers.workspace", root),
                capabilities=("file_read", "file_write", "directory_operations"),
                tags=("files", "workspace", "local", "coding"),
            ),
            ProviderSpec(
                id="filesystem",
                name="Filesystem MCP Server",
                description=(
                    "Comprehensive filesystem operations: read, write, search files "
                    "and manage directories."
                ),
                category="Developer Tools",
                command="npx",
                args=("-y", "@modelcontextprotocol/server-filesystem", root),
                capabilities=("file_read", "file_write", "file_search", "directory_operations"),
                tags=("files", "filesystem", "coding", "development", "file-management"),
            ),
            ProviderSpec(
                id="brave-search",
                name="Brave Search MCP Server",
                description=(
                    "Search the web using the Brave Search API for real-time "
                    "information, research and current events."
                ),
                category="Internet & Research",
                command="npx",
                args=("-y", "@modelcontextprotocol/server-brave-search"),
                required_env=("BRAVE_API_KEY",),
                capabilities=("web_search", "real_time_info", "research"),
                tags=("search", "internet", "research", "web", "brave", "real-time"),
            ),
            ProviderSpec(
                id="github",
                name="GitHub MCP Server",
                description=(
                    "GitHub integration: repositories, issues, pull requests and "
                    "code search."
                ),
                category="Developer Tools",
                command="npx",
                args=("-y", "@modelcontextprotocol/server-github"),
                required_env=("GITHUB_PERSONAL_ACCESS_TOKEN",),
                capabilities=("repository_management", "issue_tracking", "pull_requests", "code_search"),
                tags=("github", "git", "coding", "version-control", "development"),
            ),
            ProviderSpec(
                id="postgres",
                name="PostgreSQL MCP Server",
                description=(
                    "Read-only PostgreSQL access: run queries, inspect schemas and "
                    "analyze data."
                ),
                category="Database & Data",
                command="npx",
                args=("-y", "@modelcontextprotocol/server-postgres"),
                required_env=("POSTGRES_CONNECTION_STRING",),
                capabilities=("sql_queries", "schema_management", "data_analysis"),
                tags=("database", "postgres", "sql", "data", "analytics", "postgresql"),
            ),
            ProviderSpec(
                id="puppeteer",
                name="Puppeteer MCP Server",
                description=(
                    "Browser automation and web scraping: screenshots, data "
                    "extraction and form filling."
                ),
                category="Web Automation",
                command="npx",
                args=("-y", "@modelcontextprotocol/server-puppeteer"),
                capabilities=("web_scraping", "browser_automation", "screenshot", "form_filling"),
                tags=("puppeteer", "web", "scraping", "automation", "browser", "testing"),
            ),
        ]
    )
