"""tests/test_catalog.py

Unit tests for the provider catalog (switchboard/catalog.py).
"""

from __future__ import annotations

# Third-Party Libraries
import pytest

# Local Modules
from switchboard.catalog import ProviderCatalog, ProviderSpec, default_catalog


@pytest.fixture
def builtin() -> ProviderCatalog:
    return default_catalog("/tmp")


class TestProviderCatalog:
    """Test suite for lookup, listing and keyword recommendation."""

    def test_default_entries(self, builtin: ProviderCatalog) -> None:
        assert "workspace" in builtin
        assert "filesystem" in builtin
        assert builtin.get("nope") is None
        assert len(builtin) == 6

    def test_workspace_runs_bundled_server(self, builtin: ProviderCatalog) -> None:
        spec = builtin.get("workspace")
        assert spec.args[:2] == ("-m", "switchboard.servers.workspace")

    def test_duplicate_ids_rejected(self) -> None:
        spec = ProviderSpec(id="a", name="A", description="", category="X", command="a")
        with pytest.raises(ValueError):
            ProviderCatalog([spec, spec])

    def test_filter_by_category_and_query(self, builtin: ProviderCatalog) -> None:
        developer = [spec.id for spec in builtin.list(category="developer")]
        assert developer == ["workspace", "filesystem", "github"]
        assert [spec.id for spec in builtin.list(query="postgres")] == ["postgres"]
        assert len(builtin.list(limit=2)) == 2

    def test_recommend_search(self, builtin: ProviderCatalog) -> None:
        assert builtin.recommend("search the web for news")[0] == "brave-search"

    def test_recommend_database(self, builtin: ProviderCatalog) -> None:
        assert builtin.recommend("query my sql data")[0] == "postgres"

    def test_recommend_nothing_relevant(self, builtin: ProviderCatalog) -> None:
        assert builtin.recommend("zzzz qqqq") == []

    def test_recommend_limit(self, builtin: ProviderCatalog) -> None:
        assert len(builtin.recommend("files coding web search data", limit=2)) == 2


class TestProviderSpec:
    """Test suite for ProviderSpec helpers."""

    def test_missing_env(self) -> None:
        spec = ProviderSpec(
            id="k", name="K", description="", category="X", command="k",
            required_env=("TOKEN", "OTHER"), env={"OTHER": "set"},
        )
        assert spec.missing_env({}) == ["TOKEN"]
        assert spec.missing_env({"TOKEN": "x"}) == []
        assert spec.missing_env({"TOKEN": ""}) == ["TOKEN"]

    def test_to_dict_hides_env_values(self) -> None:
        spec = ProviderSpec(
            id="k", name="K", description="", category="X", command="k",
            env={"TOKEN": "secret"}, required_env=("TOKEN",),
        )
        data = spec.to_dict()
        assert data["requiredEnv"] == ["TOKEN"]
        assert "secret" not in str(data)
