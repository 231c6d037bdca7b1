"""Tests for TreeOptions defaults and environment loading."""

import os

import pytest
from pydantic import ValidationError

from convtree.config import TreeOptions

ENV_VARS = (
    "CONVTREE_MAX_NODES",
    "CONVTREE_AUTO_PRUNE",
    "CONVTREE_MAX_BRANCHES",
    "CONVTREE_MAX_DEPTH",
    "CONVTREE_TITLE_MAX_LENGTH",
    "CONVTREE_ID_PREFIX",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
    # load_dotenv writes straight into os.environ
    for name in ENV_VARS:
        os.environ.pop(name, None)


class TestTreeOptions:
    def test_defaults(self):
        """Defaults: 1000 nodes, no auto-prune, no limits."""
        options = TreeOptions()
        assert options.max_nodes == 1000
        assert options.auto_prune is False
        assert options.max_branches is None
        assert options.max_depth is None
        assert options.title_max_length == 50
        assert options.id_prefix == "node"

    def test_rejects_non_positive(self):
        """Limits must be at least one."""
        with pytest.raises(ValidationError):
            TreeOptions(max_nodes=0)
        with pytest.raises(ValidationError):
            TreeOptions(max_depth=0)

    def test_from_env(self, monkeypatch):
        """CONVTREE_* variables override defaults."""
        monkeypatch.setenv("CONVTREE_MAX_NODES", "25")
        monkeypatch.setenv("CONVTREE_AUTO_PRUNE", "true")
        monkeypatch.setenv("CONVTREE_ID_PREFIX", "msg")
        options = TreeOptions.from_env()
        assert options.max_nodes == 25
        assert options.auto_prune is True
        assert options.id_prefix == "msg"
        assert options.max_branches is None

    def test_empty_variable_ignored(self, monkeypatch):
        """An empty variable falls back to the default."""
        monkeypatch.setenv("CONVTREE_MAX_DEPTH", "")
        assert TreeOptions.from_env().max_depth is None

    def test_invalid_value(self, monkeypatch):
        """Unparseable values raise a validation error."""
        monkeypatch.setenv("CONVTREE_MAX_NODES", "lots")
        with pytest.raises(ValidationError):
            TreeOptions.from_env()

    def test_env_file(self, tmp_path, monkeypatch):
        """Values are read from a dotenv file; the process environment wins."""
        env_file = tmp_path / ".env"
        env_file.write_text("CONVTREE_MAX_BRANCHES=7\nCONVTREE_MAX_NODES=10\n")
        monkeypatch.setenv("CONVTREE_MAX_NODES", "99")
        options = TreeOptions.from_env(env_file)
        assert options.max_branches == 7
        assert options.max_nodes == 99
