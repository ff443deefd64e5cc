from pathlib import Path

import pytest

from docqa.config import (
    find_config_path,
    get_config_value,
    get_section,
    load_config,
    loads_config,
    with_overrides,
)


class TestLoadConfig:
    def test_load_config(self, temp_config: Path) -> None:
        config = load_config(temp_config)

        assert config["embedding"]["model"] == "text-embedding-3-small"
        assert config["chunking"]["chunk_size"] == 400

    def test_env_substitution(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DOCQA_TEST_KEY", "sk-test")
        monkeypatch.delenv("DOCQA_MISSING", raising=False)

        config = loads_config(
            """
[embedding]
api_key = "${DOCQA_TEST_KEY}"
base_url = "${DOCQA_MISSING:-http://localhost:11434}"
extra = ["${DOCQA_TEST_KEY}", 3]
"""
        )

        assert config["embedding"]["api_key"] == "sk-test"
        assert config["embedding"]["base_url"] == "http://localhost:11434"
        assert config["embedding"]["extra"] == ["sk-test", 3]

    def test_missing_variable_without_default_is_empty(self, monkeypatch) -> None:
        monkeypatch.delenv("DOCQA_MISSING", raising=False)
        assert loads_config('key = "${DOCQA_MISSING}"')["key"] == ""


class TestConfigHelpers:
    def test_get_config_value(self) -> None:
        config = {"retrieval": {"top_k": 4, "nested": {"value": 1}}}

        assert get_config_value(config, "retrieval.top_k") == 4
        assert get_config_value(config, "retrieval.nested.value") == 1
        assert get_config_value(config, "retrieval.missing", 8) == 8
        assert get_config_value(config, "retrieval.top_k.deeper", "x") == "x"

    def test_get_section_copies(self) -> None:
        config = {"retrieval": {"top_k": 4}, "flag": True}

        section = get_section(config, "retrieval")
        section["top_k"] = 99

        assert config["retrieval"]["top_k"] == 4
        assert get_section(config, "missing") == {}
        assert get_section(config, "flag") == {}

    def test_find_config_path_explicit(self, temp_config: Path) -> None:
        assert find_config_path(temp_config) == temp_config

    def test_find_config_path_in_cwd(self, temp_config: Path, monkeypatch) -> None:
        monkeypatch.delenv("DOCQA_CONFIG", raising=False)
        monkeypatch.chdir(temp_config.parent)
        assert find_config_path() == Path("config.toml")

    def test_repository_config_is_valid(self) -> None:
        root_config = Path(__file__).parent.parent / "config.toml"

        config = load_config(root_config)

        assert config["store"]["provider"] in ("memory", "faiss")
        assert config["retrieval"]["top_k"] == 8
        assert config["citations"]["fallback_count"] == 3

    def test_find_config_path_from_environment(self, temp_config: Path, monkeypatch) -> None:
        monkeypatch.setenv("DOCQA_CONFIG", str(temp_config))
        assert find_config_path() == temp_config

    def test_with_overrides(self) -> None:
        config = {"retrieval": {"top_k": 4, "use_mmr": True}, "store": {"provider": "memory"}}

        result = with_overrides(
            config,
            {"retrieval.use_mmr": False, "retrieval.rerank": None, "chat.answer_timeout": 5},
        )

        assert result["retrieval"] == {"top_k": 4, "use_mmr": False}
        assert result["chat"] == {"answer_timeout": 5}
        assert config["retrieval"]["use_mmr"] is True
        assert "chat" not in config
