"""Tests for YAML configuration loading and validation."""

import pytest

from books_config import DEFAULT_CONFIG_PATH, get_active_config
from books_config.loader import compute_checksum, config_from_dict, load_config
from books_config.schema import BooksConfig


class TestConfigFromDict:
    def test_empty_gives_defaults(self):
        config = config_from_dict({})
        assert config.storage.backend == "memory"
        assert config.posting.sale_prefix == "INV-"
        assert config.posting.number_padding == 5
        assert config.inventory.allow_negative_adjustments is False
        assert config.logging.level == "INFO"

    def test_partial_section_overrides(self):
        config = config_from_dict({"company": {"name": "Corner Shop", "currency_symbol": "£"}})
        assert config.company.name == "Corner Shop"
        assert config.company.currency_symbol == "£"
        assert config.company.symbol_position == "before"

    def test_logging_level_normalized(self):
        assert config_from_dict({"logging": {"level": "debug"}}).logging.level == "DEBUG"

    @pytest.mark.parametrize(
        "data, message",
        [
            ({"storage": {"backend": "mongo"}}, "storage.backend"),
            ({"storage": {"backend": "sql"}}, "database_url"),
            ({"company": {"symbol_position": "middle"}}, "symbol_position"),
            ({"company": {"decimal_places": -1}}, "decimal_places"),
            ({"posting": {"number_padding": 0}}, "number_padding"),
            ({"posting": {"max_conflict_retries": "3"}}, "max_conflict_retries"),
            ({"inventory": {"allow_negative_adjustments": "yes"}}, "allow_negative_adjustments"),
            ({"logging": {"level": "LOUD"}}, "logging.level"),
            ({"posting": {"prefix": "X"}}, "Unknown key"),
            ({"reports": {}}, "Unknown configuration section"),
            ({"company": ["not", "a", "mapping"]}, "must be a mapping"),
        ],
    )
    def test_invalid_values_rejected(self, data, message):
        with pytest.raises(ValueError, match=message):
            config_from_dict(data)

    def test_checksum_deterministic(self):
        data = {"posting": {"sale_prefix": "S-"}, "company": {"name": "A"}}
        assert config_from_dict(data).checksum == compute_checksum(dict(reversed(data.items())))


class TestLoadConfig:
    def test_load_file(self, tmp_path):
        path = tmp_path / "books.yaml"
        path.write_text(
            "storage:\n"
            "  backend: sql\n"
            "  database_url: sqlite:///books.db\n"
            "posting:\n"
            "  purchase_prefix: 'PO-'\n"
        )
        config = load_config(path)
        assert config.storage.database_url == "sqlite:///books.db"
        assert config.posting.purchase_prefix == "PO-"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "books.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            load_config(path)

    def test_packaged_defaults_load(self):
        assert isinstance(load_config(DEFAULT_CONFIG_PATH), BooksConfig)


class TestGetActiveConfig:
    def test_defaults_without_environment(self, monkeypatch):
        monkeypatch.delenv("BOOKS_CONFIG", raising=False)
        monkeypatch.delenv("BOOKS_DATABASE_URL", raising=False)
        assert get_active_config().storage.backend == "memory"

    def test_config_file_from_environment(self, monkeypatch, tmp_path):
        path = tmp_path / "books.yaml"
        path.write_text("company:\n  name: Env Co\n")
        monkeypatch.setenv("BOOKS_CONFIG", str(path))
        monkeypatch.delenv("BOOKS_DATABASE_URL", raising=False)
        assert get_active_config().company.name == "Env Co"

    def test_database_url_override_selects_sql(self, monkeypatch):
        monkeypatch.delenv("BOOKS_CONFIG", raising=False)
        monkeypatch.setenv("BOOKS_DATABASE_URL", "sqlite:///override.db")
        config = get_active_config()
        assert config.storage.backend == "sql"
        assert config.storage.database_url == "sqlite:///override.db"

    def test_explicit_path_wins(self, monkeypatch, tmp_path):
        path = tmp_path / "explicit.yaml"
        path.write_text("posting:\n  sale_prefix: 'E-'\n")
        monkeypatch.setenv("BOOKS_CONFIG", str(tmp_path / "ignored.yaml"))
        monkeypatch.delenv("BOOKS_DATABASE_URL", raising=False)
        assert get_active_config(path).posting.sale_prefix == "E-"
