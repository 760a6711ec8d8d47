"""Tests for wosync.lib.envparse module."""

import pytest

from wosync.lib.envparse import load_env, parse_env


class TestParseEnv:
    """Test parse_env function."""

    def test_basic(self):
        text = '# comment\n\nDATA_DIR=data\nTABLES_DIR="tables dir"\nexport LOCK_TIMEOUT=10\n'
        assert parse_env(text) == {"DATA_DIR": "data", "TABLES_DIR": "tables dir", "LOCK_TIMEOUT": "10"}

    def test_single_quotes(self):
        assert parse_env("DATA_DIR='x'") == {"DATA_DIR": "x"}

    def test_missing_equals(self):
        with pytest.raises(ValueError, match="no '='"):
            parse_env("DATA_DIR\n")

    def test_invalid_key(self):
        with pytest.raises(ValueError, match="Invalid key"):
            parse_env("data_dir=x\n")

    @pytest.mark.parametrize("value", ["$(whoami)", "`id`", "${HOME}", "a; rm -rf /", "a && b", "a | b"])
    def test_forbidden_patterns(self, value):
        with pytest.raises(ValueError, match="Forbidden"):
            parse_env(f"DATA_DIR={value}\n")


class TestLoadEnv:
    """Test load_env function."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_env(tmp_path / "missing.env")

    def test_reads_file(self, tmp_path):
        path = tmp_path / "wosync.env"
        path.write_text("RETRY_ATTEMPTS=2\n")
        assert load_env(path) == {"RETRY_ATTEMPTS": "2"}
