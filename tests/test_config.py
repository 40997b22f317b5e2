"""Tests for configuration loading and the command-line entry point."""
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError as PydanticValidationError

import zettelstore_mcp.main as main_module
from zettelstore_mcp.config import ZettelstoreConfig
from zettelstore_mcp.exceptions import ConfigurationError, ErrorCode
from zettelstore_mcp.main import main, parse_args


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every setting the config reads from the environment."""
    for name in (
        "SUPABASE_URL",
        "SUPABASE_ANON_KEY",
        "SUPABASE_SERVICE_ROLE_KEY",
        "ZETTELSTORE_USE_SERVICE_ROLE",
        "ZETTELSTORE_RETURN_REPRESENTATION",
        "OPENAI_API_KEY",
        "ZETTELSTORE_EMBEDDING_MODEL",
        "ZETTELSTORE_EMBEDDING_DIM",
        "ZETTELSTORE_EMBEDDING_MAX_CHARS",
        "ZETTELSTORE_SIMILARITY_POOL",
        "ZETTELSTORE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestZettelstoreConfig:
    """Tests for reading settings from the environment."""

    def test_defaults(self, clean_env):
        cfg = ZettelstoreConfig()
        assert cfg.store_url is None
        assert cfg.use_service_role is True
        assert cfg.return_representation is True
        assert cfg.embedding_model == "text-embedding-3-small"
        assert cfg.embedding_dim is None
        assert cfg.similarity_candidate_pool == 1000
        assert cfg.embeddings_configured is False

    def test_reads_environment(self, clean_env):
        clean_env.setenv("SUPABASE_URL", "https://example.supabase.co/")
        clean_env.setenv("SUPABASE_ANON_KEY", "anon")
        clean_env.setenv("OPENAI_API_KEY", "sk-live")
        clean_env.setenv("ZETTELSTORE_EMBEDDING_DIM", "1536")
        clean_env.setenv("ZETTELSTORE_USE_SERVICE_ROLE", "no")

        cfg = ZettelstoreConfig()

        assert cfg.rest_url() == "https://example.supabase.co/rest/v1"
        assert cfg.api_key() == "anon"
        assert cfg.embedding_dim == 1536
        assert cfg.embeddings_configured is True

    def test_service_role_key_preferred(self, clean_env):
        clean_env.setenv("SUPABASE_URL", "https://example.supabase.co")
        clean_env.setenv("SUPABASE_ANON_KEY", "anon")
        clean_env.setenv("SUPABASE_SERVICE_ROLE_KEY", "service")
        assert ZettelstoreConfig().api_key() == "service"

    def test_missing_store_settings_named(self, clean_env):
        cfg = ZettelstoreConfig()
        with pytest.raises(ConfigurationError) as exc_info:
            cfg.validate_store()
        assert exc_info.value.code == ErrorCode.CONFIG_MISSING
        assert "SUPABASE_URL" in exc_info.value.message
        assert "SUPABASE_ANON_KEY" in exc_info.value.message

    def test_rejects_non_positive_pool(self, clean_env):
        clean_env.setenv("ZETTELSTORE_SIMILARITY_POOL", "0")
        with pytest.raises(PydanticValidationError):
            ZettelstoreConfig()

    def test_export_template_placeholders(self, clean_env):
        rendered = ZettelstoreConfig().export_template.format(
            title="T",
            content="C",
            note_type="hub",
            tags_line="",
            created_at="c",
            updated_at="u",
        )
        assert rendered.startswith("# T\n\nC\n")


class TestMain:
    """Tests for the command-line entry point."""

    def test_parse_args(self):
        args = parse_args(["--log-level", "DEBUG", "--log-dir", "/tmp/zs-logs"])
        assert args.log_level == "DEBUG"
        assert args.log_dir == "/tmp/zs-logs"

    def test_exits_when_store_not_configured(self, monkeypatch, tmp_path):
        monkeypatch.setattr(main_module, "configure_logging", lambda **kwargs: tmp_path)
        monkeypatch.setattr(main_module.config, "store_url", None)
        started = []
        monkeypatch.setattr(
            main_module, "ZettelstoreMcpServer", lambda: started.append(True)
        )

        with pytest.raises(SystemExit) as exc_info:
            main(["--log-level", "ERROR"])

        assert exc_info.value.code == 1
        assert started == []

    def test_runs_server(self, monkeypatch, tmp_path, test_config):
        monkeypatch.setattr(main_module, "configure_logging", lambda **kwargs: tmp_path)
        server_cls = MagicMock()
        monkeypatch.setattr(main_module, "ZettelstoreMcpServer", server_cls)

        main([])

        server_cls.return_value.run.assert_called_once()
