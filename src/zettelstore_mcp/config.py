"""Configuration module for the Zettelstore MCP server."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from zettelstore_mcp import __version__
from zettelstore_mcp.exceptions import ConfigurationError, ErrorCode

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config
_USER_ENV = Path.home() / ".zettelstore" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

_TRUE_VALUES = ("true", "1", "yes")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in _TRUE_VALUES


def _env_optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    return int(raw) if raw else None


class ZettelstoreConfig(BaseModel):
    """Configuration for the Zettelstore server."""

    # Remote data store (PostgREST-compatible, e.g. Supabase)
    store_url: Optional[str] = Field(default_factory=lambda: os.getenv("SUPABASE_URL"))
    anon_key: Optional[str] = Field(
        default_factory=lambda: os.getenv("SUPABASE_ANON_KEY")
    )
    service_role_key: Optional[str] = Field(
        default_factory=lambda: os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    )
    use_service_role: bool = Field(
        default_factory=lambda: _env_flag("ZETTELSTORE_USE_SERVICE_ROLE", "true")
    )
    # Ask the store to echo created/updated rows back (Prefer: return=representation)
    return_representation: bool = Field(
        default_factory=lambda: _env_flag("ZETTELSTORE_RETURN_REPRESENTATION", "true")
    )
    # Embedding provider
    openai_api_key: Optional[str] = Field(
        default_factory=lambda: os.getenv("OPENAI_API_KEY")
    )
    embedding_model: str = Field(
        default_factory=lambda: os.getenv(
            "ZETTELSTORE_EMBEDDING_MODEL", "text-embedding-3-small"
        )
    )
    # Expected vector length; None disables the dimension check
    embedding_dim: Optional[int] = Field(
        default_factory=lambda: _env_optional_int("ZETTELSTORE_EMBEDDING_DIM")
    )
    # Roughly 8000 tokens at ~4 characters per token
    embedding_max_chars: int = Field(
        default_factory=lambda: int(
            os.getenv("ZETTELSTORE_EMBEDDING_MAX_CHARS", "32000")
        )
    )
    # Similarity scoring
    similarity_candidate_pool: int = Field(
        default_factory=lambda: int(
            os.getenv("ZETTELSTORE_SIMILARITY_POOL", "1000")
        )
    )
    # Server configuration
    server_name: str = Field(
        default_factory=lambda: os.getenv("ZETTELSTORE_SERVER_NAME", "zettelstore-mcp")
    )
    server_version: str = Field(default=__version__)
    log_level: str = Field(
        default_factory=lambda: os.getenv("ZETTELSTORE_LOG_LEVEL", "INFO")
    )

    # Markdown export template
    export_template: str = Field(
        default=(
            "# {title}\n\n"
            "{content}\n\n"
            "**Type:** {note_type}\n"
            "{tags_line}"
            "**Created:** {created_at}\n"
            "**Updated:** {updated_at}\n"
        )
    )

    @model_validator(mode="after")
    def _validate_limits(self) -> "ZettelstoreConfig":
        """Reject non-positive numeric settings."""
        if self.embedding_max_chars < 1:
            raise ValueError("embedding_max_chars must be >= 1")
        if self.similarity_candidate_pool < 1:
            raise ValueError("similarity_candidate_pool must be >= 1")
        if self.embedding_dim is not None and self.embedding_dim < 1:
            raise ValueError("embedding_dim must be >= 1")
        return self

    def rest_url(self) -> str:
        """Base URL of the REST interface (``<store_url>/rest/v1``)."""
        self.validate_store()
        return self.store_url.rstrip("/") + "/rest/v1"

    def api_key(self) -> str:
        """Key sent as both ``apikey`` and bearer credential.

        Prefers the service-role key when ``use_service_role`` is set and the
        key is available, otherwise the anon key.
        """
        self.validate_store()
        if self.use_service_role and self.service_role_key:
            return self.service_role_key
        return self.anon_key

    def validate_store(self) -> None:
        """Ensure the store connection settings are present.

        Raises:
            ConfigurationError: Naming every missing environment variable.
        """
        missing = []
        if not self.store_url:
            missing.append("SUPABASE_URL")
        if not self.anon_key:
            missing.append("SUPABASE_ANON_KEY")
        if missing:
            raise ConfigurationError(
                f"Missing required store environment variables: {', '.join(missing)}",
                config_key=missing[0],
                code=ErrorCode.CONFIG_MISSING,
            )

    @property
    def embeddings_configured(self) -> bool:
        """Whether an embedding credential is available."""
        return bool(self.openai_api_key)


# Create a global config instance
config = ZettelstoreConfig()
