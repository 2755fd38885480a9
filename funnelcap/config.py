"""Centralised settings for the funnelcap backend.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from funnelcap.errors import ConfigurationError

# Load .env from the project root (one level up from this package)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("FUNNELCAP_WORKSPACE", Path.home() / ".funnelcap_data")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "funnelcap.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    job_store: str = field(
        default_factory=lambda: os.environ.get("JOB_STORE", "memory")
    )

    # ------------------------------------------------------------------
    # Browser
    # ------------------------------------------------------------------
    headless: bool = field(default_factory=lambda: _env_bool("BROWSER_HEADLESS", "true"))
    viewport_width: int = field(
        default_factory=lambda: int(os.environ.get("VIEWPORT_WIDTH", "1280"))
    )
    viewport_height: int = field(
        default_factory=lambda: int(os.environ.get("VIEWPORT_HEIGHT", "720"))
    )
    user_agent: str = field(
        default_factory=lambda: os.environ.get(
            "USER_AGENT",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        )
    )

    # ------------------------------------------------------------------
    # Timeouts
    # ------------------------------------------------------------------
    nav_timeout_ms: int = field(
        default_factory=lambda: int(os.environ.get("NAV_TIMEOUT_MS", "120000"))
    )
    screenshot_timeout_ms: int = field(
        default_factory=lambda: int(os.environ.get("SCREENSHOT_TIMEOUT_MS", "60000"))
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "30.0"))
    )

    # ------------------------------------------------------------------
    # Crawl defaults
    # ------------------------------------------------------------------
    crawl_max_steps: int = field(
        default_factory=lambda: int(os.environ.get("CRAWL_MAX_STEPS", "15"))
    )
    crawl_max_depth: int = field(
        default_factory=lambda: int(os.environ.get("CRAWL_MAX_DEPTH", "3"))
    )
    quiz_max_steps: int = field(
        default_factory=lambda: int(os.environ.get("QUIZ_MAX_STEPS", "20"))
    )
    quiz_steps_ceiling: int = field(
        default_factory=lambda: int(os.environ.get("QUIZ_STEPS_CEILING", "35"))
    )
    quiz_step_wait_ms: int = field(
        default_factory=lambda: int(os.environ.get("QUIZ_STEP_WAIT_MS", "2500"))
    )
    quiz_transition_ms: int = field(
        default_factory=lambda: int(os.environ.get("QUIZ_TRANSITION_MS", "1500"))
    )
    quiz_same_fingerprint_max: int = field(
        default_factory=lambda: int(os.environ.get("QUIZ_SAME_FINGERPRINT_MAX", "3"))
    )

    # ------------------------------------------------------------------
    # Rewrite service (external text generation)
    # ------------------------------------------------------------------
    llm_provider: str = field(
        default_factory=lambda: os.environ.get("LLM_PROVIDER", "anthropic")
    )
    anthropic_api_key: str = field(
        default_factory=lambda: os.environ.get("ANTHROPIC_API_KEY", "")
    )
    anthropic_chat_model: str = field(
        default_factory=lambda: os.environ.get(
            "ANTHROPIC_CHAT_MODEL", "claude-sonnet-4-20250514"
        )
    )
    openai_api_key: str = field(
        default_factory=lambda: os.environ.get("OPENAI_API_KEY", "")
    )
    openai_chat_model: str = field(
        default_factory=lambda: os.environ.get("OPENAI_CHAT_MODEL", "gpt-4o-mini")
    )
    ollama_base_url: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_BASE_URL", "http://localhost:11434")
    )
    ollama_chat_model: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_CHAT_MODEL", "ministral-3:8b")
    )
    rewrite_batch_size: int = field(
        default_factory=lambda: int(os.environ.get("REWRITE_BATCH_SIZE", "10"))
    )
    rewrite_temperature: float = field(
        default_factory=lambda: float(os.environ.get("REWRITE_TEMPERATURE", "0.6"))
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)

    def require_rewrite_credentials(self) -> None:
        """Fail fast when the selected rewrite provider has no access key.

        Raises:
            ConfigurationError: If the provider is unknown or its key is empty.
        """
        provider = self.llm_provider.lower()
        if provider == "anthropic" and not self.anthropic_api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY is not configured")
        if provider == "openai" and not self.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is not configured")
        if provider not in {"anthropic", "openai", "ollama"}:
            raise ConfigurationError(f"Unknown LLM_PROVIDER {self.llm_provider!r}")


# Module-level singleton - import this everywhere:
#   from funnelcap.config import settings
settings = Settings()
