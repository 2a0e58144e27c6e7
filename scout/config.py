"""
Configuration module for Scout.

Loads application settings from config.yaml and secrets from environment variables.
Scoring and selection settings are frozen dataclasses that the pipeline passes
explicitly into the scorers and the selector.
"""

import logging
import os
import contextvars
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import yaml
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Context variable for source name logging during concurrent fetches
source_context = contextvars.ContextVar("source_name", default=None)


class SourceLogFilter(logging.Filter):
    """Filter to inject the current source name into log records."""
    def filter(self, record):
        source = source_context.get()
        if source is not None:
            record.source_info = f" [{source}]"
        else:
            record.source_info = ""
        return True


# Default config file path
CONFIG_FILE = Path(__file__).parent.parent / "config.yaml"


def _load_yaml_config() -> dict:
    """Load configuration from YAML file."""
    if CONFIG_FILE.exists():
        with open(CONFIG_FILE) as f:
            return yaml.safe_load(f) or {}
    return {}


# Load YAML config once at module import
_yaml_config = _load_yaml_config()


def _get_yaml(section: str, key: str, default=None):
    """Get a value from the YAML config."""
    return _yaml_config.get(section, {}).get(key, default)


def _get_yaml_section(section: str, default=None):
    """Get an entire section from the YAML config."""
    return _yaml_config.get(section, default or {})


@dataclass
class OpenAIConfig:
    """OpenAI API configuration."""
    # Secret from .env
    api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    # Setting from YAML
    model: str = field(default_factory=lambda: _get_yaml("llm", "openai_model", "gpt-4o-mini"))


@dataclass
class GoogleConfig:
    """Google Generative AI configuration."""
    # Secret from .env
    api_key: str = field(default_factory=lambda: os.getenv("GOOGLE_API_KEY", ""))
    # Setting from YAML
    model: str = field(default_factory=lambda: _get_yaml("llm", "google_model", "gemini-2.0-flash"))


@dataclass
class AdminEmailConfig:
    """Admin diagnostics email configuration."""
    enabled: bool = field(
        default_factory=lambda: _get_yaml_section("email").get("admin", {}).get("enabled", True)
    )
    send_on_success: bool = field(
        default_factory=lambda: _get_yaml_section("email").get("admin", {}).get("send_on_success", False)
    )
    recipients: list[str] = field(
        default_factory=lambda: _get_yaml_section("email").get("admin", {}).get("recipients", []) or []
    )


@dataclass
class SMTPConfig:
    """SMTP email configuration."""
    # Settings from YAML
    host: str = field(default_factory=lambda: _get_yaml("smtp", "host", "smtp.gmail.com"))
    port: int = field(default_factory=lambda: _get_yaml("smtp", "port", 587))
    use_tls: bool = field(default_factory=lambda: _get_yaml("smtp", "use_tls", True))

    # Secrets from .env
    username: str = field(default_factory=lambda: os.getenv("SMTP_USERNAME", ""))
    password: str = field(default_factory=lambda: os.getenv("SMTP_PASSWORD", ""))

    # Settings from YAML
    email_from: str = field(default_factory=lambda: _get_yaml("email", "from", ""))
    email_from_name: str = field(default_factory=lambda: _get_yaml("email", "from_name", "Opportunity Scout"))
    email_to: list[str] = field(default_factory=lambda: _get_yaml("email", "to", []) or [])

    # Admin diagnostics
    admin: AdminEmailConfig = field(default_factory=AdminEmailConfig)


@dataclass
class AppConfig:
    """Application settings from YAML."""
    # LLM provider
    llm_provider: Literal["openai", "google"] = field(
        default_factory=lambda: _get_yaml("llm", "provider", "openai")
    )
    # Per-call limit for the AI analysis, in seconds
    llm_timeout: float = field(
        default_factory=lambda: _get_yaml("llm", "timeout", 60.0)
    )

    # Per-request limit for source fetches, in seconds
    http_timeout: float = field(
        default_factory=lambda: _get_yaml("http", "timeout", 15.0)
    )
    user_agent: str = field(
        default_factory=lambda: _get_yaml(
            "http",
            "user_agent",
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        )
    )

    # Logging
    log_level: str = field(
        default_factory=lambda: _get_yaml("logging", "level", "INFO")
    )


@dataclass
class StateConfig:
    """Where and how much cross-run state is kept."""
    history_path: str = field(
        default_factory=lambda: _get_yaml("state", "history_path", "data/history.json")
    )
    # Once the history grows past the ceiling only the newest `history_retain` ids are kept
    history_ceiling: int = field(
        default_factory=lambda: _get_yaml("state", "history_ceiling", 2000)
    )
    history_retain: int = field(
        default_factory=lambda: _get_yaml("state", "history_retain", 1000)
    )
    rank_snapshot_path: str = field(
        default_factory=lambda: _get_yaml("state", "rank_snapshot_path", "data/rank_snapshot.json")
    )


DEFAULT_FORUM_KEYWORDS = {
    "looking for": 2,
    "alternative to": 3,
    "is there a tool": 3,
    "is there an app": 3,
    "struggling with": 2,
    "annoying": 1,
    "automate": 2,
    "how do you": 1,
    "would pay": 4,
}


@dataclass(frozen=True)
class ForumConfig:
    """Forum (subreddit) sources and keyword scoring."""
    subreddits: list[str] = field(
        default_factory=lambda: _get_yaml("forum", "subreddits", ["SaaS", "smallbusiness", "Entrepreneur"])
    )
    posts_per_subreddit: int = field(
        default_factory=lambda: _get_yaml("forum", "posts_per_subreddit", 25)
    )
    # Keyword -> weight. An empty keyword matches every non-empty title.
    keywords: dict[str, int] = field(
        default_factory=lambda: _get_yaml("forum", "keywords", None) or dict(DEFAULT_FORUM_KEYWORDS)
    )
    threshold: int = field(
        default_factory=lambda: _get_yaml("forum", "threshold", 3)
    )
    max_candidates: int = field(
        default_factory=lambda: _get_yaml("forum", "max_candidates", 3)
    )


@dataclass(frozen=True)
class SocialConfig:
    """Curated social-search feeds. Items are assumed pre-filtered by the feed."""
    feeds: list[str] = field(
        default_factory=lambda: _get_yaml("social", "feeds", []) or []
    )
    # Web searches restricted to social sites, e.g. 'site:x.com "is there an app"'
    search_queries: list[str] = field(
        default_factory=lambda: _get_yaml("social", "search_queries", []) or []
    )
    results_per_query: int = field(
        default_factory=lambda: _get_yaml("social", "results_per_query", 10)
    )
    max_candidates: int = field(
        default_factory=lambda: _get_yaml("social", "max_candidates", 5)
    )


@dataclass(frozen=True)
class StorefrontConfig:
    """App Store ranking sources, priority formula and bucket rules."""
    markets: list[str] = field(
        default_factory=lambda: _get_yaml("storefront", "markets", ["us", "cn"])
    )
    # Items popular in the source market but absent in the comparison market are arbitrage
    arbitrage_source: str = field(
        default_factory=lambda: _get_yaml("storefront", "arbitrage_source", "us")
    )
    arbitrage_comparison: str = field(
        default_factory=lambda: _get_yaml("storefront", "arbitrage_comparison", "cn")
    )
    fetch_limit: int = field(
        default_factory=lambda: _get_yaml("storefront", "fetch_limit", 100)
    )
    # W in the priority formula (W - rank) / W
    priority_window: int = field(
        default_factory=lambda: _get_yaml("storefront", "priority_window", 200)
    )
    # Ranks tracked for trend detection, capped at fetch_limit (see tracked_ranks)
    tracked_window: int = field(
        default_factory=lambda: _get_yaml("storefront", "tracked_window", 300)
    )
    min_rank: int = field(
        default_factory=lambda: _get_yaml("storefront", "min_rank", 50)
    )
    excluded_category: str = field(
        default_factory=lambda: _get_yaml("storefront", "excluded_category", "Games")
    )
    productivity_categories: list[str] = field(
        default_factory=lambda: _get_yaml(
            "storefront",
            "productivity_categories",
            ["Productivity", "Utilities", "Business", "Developer Tools"],
        )
    )
    impulse_price_ceiling: float = field(
        default_factory=lambda: _get_yaml("storefront", "impulse_price_ceiling", 10.0)
    )
    riser_threshold: int = field(
        default_factory=lambda: _get_yaml("storefront", "riser_threshold", 20)
    )
    rating_floor: float = field(
        default_factory=lambda: _get_yaml("storefront", "rating_floor", 3.8)
    )
    max_candidates: int = field(
        default_factory=lambda: _get_yaml("storefront", "max_candidates", 3)
    )

    @property
    def tracked_ranks(self) -> int:
        """Ranks observed each run: the tracked window capped at the fetch limit."""
        return min(self.tracked_window, self.fetch_limit)


@dataclass
class Config:
    """Main configuration container."""
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    google: GoogleConfig = field(default_factory=GoogleConfig)
    smtp: SMTPConfig = field(default_factory=SMTPConfig)
    app: AppConfig = field(default_factory=AppConfig)
    state: StateConfig = field(default_factory=StateConfig)
    forum: ForumConfig = field(default_factory=ForumConfig)
    social: SocialConfig = field(default_factory=SocialConfig)
    storefront: StorefrontConfig = field(default_factory=StorefrontConfig)

    def setup_logging(self) -> logging.Logger:
        """Configure and return the application logger."""
        # Reset existing handlers to ensure clean configuration
        root = logging.getLogger()
        if root.handlers:
            for handler in root.handlers:
                root.removeHandler(handler)

        logging.basicConfig(
            level=getattr(logging, self.app.log_level.upper()),
            format="%(asctime)s - %(name)s - %(levelname)s%(source_info)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        # Add filter to the handler created by basicConfig
        for handler in logging.getLogger().handlers:
            handler.addFilter(SourceLogFilter())

        return logging.getLogger("scout")

    def has_llm_credentials(self) -> bool:
        """Check whether the selected LLM provider has an API key."""
        if self.app.llm_provider == "google":
            return bool(self.google.api_key)
        return bool(self.openai.api_key)

    def validate(self) -> list[str]:
        """
        Validate configuration and return list of missing/invalid settings.

        A missing LLM key is not an error: analyses fall back to a
        "not configured" note.

        Returns:
            List of validation error messages, empty if all valid.
        """
        errors = []

        # Check if config.yaml exists
        if not CONFIG_FILE.exists():
            errors.append(f"Config file not found: {CONFIG_FILE} (copy config.yaml.example to config.yaml)")

        if self.app.llm_provider not in ("openai", "google"):
            errors.append(f"Unsupported llm.provider: {self.app.llm_provider}")

        # Check SMTP configuration for email sending
        if not self.smtp.username or not self.smtp.password:
            errors.append("SMTP_USERNAME and SMTP_PASSWORD are required for email")
        if not self.smtp.email_to:
            errors.append("email.to is required in config.yaml (at least one recipient)")

        if self.state.history_retain > self.state.history_ceiling:
            errors.append("state.history_retain must not exceed state.history_ceiling")
        if self.storefront.fetch_limit < 1 or self.storefront.tracked_window < 1:
            errors.append("storefront.fetch_limit and storefront.tracked_window must be positive")

        return errors


# Global configuration instance
config = Config()
