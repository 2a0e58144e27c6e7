"""
Shared pytest fixtures for Scout tests.

This module provides:
- Explicit scoring and selection configs
- Loaded state stores on temporary paths
- Mock external services (LLM providers, DuckDuckGo search)
- Sample signal fixtures
"""

from datetime import datetime
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from scout.config import ForumConfig, SocialConfig, StorefrontConfig
from scout.reporter import EmailConfig, EmailReporter
from scout.state import HistoryStore, RankSnapshotStore
from tests.fixtures import make_app_signal, make_forum_signal, make_social_signal


# =============================================================================
# Config Fixtures
# =============================================================================


@pytest.fixture
def forum_config() -> ForumConfig:
    """Forum settings with a single strong keyword."""
    return ForumConfig(
        subreddits=["SaaS"],
        posts_per_subreddit=25,
        keywords={"alternative to": 3, "looking for": 2, "annoying": 1},
        threshold=3,
        max_candidates=3,
    )


@pytest.fixture
def social_config() -> SocialConfig:
    return SocialConfig(
        feeds=["https://rss.example.com/search.xml"],
        search_queries=[],
        results_per_query=10,
        max_candidates=5,
    )


@pytest.fixture
def storefront_config() -> StorefrontConfig:
    """Storefront settings with a full top-300 window."""
    return StorefrontConfig(
        markets=["us", "cn"],
        arbitrage_source="us",
        arbitrage_comparison="cn",
        fetch_limit=300,
        priority_window=200,
        tracked_window=300,
        min_rank=50,
        excluded_category="Games",
        productivity_categories=["Productivity", "Utilities"],
        impulse_price_ceiling=10.0,
        riser_threshold=20,
        rating_floor=3.8,
        max_candidates=3,
    )


@pytest.fixture
def sample_config_yaml(tmp_path) -> Path:
    """Create a sample config.yaml file."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text("""
llm:
  provider: google
  google_model: gemini-2.0-flash

email:
  from: scout@example.com
  to:
    - recipient@example.com

forum:
  subreddits: [SaaS]
  threshold: 4

storefront:
  markets: [us, jp]
  min_rank: 10
""")
    return config_path


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set mock environment variables for testing."""
    monkeypatch.setenv("OPENAI_API_KEY", "test-openai-key")
    monkeypatch.setenv("GOOGLE_API_KEY", "test-google-key")
    monkeypatch.setenv("SMTP_USERNAME", "test@example.com")
    monkeypatch.setenv("SMTP_PASSWORD", "test-password")


# =============================================================================
# State Fixtures
# =============================================================================


@pytest.fixture
def history_path(tmp_path) -> Path:
    return tmp_path / "history.json"


@pytest.fixture
def snapshot_path(tmp_path) -> Path:
    return tmp_path / "rank_snapshot.json"


@pytest.fixture
def history(history_path) -> HistoryStore:
    """An empty, loaded history store."""
    store = HistoryStore(str(history_path))
    store.load()
    return store


@pytest.fixture
def snapshot(snapshot_path) -> RankSnapshotStore:
    """An empty, loaded rank snapshot store."""
    store = RankSnapshotStore(str(snapshot_path), tracked_window=300)
    store.load()
    return store


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def forum_signal():
    return make_forum_signal()


@pytest.fixture
def social_signal():
    return make_social_signal()


@pytest.fixture
def app_signal():
    return make_app_signal()


# =============================================================================
# Reporter Fixtures
# =============================================================================


@pytest.fixture
def email_config() -> EmailConfig:
    return EmailConfig(
        host="smtp.example.com",
        port=587,
        username="user",
        password="pass",
        use_tls=True,
        email_from="scout@example.com",
        email_to=["recipient@example.com"],
    )


@pytest.fixture
def reporter(email_config) -> EmailReporter:
    return EmailReporter(email_config)


@pytest.fixture
def mock_smtp():
    """Mock smtplib.SMTP so nothing leaves the machine."""
    with patch("scout.reporter.smtplib.SMTP") as mock_smtp_class:
        mock_server = MagicMock()
        mock_smtp_class.return_value = mock_server
        yield mock_server


# =============================================================================
# Mock External Services
# =============================================================================


@pytest.fixture
def mock_google_genai():
    """Mock google.genai.Client for Gemini API tests."""
    with patch("google.genai.Client") as mock_client_class:
        mock_client = MagicMock()

        mock_response = MagicMock()
        mock_response.text = "This is a test response from Gemini."
        mock_response.usage_metadata = MagicMock(
            prompt_token_count=100,
            candidates_token_count=50,
            total_token_count=150,
        )

        mock_aio = MagicMock()
        mock_aio.models.generate_content = AsyncMock(return_value=mock_response)
        mock_client.aio = mock_aio

        mock_client_class.return_value = mock_client
        yield mock_client_class


@pytest.fixture
def mock_openai():
    """Mock AsyncOpenAI for OpenAI API tests."""
    # Patch at the module where it's imported, not where it's defined
    with patch("scout.llm.openai_client.AsyncOpenAI") as mock_client_class:
        mock_client = MagicMock()

        mock_message = MagicMock()
        mock_message.content = "This is a test response from OpenAI."

        mock_choice = MagicMock()
        mock_choice.message = mock_message

        mock_response = MagicMock()
        mock_response.choices = [mock_choice]
        mock_response.model = "gpt-4o-mini"
        mock_response.usage = MagicMock(
            prompt_tokens=100,
            completion_tokens=50,
            total_tokens=150,
        )

        mock_client.chat.completions.create = AsyncMock(return_value=mock_response)
        mock_client_class.return_value = mock_client
        yield mock_client_class


@pytest.fixture
def mock_ddgs():
    """Mock DuckDuckGo search for social search tests."""
    with patch("scout.connectors.social.DDGS") as mock_ddgs_class:
        mock_ddgs = MagicMock()
        mock_ddgs.text.return_value = [
            {
                "title": "Is there an app that splits rent?",
                "body": "Asking for my flatmates.",
                "href": "https://x.com/someone/status/1",
            },
            {
                "title": "No link here",
                "body": "Dropped.",
            },
        ]
        mock_ddgs_class.return_value = mock_ddgs
        yield mock_ddgs_class


@pytest.fixture
def sample_diagnostics():
    """Create a sample RunDiagnostics object."""
    from scout.diagnostics import RunDiagnostics

    return RunDiagnostics(
        run_id="20240101_080000",
        start_time=datetime.now(),
        sources_ok={"r/SaaS": 25, "appstore:us": 100},
        candidates={"forum": 2, "storefront": 3},
        llm_calls_made=5,
        llm_tokens_used=1500,
        email_sent=True,
        message_id="<abc@example.com>",
    )
