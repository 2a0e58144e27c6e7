"""
Run orchestration.

One run:
1. Fetch every source concurrently; a failing source only loses its own items.
2. Score, dedup and select candidates per family.
3. Stop here if nothing is new: no state is written and nothing is sent.
4. Analyze candidates with the LLM, one call at a time.
5. Compose the digest.
6. Record reported ids and observed ranks, commit both stores.
7. Deliver the digest.

State is committed before delivery, so a crash between the two loses
that digest rather than repeating it on the next run.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import httpx

from .analyst import AnalysisDispatcher
from .config import Config, ForumConfig, SocialConfig, StorefrontConfig, config
from .connectors import FetchResult, SourceConnector, create_connectors
from .diagnostics import DiagnosticsCollector, RunDiagnostics, should_send_admin_alert
from .llm import LLMProvider, create_llm_provider
from .reporter import ComposedReport, DeliveryResult, EmailReporter, create_reporter_from_config
from .scoring import KeywordScorer, PriorityScorer, TrendAnnotator
from .selector import CandidateSelector
from .signals import RawSignal, ScoredCandidate, SignalFamily
from .state import HistoryStore, RankSnapshotStore, commit_stores, load_stores

logger = logging.getLogger("scout.pipeline")


@dataclass
class RunOutcome:
    """What a run produced."""
    candidates: list[ScoredCandidate] = field(default_factory=list)
    report: Optional[ComposedReport] = None
    delivery: Optional[DeliveryResult] = None
    persistence_errors: list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.candidates


async def fetch_all(connectors: list[SourceConnector]) -> list[FetchResult]:
    """
    Run every connector concurrently and wait for all of them.

    Connectors do not raise, but anything unexpected is still turned into
    an empty result so one source never cancels its siblings.
    """
    results = await asyncio.gather(*(c.fetch() for c in connectors), return_exceptions=True)

    fetched: list[FetchResult] = []
    for connector, result in zip(connectors, results):
        if isinstance(result, BaseException):
            logger.error(f"Connector {connector.name} crashed: {result}")
            fetched.append(FetchResult(connector.name, connector.family, error=str(result), market=connector.market))
            continue
        fetched.append(result)
    return fetched


def _signals_for(results: list[FetchResult], family: SignalFamily) -> list[RawSignal]:
    return [s for r in results if r.family == family for s in r.signals]


def comparison_ids(results: list[FetchResult], market: str) -> Optional[set[str]]:
    """Item ids seen in a storefront market, or None if it was not fetched successfully."""
    matching = [r for r in results if r.family == SignalFamily.STOREFRONT and r.market == market]
    if not matching or not all(r.ok for r in matching):
        return None
    return {s.item_id for r in matching for s in r.signals}


def select_candidates(
    results: list[FetchResult],
    history: HistoryStore,
    snapshot: RankSnapshotStore,
    forum: ForumConfig,
    social: SocialConfig,
    storefront: StorefrontConfig,
) -> list[ScoredCandidate]:
    """Select candidates for every family. Order: storefront, forum, social."""
    selector = CandidateSelector(history, forum, social, storefront)

    comparison = storefront.arbitrage_comparison.lower()
    compared = comparison_ids(results, comparison)
    if compared is None:
        logger.warning(f"Comparison market '{comparison}' unavailable, arbitrage flags skipped")

    annotator = TrendAnnotator(
        snapshot=snapshot,
        arbitrage_source=storefront.arbitrage_source.lower(),
        comparison_ids=compared,
        rating_floor=storefront.rating_floor,
    )

    candidates: list[ScoredCandidate] = []
    candidates += selector.select_storefront(
        _signals_for(results, SignalFamily.STOREFRONT),
        PriorityScorer.from_config(storefront),
        annotator,
    )
    candidates += selector.select_forum(
        _signals_for(results, SignalFamily.FORUM),
        KeywordScorer.from_config(forum),
    )
    candidates += selector.select_social(_signals_for(results, SignalFamily.SOCIAL))
    return candidates


def stage_state(
    candidates: list[ScoredCandidate],
    results: list[FetchResult],
    history: HistoryStore,
    snapshot: RankSnapshotStore,
) -> None:
    """Record reported identifiers and this run's tracked ranks."""
    for candidate in candidates:
        history.record(candidate.identifier)

    for signal in _signals_for(results, SignalFamily.STOREFRONT):
        if signal.rank is not None and signal.rank <= snapshot.tracked_window:
            snapshot.record_current(signal.market, signal.item_id, signal.rank)


async def run_once(
    connectors: list[SourceConnector],
    history: HistoryStore,
    snapshot: RankSnapshotStore,
    dispatcher: AnalysisDispatcher,
    reporter: EmailReporter,
    forum: ForumConfig,
    social: SocialConfig,
    storefront: StorefrontConfig,
    diagnostics: Optional[RunDiagnostics] = None,
    provider_info: str = "AI",
) -> RunOutcome:
    """
    Execute one fetch -> select -> analyze -> compose -> commit -> deliver cycle.

    Both stores must already be loaded.
    """
    # STEP 1: fan out
    logger.info(f"\n[STEP 1] Fetching {len(connectors)} sources...")
    results = await fetch_all(connectors)

    if diagnostics:
        for r in results:
            if r.ok:
                diagnostics.sources_ok[r.source] = len(r.signals)
            else:
                diagnostics.sources_failed[r.source] = r.error or "unknown error"

    # STEP 2: select
    logger.info("\n[STEP 2] Selecting candidates...")
    candidates = select_candidates(results, history, snapshot, forum, social, storefront)

    if diagnostics:
        for family in SignalFamily:
            diagnostics.candidates[family.value] = sum(1 for c in candidates if c.family == family)

    if not candidates:
        logger.info("No new candidates this run - nothing to report, state untouched")
        return RunOutcome()

    # STEP 3: analyze, strictly sequential
    logger.info(f"\n[STEP 3] Analyzing {len(candidates)} candidates...")
    await dispatcher.dispatch(candidates)

    if diagnostics:
        diagnostics.llm_calls_made = dispatcher.calls_made
        diagnostics.llm_failures = dispatcher.failures
        diagnostics.llm_tokens_used = dispatcher.tokens_used

    # STEP 4: compose
    logger.info("\n[STEP 4] Composing digest...")
    report = reporter.compose(candidates, provider_info=provider_info)

    # STEP 5: persist
    logger.info("\n[STEP 5] Committing state...")
    stage_state(candidates, results, history, snapshot)
    persistence_errors = commit_stores(history, snapshot)
    if diagnostics:
        diagnostics.persistence_ok = not persistence_errors
        for error in persistence_errors:
            diagnostics.add_error(f"State commit failed: {error}")

    # STEP 6: deliver
    logger.info("\n[STEP 6] Delivering digest...")
    delivery = reporter.send_report(report)
    if delivery.delivered:
        logger.info(f"Digest delivered: {delivery.message_id}")
    else:
        logger.error(f"Digest delivery failed: {delivery.error}")

    if diagnostics:
        diagnostics.email_sent = delivery.delivered
        diagnostics.message_id = delivery.message_id
        if not delivery.delivered:
            diagnostics.add_error(f"Digest delivery failed: {delivery.error}")

    return RunOutcome(
        candidates=candidates,
        report=report,
        delivery=delivery,
        persistence_errors=persistence_errors,
    )


def _create_llm(cfg: Config) -> Optional[LLMProvider]:
    """Create the configured LLM provider, or None when credentials are missing."""
    if not cfg.has_llm_credentials():
        logger.warning(f"No API key for LLM provider '{cfg.app.llm_provider}', analyses will be skipped")
        return None
    try:
        return create_llm_provider(
            provider=cfg.app.llm_provider,
            openai_api_key=cfg.openai.api_key,
            openai_model=cfg.openai.model,
            google_api_key=cfg.google.api_key,
            google_model=cfg.google.model,
            timeout=cfg.app.llm_timeout,
        )
    except ValueError as e:
        logger.error(f"Failed to create LLM provider: {e}")
        return None


def _send_admin_alert(cfg: Config, reporter: EmailReporter, final: RunDiagnostics) -> None:
    should_alert, alert_reason = should_send_admin_alert(final)
    if not (should_alert or cfg.smtp.admin.send_on_success):
        logger.info(f"No admin alert needed: {alert_reason}")
        return

    admin_recipients = cfg.smtp.admin.recipients or cfg.smtp.email_to
    final.admin_email_sent = reporter.send_admin_email(
        diagnostics=final,
        alert_reason=alert_reason,
        admin_recipients=admin_recipients,
    )


async def run_pipeline(cfg: Config = config) -> bool:
    """
    Run the full pipeline from configuration.

    Returns:
        True if the run completed (an empty run counts as success).
    """
    logger = cfg.setup_logging()
    logger.info("=" * 60)
    logger.info("Opportunity Scout")
    logger.info("=" * 60)

    errors = cfg.validate()
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        return False

    run_id = datetime.now().strftime("%Y%m%d_%H%M%S")
    collector = DiagnosticsCollector(run_id=run_id)

    if cfg.storefront.tracked_window > cfg.storefront.fetch_limit:
        logger.info(
            f"storefront.tracked_window {cfg.storefront.tracked_window} exceeds fetch_limit "
            f"{cfg.storefront.fetch_limit}, tracking top {cfg.storefront.tracked_ranks} only"
        )

    history, snapshot = load_stores(
        history_path=cfg.state.history_path,
        snapshot_path=cfg.state.rank_snapshot_path,
        history_ceiling=cfg.state.history_ceiling,
        history_retain=cfg.state.history_retain,
        tracked_window=cfg.storefront.tracked_ranks,
    )

    llm = _create_llm(cfg)
    dispatcher = AnalysisDispatcher(llm, timeout=cfg.app.llm_timeout)
    provider_info = f"{llm.provider_name} {llm.model_name}" if llm else "No AI"

    reporter = create_reporter_from_config(
        host=cfg.smtp.host,
        port=cfg.smtp.port,
        username=cfg.smtp.username,
        password=cfg.smtp.password,
        use_tls=cfg.smtp.use_tls,
        email_from=cfg.smtp.email_from,
        email_to=cfg.smtp.email_to,
        email_from_name=cfg.smtp.email_from_name,
    )

    try:
        async with httpx.AsyncClient(
            timeout=cfg.app.http_timeout,
            headers={"User-Agent": cfg.app.user_agent},
            follow_redirects=True,
        ) as client:
            connectors = create_connectors(client, cfg.forum, cfg.social, cfg.storefront)
            outcome = await run_once(
                connectors=connectors,
                history=history,
                snapshot=snapshot,
                dispatcher=dispatcher,
                reporter=reporter,
                forum=cfg.forum,
                social=cfg.social,
                storefront=cfg.storefront,
                diagnostics=collector.diagnostics,
                provider_info=provider_info,
            )
    except Exception as e:
        logger.exception(f"Pipeline failed: {e}")
        collector.diagnostics.add_error(f"Pipeline failed: {e}")
        final = collector.finalize()
        if cfg.smtp.admin.enabled:
            _send_admin_alert(cfg, reporter, final)
        return False

    final = collector.finalize()
    if cfg.smtp.admin.enabled:
        _send_admin_alert(cfg, reporter, final)

    if outcome.empty:
        logger.info("Run complete: no new opportunities")
        return True

    logger.info("\n" + "=" * 60)
    logger.info(f"Run complete: {len(outcome.candidates)} opportunities reported")
    logger.info("=" * 60)
    return outcome.delivery is not None and outcome.delivery.delivered
