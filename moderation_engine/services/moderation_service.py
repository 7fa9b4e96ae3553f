import asyncio
import dataclasses
import functools
import threading
import time
from typing import Dict, List, Mapping, Optional, Sequence

from moderation_engine.clients.classifier_client import ClassifierRegistry
from moderation_engine.clients.page_client import PageClient
from moderation_engine.clients.wordlist_loader import load_wordlists
from moderation_engine.core.config import Settings
from moderation_engine.core.exceptions import (
    ContentModeratorException,
    InvalidInputException,
    ServiceUnavailableException,
)
from moderation_engine.core.logger import logger
from moderation_engine.models.content import (
    CompositeContent,
    ContentItem,
    ContentKind,
    HashtagContent,
    ImageContent,
    PixelBuffer,
    TextContent,
    UrlContent,
    fingerprint,
)
from moderation_engine.models.verdict import (
    AnalysisOutcome,
    BatchItemResult,
    FlagKind,
    FlagReason,
    ImageViolation,
    ModerationReport,
    ModerationStatisticsSnapshot,
    ModerationVerdict,
    Severity,
    VerdictKind,
    merge_reasons,
)
from moderation_engine.services.cache import ResultCache
from moderation_engine.services.image_analysis import ImageAnalyzer
from moderation_engine.services.lexical_matcher import BASIC_ENGLISH_SEVERITIES, LexicalMatcher
from moderation_engine.services.text_analysis import TextAnalyzer, sanitize_text
from moderation_engine.services.url_analysis import UrlAnalyzer

CONTENT_TYPES = (TextContent, HashtagContent, ImageContent, UrlContent, CompositeContent)

ALWAYS_SEVERE_KINDS = (FlagKind.harassment, FlagKind.hate_speech, FlagKind.violence)


def is_severe(reason: FlagReason, severe_image_confidence: float = 0.9) -> bool:
    """Reasons that block content regardless of the aggregate confidence."""
    if reason.kind == FlagKind.profanity:
        return reason.severity is not None and reason.severity >= Severity.severe
    if reason.kind == FlagKind.inappropriate_image:
        return (
            reason.image_violation in (ImageViolation.nsfw, ImageViolation.violence)
            and reason.confidence is not None
            and reason.confidence > severe_image_confidence
        )
    return reason.kind in ALWAYS_SEVERE_KINDS


def aggregate_confidence(outcomes: Sequence[AnalysisOutcome]) -> float:
    """Mean confidence of the outcomes that produced at least one reason."""
    contributing = [outcome.confidence for outcome in outcomes if outcome.has_reasons]
    return sum(contributing) / len(contributing) if contributing else 0.0


def determine_verdict(
    reasons: Sequence[FlagReason],
    confidence: float,
    block_confidence: float = 0.9,
    review_confidence: float = 0.7,
    severe_image_confidence: float = 0.9,
) -> ModerationVerdict:
    """
    Apply the verdict policy.

    Evaluated in order: no reasons approves; any severe reason or a
    confidence above ``block_confidence`` blocks; a confidence above
    ``review_confidence`` requires review; anything else is flagged.
    """
    if not reasons:
        return ModerationVerdict.approved()

    reasons = tuple(reasons)
    has_severe = any(is_severe(reason, severe_image_confidence) for reason in reasons)

    if has_severe or confidence > block_confidence:
        return ModerationVerdict(VerdictKind.blocked, reasons, confidence)
    if confidence > review_confidence:
        return ModerationVerdict(VerdictKind.requires_review, reasons, confidence)
    return ModerationVerdict(VerdictKind.flagged, reasons, confidence)


class ModerationStatistics:
    """Running counters shared by all moderation calls."""

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot = ModerationStatisticsSnapshot()
        self._total_processing_time = 0.0

    def record_moderation(self, verdict: ModerationVerdict, processing_time: float) -> None:
        with self._lock:
            stats = self._snapshot
            stats.total_moderations += 1
            self._total_processing_time += processing_time
            stats.average_processing_time = self._total_processing_time / stats.total_moderations

            if verdict.kind == VerdictKind.approved:
                stats.approved_count += 1
            elif verdict.kind == VerdictKind.flagged:
                stats.flagged_count += 1
            elif verdict.kind == VerdictKind.blocked:
                stats.blocked_count += 1
            else:
                stats.review_required_count += 1

    def record_cache_hit(self) -> None:
        with self._lock:
            self._snapshot.cache_hits += 1

    def record_error(self) -> None:
        with self._lock:
            self._snapshot.error_count += 1

    def snapshot(self) -> ModerationStatisticsSnapshot:
        with self._lock:
            return dataclasses.replace(self._snapshot)


class ModerationService:
    """
    Fans content items out to the analyzers and turns their outcomes into a
    verdict.

    Analyzers are constructed by the caller and injected here. The result
    caches and the statistics are the only shared mutable state; both are
    lock-guarded and only reachable through this service.
    """

    def __init__(
        self,
        lexical_matcher: LexicalMatcher,
        text_analyzer: TextAnalyzer,
        image_analyzer: ImageAnalyzer,
        url_analyzer: UrlAnalyzer,
        settings: Optional[Settings] = None,
        caches: Optional[Mapping[ContentKind, ResultCache]] = None,
    ):
        self.settings = settings or Settings()
        self.lexical_matcher = lexical_matcher
        self.text_analyzer = text_analyzer
        self.image_analyzer = image_analyzer
        self.url_analyzer = url_analyzer
        self._caches: Dict[ContentKind, ResultCache] = dict(caches or self._default_caches())
        self._statistics = ModerationStatistics()

        logger.info("Moderation service initialized")

    def _default_caches(self) -> Dict[ContentKind, ResultCache]:
        s = self.settings
        text_cache = ResultCache(
            max_entries=s.text_cache_max_entries,
            max_bytes=s.text_cache_max_bytes,
            ttl_seconds=s.cache_ttl_seconds,
        )
        return {
            ContentKind.text: text_cache,
            ContentKind.hashtags: text_cache,
            ContentKind.composite: text_cache,
            ContentKind.url: ResultCache(
                max_entries=s.url_cache_max_entries,
                max_bytes=s.url_cache_max_bytes,
                ttl_seconds=s.cache_ttl_seconds,
            ),
            ContentKind.image: ResultCache(
                max_entries=s.image_cache_max_entries,
                max_bytes=s.image_cache_max_bytes,
                ttl_seconds=s.cache_ttl_seconds,
            ),
        }

    # -- public API ----------------------------------------------------------

    async def moderate(self, item: ContentItem) -> ModerationVerdict:
        """
        Moderate a single content item.

        Raises:
            InvalidInputException: If the item is malformed
            ServiceUnavailableException: If an internal dependency fails
        """
        report = await self.moderate_detailed(item)
        return report.verdict

    async def moderate_detailed(self, item: ContentItem) -> ModerationReport:
        """Moderate an item and return the verdict with its per-signal outcomes."""
        if not isinstance(item, CONTENT_TYPES):
            self._statistics.record_error()
            raise InvalidInputException(
                f"Unsupported content item {type(item).__name__}",
                field="item"
            )

        start_time = time.perf_counter()
        key = fingerprint(item)
        cache = self._caches.get(item.kind)
        log_context = {"fingerprint": key[:16], "content_kind": item.kind.value}

        if self.settings.cache_enabled and cache is not None:
            cached = cache.get(key)
            if cached is not None:
                self._statistics.record_cache_hit()
                logger.debug("Using cached moderation result", extra=log_context)
                return dataclasses.replace(cached, cached=True)

        try:
            outcomes = await self._evaluate(item)
        except ContentModeratorException as e:
            self._statistics.record_error()
            logger.warning(
                f"Moderation failed: {e.message}",
                extra={**log_context, "error_code": e.error_code}
            )
            raise
        except Exception as e:
            self._statistics.record_error()
            logger.error(
                f"Unexpected error in moderation",
                extra={**log_context, "error": str(e)},
                exc_info=True
            )
            raise ServiceUnavailableException(
                f"Moderation temporarily unavailable: {str(e)}",
                service="moderation"
            ) from e

        verdict = self._verdict_for(outcomes)
        report = ModerationReport(verdict=verdict, outcomes=tuple(outcomes), fingerprint=key)

        if self.settings.cache_enabled and cache is not None:
            cache.set(key, report)

        processing_time = time.perf_counter() - start_time
        self._statistics.record_moderation(verdict, processing_time)

        logger.info(
            f"Content moderation completed in {processing_time:.3f}s",
            extra={**log_context, "verdict": verdict.kind.value, "confidence": verdict.confidence}
        )
        return report

    async def moderate_batch(self, items: Sequence[ContentItem]) -> List[BatchItemResult]:
        """
        Moderate items concurrently, bounded by ``max_concurrency``.

        Results come back in input order. A failing item yields a result
        carrying its error and never fails its siblings. Cancelling the
        calling task cancels every in-flight item and propagates; no partial
        results are returned.
        """
        if not items:
            return []

        logger.info(f"Starting batch moderation for {len(items)} items")

        semaphore = asyncio.Semaphore(max(self.settings.max_concurrency, 1))
        results_queue: "asyncio.Queue[BatchItemResult]" = asyncio.Queue()

        async def worker(index: int, item: ContentItem) -> None:
            async with semaphore:
                try:
                    verdict = await self.moderate(item)
                    result = BatchItemResult(index=index, verdict=verdict)
                except ContentModeratorException as e:
                    result = BatchItemResult(index=index, error=e)
                except Exception as e:
                    logger.error(
                        f"Unexpected error moderating batch item {index}",
                        extra={"error": str(e)},
                        exc_info=True
                    )
                    result = BatchItemResult(
                        index=index,
                        error=ServiceUnavailableException(str(e), service="moderation")
                    )
            await results_queue.put(result)

        tasks = [asyncio.ensure_future(worker(i, item)) for i, item in enumerate(items)]
        results: List[Optional[BatchItemResult]] = [None] * len(items)

        try:
            for _ in range(len(items)):
                result = await results_queue.get()
                results[result.index] = result
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.warning("Batch moderation cancelled")
            raise

        await asyncio.gather(*tasks)

        failed = sum(1 for result in results if not result.ok)
        logger.info(f"Batch moderation completed: {len(items) - failed} ok, {failed} failed")
        return results

    @property
    def statistics(self) -> ModerationStatisticsSnapshot:
        return self._statistics.snapshot()

    @property
    def cache_stats(self) -> Dict[str, dict]:
        seen = set()
        stats = {}
        for kind, cache in self._caches.items():
            if id(cache) in seen:
                continue
            seen.add(id(cache))
            stats[kind.value] = cache.stats
        return stats

    def clear_cache(self) -> int:
        cleared = 0
        for cache in {id(c): c for c in self._caches.values()}.values():
            cleared += cache.clear()
        logger.info(f"Content moderation cache cleared ({cleared} entries)")
        return cleared

    # -- dispatch ------------------------------------------------------------

    def _verdict_for(self, outcomes: Sequence[AnalysisOutcome]) -> ModerationVerdict:
        return determine_verdict(
            merge_reasons(list(outcomes)),
            aggregate_confidence(outcomes),
            block_confidence=self.settings.block_confidence,
            review_confidence=self.settings.review_confidence,
            severe_image_confidence=self.settings.severe_image_confidence,
        )

    async def _evaluate(self, item: ContentItem) -> List[AnalysisOutcome]:
        loop = asyncio.get_running_loop()
        if isinstance(item, TextContent):
            return await loop.run_in_executor(
                None, functools.partial(self._analyze_text, item.text, item.language)
            )
        if isinstance(item, HashtagContent):
            return await loop.run_in_executor(
                None, functools.partial(self._analyze_hashtags, item.hashtags, item.language)
            )
        if isinstance(item, ImageContent):
            return await self._analyze_image(item.pixels)
        if isinstance(item, UrlContent):
            return await self._analyze_url(item.url)
        if isinstance(item, CompositeContent):
            return await self._analyze_composite(item)
        raise InvalidInputException(
            f"Unsupported content item {type(item).__name__}",
            field="item"
        )

    def _profanity_outcome(
        self, source: str, text: str, language: Optional[str] = None
    ) -> AnalysisOutcome:
        result = self.lexical_matcher.score_text(text, language)
        if result is None:
            return AnalysisOutcome.empty(source)
        severity, confidence = result
        if confidence < self.settings.profanity_threshold:
            return AnalysisOutcome.empty(source)
        return AnalysisOutcome(source, (FlagReason.profanity(severity),), confidence)

    def _analyze_text(self, text: str, language: Optional[str] = None) -> List[AnalysisOutcome]:
        sanitized = sanitize_text(text)
        outcomes = [self._profanity_outcome("profanity", sanitized, language)]

        harassment = self.text_analyzer.harassment_score(sanitized)
        if harassment is not None and harassment > self.settings.harassment_threshold:
            outcomes.append(AnalysisOutcome("harassment", (FlagReason.harassment(),), harassment))
        else:
            outcomes.append(AnalysisOutcome.empty("harassment"))

        spam = self.text_analyzer.spam_score(sanitized)
        if spam is not None and spam > self.settings.spam_threshold:
            outcomes.append(AnalysisOutcome("spam", (FlagReason.spam(),), spam))
        else:
            outcomes.append(AnalysisOutcome.empty("spam"))

        if self.text_analyzer.contains_personal_information(sanitized):
            outcomes.append(AnalysisOutcome(
                "personal_information",
                (FlagReason.personal_information(),),
                self.settings.pii_confidence,
            ))
        else:
            outcomes.append(AnalysisOutcome.empty("personal_information"))

        return outcomes

    def _analyze_hashtags(
        self, hashtags: Sequence[str], language: Optional[str] = None
    ) -> List[AnalysisOutcome]:
        outcomes = [
            self._profanity_outcome(f"profanity:#{term}", sanitize_text(term), language)
            for term in self.text_analyzer.hashtag_terms(hashtags)
        ]

        if self.text_analyzer.detect_hashtag_spam(hashtags):
            outcomes.append(AnalysisOutcome(
                "hashtag_spam",
                (FlagReason.spam(),),
                self.settings.hashtag_spam_confidence,
            ))
        else:
            outcomes.append(AnalysisOutcome.empty("hashtag_spam"))

        return outcomes

    async def _analyze_image(self, pixels: PixelBuffer) -> List[AnalysisOutcome]:
        result = await self.image_analyzer.analyze(pixels)
        outcomes = [
            AnalysisOutcome(
                f"image.{flag.violation.value}",
                (FlagReason.inappropriate_image(flag.violation, flag.confidence),),
                flag.confidence,
            )
            for flag in result.flags
        ]
        if not outcomes:
            outcomes.append(AnalysisOutcome.empty("image"))
        return outcomes

    async def _analyze_url(self, url: str) -> List[AnalysisOutcome]:
        result = await self.url_analyzer.validate(url)
        reasons = []
        if result.is_malicious:
            reasons.append(FlagReason.malicious_url())
        if result.is_scam:
            reasons.append(FlagReason.scam())
        return [AnalysisOutcome("url", tuple(reasons), result.confidence)]

    async def _analyze_composite(self, item: CompositeContent) -> List[AnalysisOutcome]:
        tasks = [asyncio.ensure_future(self._evaluate(child)) for child in item.items]
        try:
            child_outcomes = await asyncio.gather(*tasks)
        except BaseException:
            # One failing child fails the composite; drop the siblings too.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        outcomes = []
        for index, (child, child_result) in enumerate(zip(item.items, child_outcomes)):
            verdict = self._verdict_for(child_result)
            if verdict.is_approved:
                continue
            outcomes.append(AnalysisOutcome(
                f"{item.identifier}[{index}].{child.kind.value}",
                verdict.reasons,
                verdict.confidence,
            ))
        return outcomes


def build_moderation_service(
    settings: Optional[Settings] = None,
    classifiers: Optional[ClassifierRegistry] = None,
    wordlists: Optional[Mapping[str, set]] = None,
    severities: Optional[Mapping[str, Severity]] = None,
    page_client: Optional[PageClient] = None,
) -> ModerationService:
    """
    Construct every analyzer once and wire them into a ModerationService.

    Args:
        settings: Engine settings (defaults read from the environment)
        classifiers: Loaded image classifiers; missing models degrade
        wordlists: Profanity terms per language; loaded from
            ``settings.wordlist_dir`` when omitted
        severities: Severity per term; defaults to the basic English table
        page_client: Client for URL content fetches; built from settings
            when omitted and fetching is enabled
    """
    settings = settings or Settings()

    if wordlists is None:
        wordlists = load_wordlists(
            settings.wordlist_dir,
            settings.supported_languages,
            default_language=settings.default_language,
        )
    if severities is None:
        severities = BASIC_ENGLISH_SEVERITIES

    if page_client is None and settings.url_fetch_enabled:
        page_client = PageClient(
            timeout=settings.url_fetch_timeout,
            user_agent=settings.url_user_agent,
        )

    return ModerationService(
        lexical_matcher=LexicalMatcher(
            wordlists,
            severities,
            default_language=settings.default_language,
            cache_size=settings.word_cache_max_entries,
        ),
        text_analyzer=TextAnalyzer(),
        image_analyzer=ImageAnalyzer(
            classifiers=classifiers,
            nsfw_threshold=settings.nsfw_threshold,
            violence_threshold=settings.violence_threshold,
            quality_threshold=settings.quality_threshold,
        ),
        url_analyzer=UrlAnalyzer(page_client=page_client),
        settings=settings,
    )
