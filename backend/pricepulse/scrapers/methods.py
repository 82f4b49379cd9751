"""Acquisition methods, ranked and iterated by the pipeline.

Each method is a small descriptor around one way of getting a record:
hosted data API, direct fetch through an intermediary, render-tolerant
fetch, or a delegated remote service. The pipeline treats them uniformly.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

import structlog

from pricepulse.config import Settings, settings as default_settings
from pricepulse.core.exceptions import (
    ChallengeDetectedError,
    ContentTooShortError,
    ExtractionError,
    FetchError,
)
from pricepulse.scrapers.base import (
    AcquisitionAttempt,
    AcquisitionTarget,
    ExtractionStrategy,
    NormalizedRecord,
)
from pricepulse.scrapers.clients import DelegatedAcquisitionClient, HostedDataApiClient
from pricepulse.scrapers.utils.content_classifier import Verdict, classify
from pricepulse.scrapers.utils.intermediary_registry import (
    Intermediary,
    IntermediaryHealthRegistry,
)
from pricepulse.scrapers.utils.timed_fetch import DeadlineProfile, TimedFetcher
from pricepulse.scrapers.utils.user_agents import PROFILE_RENDER, PROFILE_STANDARD, build_headers

logger = structlog.get_logger(__name__)


METHOD_HOSTED_API = "hosted_api"
METHOD_DIRECT = "direct"
METHOD_RENDER_TOLERANT = "render_tolerant"
METHOD_DELEGATED = "delegated"


class AcquisitionMethod(ABC):
    """One rung of the fallback ladder."""

    name: str = ""

    def ensure_configured(self) -> None:
        """Raise ConfigurationError if the method cannot run at all."""

    @abstractmethod
    async def attempt(
        self,
        target: AcquisitionTarget,
        strategy: ExtractionStrategy,
        retry: int,
    ) -> NormalizedRecord:
        """Make one attempt.

        Args:
            target: What to acquire
            strategy: Extraction strategy for the target's platform
            retry: Zero-based retry index within this method

        Returns:
            NormalizedRecord (possibly incomplete or partial)

        Raises:
            AcquisitionError: Retryable or not, per the error's ``retryable``
        """

    async def close(self) -> None:
        """Release resources held by the method."""


def _check_payload(payload: str, min_length: int, strategy: ExtractionStrategy, target_url: str):
    """Classify a payload; return a partial record or raise when it is not OK."""
    classification = classify(payload, min_length)
    if classification.verdict is Verdict.TOO_SHORT:
        raise ContentTooShortError(classification.length, min_length)
    if classification.verdict is Verdict.CHALLENGE_DETECTED:
        pattern = classification.matched_pattern or "challenge"
        if strategy.extract_on_challenge:
            try:
                record = strategy.extract(payload, target_url)
            except ExtractionError:
                raise ChallengeDetectedError(pattern)
            metadata = dict(record.metadata)
            metadata["challenge_pattern"] = pattern
            return record.with_flags(partial=True, metadata=metadata)
        raise ChallengeDetectedError(pattern)
    return None


class IntermediaryFetchMethod(AcquisitionMethod):
    """Fetch the page through the healthiest intermediary and extract it.

    Every outcome (transport error, short payload, challenge, success) is
    reported to the intermediary registry.
    """

    def __init__(
        self,
        name: str,
        fetcher: TimedFetcher,
        registry: IntermediaryHealthRegistry,
        deadline_profile: DeadlineProfile,
        header_profile: str = PROFILE_STANDARD,
        settings: Settings = default_settings,
    ):
        self.name = name
        self.fetcher = fetcher
        self.registry = registry
        self.deadline_profile = deadline_profile
        self.header_profile = header_profile
        self.settings = settings
        self.logger = logger.bind(method=name)

    def _fail(
        self,
        intermediary: Optional[Intermediary],
        target: AcquisitionTarget,
        reason: str,
        status_code: Optional[int] = None,
    ) -> None:
        if intermediary is not None:
            self.registry.record_failure(
                intermediary,
                platform_hint=target.platform,
                reason=reason,
                status_code=status_code,
            )

    async def attempt(
        self,
        target: AcquisitionTarget,
        strategy: ExtractionStrategy,
        retry: int,
    ) -> NormalizedRecord:
        intermediary = self.registry.select(platform_hint=target.platform)
        deadline = self.fetcher.deadline_for(intermediary, self.deadline_profile, retry)
        record = AcquisitionAttempt(
            method=self.name,
            intermediary=str(intermediary) if intermediary else None,
        )

        try:
            result = await self.fetcher.fetch(
                target.url,
                intermediary,
                build_headers(self.header_profile),
                deadline,
            )
        except FetchError as e:
            record.outcome = type(e).__name__
            self._fail(intermediary, target, e.message, e.status_code)
            self._log(record, target, retry, deadline)
            raise

        try:
            partial = _check_payload(
                result.payload, self.settings.MIN_VALID_PAYLOAD_LENGTH, strategy, target.url
            )
        except (ContentTooShortError, ChallengeDetectedError) as e:
            record.outcome = type(e).__name__
            self._fail(intermediary, target, e.message)
            self._log(record, target, retry, deadline)
            raise

        if partial is not None:
            # The page was a challenge even though something was extracted
            self._fail(intermediary, target, f"challenge: {partial.metadata['challenge_pattern']}")
            record.outcome = "partial"
            self._log(record, target, retry, deadline)
            return partial

        if intermediary is not None:
            self.registry.record_success(intermediary, result.elapsed, platform_hint=target.platform)

        try:
            extracted = strategy.extract(result.payload, target.url)
        except ExtractionError:
            record.outcome = "extraction_failed"
            self._log(record, target, retry, deadline)
            raise

        record.outcome = "incomplete" if extracted.incomplete else "succeeded"
        self._log(record, target, retry, deadline)
        return extracted

    def _log(self, record: AcquisitionAttempt, target: AcquisitionTarget, retry: int, deadline: float) -> None:
        self.logger.info(
            "acquisition_attempt",
            platform=target.platform,
            intermediary=record.intermediary,
            retry=retry,
            deadline=round(deadline, 2),
            outcome=record.outcome,
            started_at=record.started_at.isoformat(),
        )


class HostedApiMethod(AcquisitionMethod):
    """Ask the hosted structured-data API."""

    name = METHOD_HOSTED_API

    def __init__(self, client: HostedDataApiClient, settings: Settings = default_settings):
        self.client = client
        self.settings = settings

    def ensure_configured(self) -> None:
        self.client.ensure_configured()

    async def attempt(
        self,
        target: AcquisitionTarget,
        strategy: ExtractionStrategy,
        retry: int,
    ) -> NormalizedRecord:
        result = await self.client.fetch(target)
        if result.parsed:
            return self.client.record_from_parsed(
                result.content, target, strategy.currency_for(target.url)
            )

        payload = str(result.content)
        partial = _check_payload(
            payload, self.settings.MIN_VALID_PAYLOAD_LENGTH, strategy, target.url
        )
        if partial is not None:
            return partial
        return strategy.extract(payload, target.url)

    async def close(self) -> None:
        await self.client.close()


class DelegatedMethod(AcquisitionMethod):
    """Hand the whole acquisition to a remote service."""

    name = METHOD_DELEGATED

    def __init__(self, client: DelegatedAcquisitionClient):
        self.client = client

    def ensure_configured(self) -> None:
        self.client.ensure_configured()

    async def attempt(
        self,
        target: AcquisitionTarget,
        strategy: ExtractionStrategy,
        retry: int,
    ) -> NormalizedRecord:
        return await self.client.acquire(target, strategy.currency_for(target.url))

    async def close(self) -> None:
        await self.client.close()


def build_methods(
    settings: Settings,
    registry: IntermediaryHealthRegistry,
    fetcher: TimedFetcher,
    hosted_client: Optional[HostedDataApiClient] = None,
    delegated_client: Optional[DelegatedAcquisitionClient] = None,
    exclude: Iterable[str] = (),
) -> List[AcquisitionMethod]:
    """Build the ranked method list from METHOD_ORDER.

    Args:
        settings: Application settings
        registry: Intermediary registry shared by fetch methods
        fetcher: Timed fetcher shared by fetch methods
        hosted_client: Hosted API client (created from settings if omitted)
        delegated_client: Delegated client (created from settings if omitted)
        exclude: Method names to leave out (the delegated server drops "delegated")

    Returns:
        Methods in ranking order
    """
    excluded = set(exclude)
    methods: List[AcquisitionMethod] = []

    for name in settings.get_method_order():
        if name in excluded:
            continue
        if name == METHOD_HOSTED_API:
            methods.append(HostedApiMethod(hosted_client or HostedDataApiClient(settings), settings))
        elif name == METHOD_DIRECT:
            methods.append(
                IntermediaryFetchMethod(
                    METHOD_DIRECT,
                    fetcher,
                    registry,
                    DeadlineProfile(
                        settings.DIRECT_TIMEOUT_BASE,
                        settings.DIRECT_TIMEOUT_MIN,
                        settings.DIRECT_TIMEOUT_MAX,
                    ),
                    PROFILE_STANDARD,
                    settings,
                )
            )
        elif name == METHOD_RENDER_TOLERANT:
            methods.append(
                IntermediaryFetchMethod(
                    METHOD_RENDER_TOLERANT,
                    fetcher,
                    registry,
                    DeadlineProfile(
                        settings.RENDER_TIMEOUT_BASE,
                        settings.RENDER_TIMEOUT_MIN,
                        settings.RENDER_TIMEOUT_MAX,
                    ),
                    PROFILE_RENDER,
                    settings,
                )
            )
        elif name == METHOD_DELEGATED:
            methods.append(DelegatedMethod(delegated_client or DelegatedAcquisitionClient(settings)))
        else:
            logger.warning("unknown_method_ignored", method=name)

    return methods
