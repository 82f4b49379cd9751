"""Acquisition pipeline: ranked methods, bounded retries, terminal placeholder.

State flow per target::

    METHOD_SELECTION -> ATTEMPTING(method, retry) -> VALIDATING
        -> SUCCEEDED | back to METHOD_SELECTION | EXHAUSTED

Methods run strictly in rank order. A later method never starts before
every earlier one has succeeded, been skipped or run out of retries.
"""

from enum import Enum
from typing import List, Optional, Sequence

import structlog

from pricepulse.config import Settings, settings as default_settings
from pricepulse.core.exceptions import AcquisitionError, ConfigurationError
from pricepulse.scrapers.base import (
    AcquisitionTarget,
    ExtractionStrategy,
    NormalizedRecord,
    unavailable_record,
)
from pricepulse.scrapers.factory import StrategyRegistry
from pricepulse.scrapers.methods import AcquisitionMethod
from pricepulse.scrapers.utils.retry import method_retrying

logger = structlog.get_logger(__name__)


class PipelineState(str, Enum):
    METHOD_SELECTION = "method_selection"
    ATTEMPTING = "attempting"
    VALIDATING = "validating"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


class AcquisitionPipeline:
    """Runs the fallback ladder for one target at a time.

    Every failure is recovered here: run() always returns a record, at worst
    a placeholder flagged ``unavailable``.
    """

    def __init__(
        self,
        methods: Sequence[AcquisitionMethod],
        strategies: StrategyRegistry,
        settings: Settings = default_settings,
    ):
        """Initialize the pipeline.

        Args:
            methods: Methods in ranking order
            strategies: Registry resolving a platform to its extraction strategy
            settings: Retry policy and incomplete-record policy
        """
        self.methods: List[AcquisitionMethod] = list(methods)
        self.strategies = strategies
        self.settings = settings
        self.logger = logger.bind(component="pipeline")

    async def run(self, target: AcquisitionTarget) -> NormalizedRecord:
        """Acquire a record for a target.

        Args:
            target: What to acquire

        Returns:
            The first acceptable record, the best held incomplete record, or
            an unavailable placeholder
        """
        strategy = self.strategies.strategy_for(target.platform)
        held: Optional[NormalizedRecord] = None
        tried: List[str] = []
        log = self.logger.bind(platform=target.platform, kind=target.kind)

        for method in self.methods:
            log.debug("pipeline_state", state=PipelineState.METHOD_SELECTION.value, method=method.name)

            try:
                method.ensure_configured()
            except ConfigurationError as e:
                log.info("method_skipped", method=method.name, reason=e.message)
                continue

            tried.append(method.name)
            try:
                record = await self._run_method(method, target, strategy)
            except ConfigurationError as e:
                log.warning("method_skipped", method=method.name, reason=e.message)
                continue
            except AcquisitionError as e:
                log.info(
                    "method_exhausted",
                    method=method.name,
                    error_type=type(e).__name__,
                    error=e.message,
                )
                continue
            except Exception as e:
                log.error(
                    "method_crashed",
                    method=method.name,
                    error=str(e),
                    exc_info=True,
                )
                continue

            log.debug("pipeline_state", state=PipelineState.VALIDATING.value, method=method.name)
            if record.incomplete and not self.settings.ACCEPT_INCOMPLETE_RECORDS:
                log.info("incomplete_record_held", method=method.name)
                if held is None:
                    held = record
                continue

            log.info(
                "acquisition_succeeded",
                state=PipelineState.SUCCEEDED.value,
                method=method.name,
                incomplete=record.incomplete,
                partial=record.partial,
                estimated=record.estimated,
            )
            return record

        if held is not None:
            log.info("acquisition_returned_incomplete", methods_tried=tried)
            return held

        log.warning("acquisition_exhausted", state=PipelineState.EXHAUSTED.value, methods_tried=tried)
        return unavailable_record(target, tried, strategy.currency_for(target.url))

    async def _run_method(
        self,
        method: AcquisitionMethod,
        target: AcquisitionTarget,
        strategy: ExtractionStrategy,
    ) -> NormalizedRecord:
        """Run one method with bounded retries.

        Raises:
            AcquisitionError: The last error once retries are spent, or the
                first non-retryable error
        """
        retrying = method_retrying(
            self.settings.MAX_RETRIES,
            self.settings.BACKOFF_BASE_SECONDS,
            self.settings.BACKOFF_MAX_SECONDS,
        )

        async for attempt in retrying:
            with attempt:
                retry_index = attempt.retry_state.attempt_number - 1
                self.logger.debug(
                    "pipeline_state",
                    state=PipelineState.ATTEMPTING.value,
                    method=method.name,
                    retry=retry_index,
                )
                record = await method.attempt(target, strategy, retry_index)

        return record

    async def close(self) -> None:
        for method in self.methods:
            await method.close()
