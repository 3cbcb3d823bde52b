"""
AnalysisService - one entry point per analysis run.

Usage:
    service = AnalysisService(ProfileRepository(engine), PredictionStore(engine), client)
    run = await service.run_analysis("cross_sell")
    print(run.summary())

    stored = await service.results(PredictionFilter(analysis_type="cross_sell"))
    segment = await service.custom_segment("Kasko owners in İzmir without Trafik")
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .cancellation import CancellationReport, analyze_cancellations
from .churn import ChurnEngine
from .config import DEFAULT_CONFIG, ScoringConfig
from .cross_sell import CrossSellEngine
from .errors import LLMUnavailableError, NoProfilesError, SegmentParseError
from .llm import SEGMENT_SYSTEM_PROMPT, InsightClient, build_prompt, build_segment_prompt
from .models import AnalysisType, CustomSegment, Prediction, PredictionFilter
from .parsing import parse_predictions_text, parse_segment_text
from .profiles import select_segment
from .runlog import RunLogger
from .store import PredictionStore, ProfileRepository

logger = logging.getLogger("insights.service")

MIN_CRITERIA_LENGTH = 10


@dataclass
class AnalysisRun:
    """Outcome of one run_analysis call."""

    run_id: str
    analysis_type: str
    engine: str
    timestamp: datetime
    duration_seconds: float = 0.0
    profile_count: int = 0
    prediction_count: int = 0
    parse_strategy: Optional[str] = None
    dropped_records: int = 0
    hashtag_updates: int = 0
    failed_hashtag_updates: int = 0
    predictions: list[Prediction] = field(default_factory=list, repr=False)

    def summary(self) -> str:
        """Human-readable summary."""
        lines = [
            f"[{self.run_id}] {self.analysis_type} ({self.engine})",
            f"  Profiles:    {self.profile_count}",
            f"  Predictions: {self.prediction_count}",
        ]
        if self.engine == "llm":
            lines.append(f"  Parse:       {self.parse_strategy or 'failed'} ({self.dropped_records} dropped)")
        if self.analysis_type == AnalysisType.CHURN.value:
            lines.append(
                f"  Tag updates: {self.hashtag_updates} ({self.failed_hashtag_updates} failed)"
            )
        lines.append(f"  Duration:    {self.duration_seconds:.2f}s")
        return "\n".join(lines)


class AnalysisService:
    """
    Runs an analysis type end to end and persists the result.

    Rule-based types use the local engines; the others go through the model
    client and the parse chain. Every successful run replaces the stored
    predictions of its type in one transaction.
    """

    def __init__(
        self,
        profiles: ProfileRepository,
        store: PredictionStore,
        client: Optional[InsightClient] = None,
        config: Optional[ScoringConfig] = None,
        runlog: Optional[RunLogger] = None,
        sample_size: int = 200,
    ):
        self.profiles = profiles
        self.store = store
        self.client = client
        self.config = config or DEFAULT_CONFIG
        self.runlog = runlog
        self.sample_size = sample_size
        self.cross_sell = CrossSellEngine(self.config)
        self.churn = ChurnEngine(self.config)

    def generate_run_id(self) -> str:
        """Generate unique run ID: run_YYYYMMDD_XXXX"""
        date_str = datetime.now().strftime("%Y%m%d")
        short_uuid = uuid.uuid4().hex[:4]
        return f"run_{date_str}_{short_uuid}"

    async def run_analysis(
        self,
        analysis_type: AnalysisType | str,
        timeout: Optional[float] = None,
    ) -> AnalysisRun:
        """
        Generate and store predictions for one analysis type.

        Args:
            analysis_type: AnalysisType or its string value
            timeout: Per-call model timeout override (LLM types only)

        Raises:
            ValueError: unknown analysis type
            LLMUnavailableError: LLM-only type and no client configured
            NoProfilesError: the profile repository is empty
        """
        analysis_type = AnalysisType.parse(analysis_type)
        if not analysis_type.is_rule_based and self.client is None:
            raise LLMUnavailableError(
                f"{analysis_type.value} analysis needs a model client (no API key configured)"
            )

        run = AnalysisRun(
            run_id=self.generate_run_id(),
            analysis_type=analysis_type.value,
            engine="rules" if analysis_type.is_rule_based else "llm",
            timestamp=datetime.now(),
        )
        try:
            await self._execute(run, analysis_type, timeout)
        except Exception as e:
            if self.runlog is not None:
                self.runlog.log_failure(run.run_id, analysis_type.value, str(e))
            raise

        run.duration_seconds = (datetime.now() - run.timestamp).total_seconds()
        if self.runlog is not None:
            self.runlog.log_run(run)
        logger.info(
            "%s run %s: %d predictions in %.2fs",
            run.analysis_type, run.run_id, run.prediction_count, run.duration_seconds,
        )
        return run

    async def _execute(
        self,
        run: AnalysisRun,
        analysis_type: AnalysisType,
        timeout: Optional[float],
    ) -> None:
        profiles = await self.profiles.list_profiles()
        if not profiles:
            raise NoProfilesError("no customer profiles to analyse")
        run.profile_count = len(profiles)

        if analysis_type is AnalysisType.CROSS_SELL:
            predictions = self.cross_sell.generate(profiles)
        elif analysis_type is AnalysisType.CHURN:
            stats = await self.profiles.cancellation_stats()
            outcome = await self.churn.generate_outcome(profiles, stats, self.profiles)
            predictions = outcome.predictions
            run.hashtag_updates = len(outcome.updated) + len(outcome.failed)
            run.failed_hashtag_updates = len(outcome.failed)
        else:
            prompt = build_prompt(analysis_type, profiles, self.sample_size)
            text = await self.client.complete(prompt, timeout=timeout)
            parsed = parse_predictions_text(text, analysis_type, self.config)
            run.parse_strategy = parsed.strategy
            run.dropped_records = parsed.dropped
            if not parsed.ok:
                # Unreadable output keeps the previously stored batch
                logger.warning(
                    "%s: model output unparseable, stored predictions left unchanged",
                    analysis_type.value,
                )
                return
            predictions = parsed.predictions

        run.prediction_count = await self.store.replace_all(analysis_type, predictions)
        run.predictions = predictions

    async def results(self, flt: Optional[PredictionFilter] = None) -> list[Prediction]:
        return await self.store.query(flt)

    async def customer_predictions(self, customer_id: str) -> list[Prediction]:
        return await self.store.for_customer(customer_id)

    async def cancellation_report(self) -> CancellationReport:
        """Portfolio cancellation KPIs from the stored policy records."""
        return analyze_cancellations(await self.profiles.load_policy_records())

    async def custom_segment(self, criteria: str, timeout: Optional[float] = None) -> CustomSegment:
        """
        Let the model define a segment for free-text criteria and select it.

        The model proposes a title, an insight and a filter; the filter is
        validated and applied to every stored profile. Nothing is persisted.

        Raises:
            ValueError: criteria shorter than MIN_CRITERIA_LENGTH
            LLMUnavailableError: no client configured
            NoProfilesError: the profile repository is empty
            SegmentParseError: the answer has no usable segment object
        """
        criteria = (criteria or "").strip()
        if len(criteria) < MIN_CRITERIA_LENGTH:
            raise ValueError(f"segment criteria need at least {MIN_CRITERIA_LENGTH} characters")
        if self.client is None:
            raise LLMUnavailableError("custom segments need a model client (no API key configured)")

        profiles = await self.profiles.list_profiles()
        if not profiles:
            raise NoProfilesError("no customer profiles to analyse")

        prompt = build_segment_prompt(criteria, profiles)
        text = await self.client.complete(prompt, timeout=timeout, system=SEGMENT_SYSTEM_PROMPT)
        parsed = parse_segment_text(text, criteria)
        if not parsed.ok:
            raise SegmentParseError(
                "model output is not a usable segment: "
                + "; ".join(str(e) for e in parsed.errors)
            )

        segment = parsed.segment
        selected = select_segment(profiles, segment.filters, self.config)
        segment.customer_ids = selected["CUSTOMER_ID"].tolist()
        logger.info(
            "custom segment %r: %d of %d profiles", segment.title, segment.customer_count, len(profiles)
        )
        return segment
