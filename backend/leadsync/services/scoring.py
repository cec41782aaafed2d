"""Lead heat scoring: interaction weights, heat classification and trends."""

import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Optional, Tuple

from pydantic import BaseModel

from leadsync.schemas.social_media import InteractionType, LeadHeat

logger = logging.getLogger(__name__)


# Engagement weight per interaction type
INTERACTION_WEIGHTS: Dict[str, int] = {
    InteractionType.SOCIAL_FOLLOW.value: 1,
    InteractionType.SOCIAL_LIKE.value: 1,
    InteractionType.SOCIAL_COMMENT.value: 2,
    InteractionType.SOCIAL_MESSAGE.value: 3,
    InteractionType.WEBSITE_VISIT.value: 2,
    InteractionType.EMAIL_OPEN.value: 1,
    InteractionType.EMAIL_CLICK.value: 2,
    InteractionType.INFO_REQUEST.value: 5,
    InteractionType.PHONE_CALL.value: 5,
    InteractionType.PRICE_QUOTE.value: 8,
    InteractionType.MEETING.value: 8,
    InteractionType.SITE_VISIT.value: 10,
    InteractionType.OTHER.value: 1,
}

# Heat thresholds: COLD <= 5 < WARM <= 15 < HOT
WARM_MIN_SCORE = 6
HOT_MIN_SCORE = 16


class AdvancedScoringConfig(BaseModel):
    """Time-aware scoring knobs."""
    time_decay_enabled: bool = True
    time_decay_half_life_days: float = 30.0
    recency_boost_enabled: bool = True
    recency_boost_window_days: float = 7.0
    recency_boost_multiplier: float = 1.5
    frequency_boost_enabled: bool = True
    frequency_boost_threshold: int = 3
    frequency_boost_multiplier: float = 1.3


class HeatTrend(BaseModel):
    trend: str  # up | down | stable
    percentage: int
    description: str


class ScoringEngine:
    """
    Pure scoring functions. Nothing here touches storage.
    """

    WEIGHTS = INTERACTION_WEIGHTS

    @staticmethod
    def weight_for(interaction_type: Any) -> int:
        """Weight of one interaction type; unknown values weigh 0."""
        if isinstance(interaction_type, InteractionType):
            key = interaction_type.value
        elif isinstance(interaction_type, str):
            key = interaction_type.strip().upper()
        else:
            return 0
        return INTERACTION_WEIGHTS.get(key, 0)

    @staticmethod
    def score(interaction_types: Iterable[Any]) -> int:
        """Sum of interaction weights. Order-independent; empty input scores 0."""
        return sum(ScoringEngine.weight_for(t) for t in interaction_types)

    @staticmethod
    def classify(score: float) -> LeadHeat:
        if score >= HOT_MIN_SCORE:
            return LeadHeat.HOT
        if score >= WARM_MIN_SCORE:
            return LeadHeat.WARM
        return LeadHeat.COLD

    @staticmethod
    def score_and_classify(interaction_types: Iterable[Any]) -> Tuple[int, LeadHeat]:
        score = ScoringEngine.score(interaction_types)
        return score, ScoringEngine.classify(score)

    @staticmethod
    def weighted_score(
        events: Iterable[Tuple[Any, Optional[datetime]]],
        config: Optional[AdvancedScoringConfig] = None,
        now: Optional[datetime] = None,
    ) -> float:
        """
        Time-aware score over (type, created_at) pairs.

        Each weight decays exponentially with age (half-life), recent events
        get a recency multiplier, and the whole total is boosted when the
        past week holds at least `frequency_boost_threshold` events.
        Events without a timestamp count as happening `now`.
        """
        config = config or AdvancedScoringConfig()
        now = now or datetime.utcnow()
        events = list(events)

        total = 0.0
        recent_count = 0
        week_ago = now - timedelta(days=7)

        for interaction_type, created_at in events:
            weight = float(ScoringEngine.weight_for(interaction_type))
            created_at = created_at or now
            age_days = max((now - created_at).total_seconds() / 86400, 0.0)

            if config.time_decay_enabled and config.time_decay_half_life_days > 0:
                weight *= math.pow(0.5, age_days / config.time_decay_half_life_days)

            if config.recency_boost_enabled and age_days <= config.recency_boost_window_days:
                weight *= config.recency_boost_multiplier

            if created_at >= week_ago:
                recent_count += 1

            total += weight

        if config.frequency_boost_enabled and recent_count >= config.frequency_boost_threshold:
            total *= config.frequency_boost_multiplier

        return round(total, 2)

    @staticmethod
    def heat_trend(current_score: float, previous_score: float) -> HeatTrend:
        if previous_score == 0:
            return HeatTrend(trend="up", percentage=100, description="New lead")

        difference = current_score - previous_score
        percentage = round(abs(difference) / previous_score * 100)

        if abs(difference) < 0.5:
            return HeatTrend(trend="stable", percentage=0, description="No significant change")
        if difference > 0:
            return HeatTrend(trend="up", percentage=percentage, description=f"Engagement up {percentage}%")
        return HeatTrend(trend="down", percentage=percentage, description=f"Engagement down {percentage}%")
