"""Productivity pattern analysis.

Turns the aggregated hour/weekday grid and duration buckets into a scored
heatmap, an optimal session length and suggested times to focus.
"""

import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..utils.datetime import DAY_NAMES, format_hour
from .aggregation import DurationBucket, HourWeekdayBucket

TIE_TOLERANCE = 1e-9


@dataclass
class HeatmapCell:
    """Scored (day of week, hour) cell"""
    day_of_week: int
    hour: int
    session_count: int
    total_minutes: int
    average_focus_minutes: float
    average_quality: float
    focus_score: float  # 0-1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'day_of_week': self.day_of_week,
            'hour': self.hour,
            'session_count': self.session_count,
            'total_minutes': self.total_minutes,
            'average_focus_minutes': self.average_focus_minutes,
            'average_quality': self.average_quality,
            'focus_score': self.focus_score,
        }


@dataclass
class OptimalSessionLength:
    """Recommended session length and how it was chosen"""
    recommended_minutes: int
    basis: str  # "quality", "historical_mean" or "default"
    bucket_label: Optional[str] = None
    average_quality: float = 0.0
    weighted_quality: float = 0.0
    sample_size: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'recommended_minutes': self.recommended_minutes,
            'basis': self.basis,
            'bucket_label': self.bucket_label,
            'average_quality': self.average_quality,
            'weighted_quality': self.weighted_quality,
            'sample_size': self.sample_size,
        }


@dataclass
class SuggestedTime:
    day_of_week: int
    hour: int
    score: float
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'day_of_week': self.day_of_week,
            'hour': self.hour,
            'score': self.score,
            'label': self.label,
        }


@dataclass
class SessionSuggestion:
    """Suggested duration and best times for the next session"""
    suggested_duration_minutes: int
    confidence: float
    confidence_label: str
    reason: str
    alternative_times: List[SuggestedTime] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'suggested_duration_minutes': self.suggested_duration_minutes,
            'confidence': self.confidence,
            'confidence_label': self.confidence_label,
            'reason': self.reason,
            'alternative_times': [t.to_dict() for t in self.alternative_times],
        }


def _normalize(values: List[float]) -> List[float]:
    """Max-normalize values; all zeros when the max is 0 or every value is equal."""
    if not values:
        return []
    highest = max(values)
    if highest <= 0 or min(values) == highest:
        return [0.0] * len(values)
    return [value / highest for value in values]


def score_heatmap(buckets: Sequence[HourWeekdayBucket],
                  quality_weight: float = 0.7,
                  volume_weight: float = 0.3) -> List[HeatmapCell]:
    """Score every cell of the hour/weekday grid.

    ``focus_score = quality_weight * quality / max_quality
    + volume_weight * minutes / max_minutes``, both maxima taken across the
    cells passed in. Cells with no sessions stay in the result with score 0.
    """
    quality = _normalize([b.average_quality for b in buckets])
    volume = _normalize([float(b.total_minutes) for b in buckets])

    return [
        HeatmapCell(
            day_of_week=bucket.day_of_week,
            hour=bucket.hour,
            session_count=bucket.session_count,
            total_minutes=bucket.total_minutes,
            average_focus_minutes=bucket.average_minutes,
            average_quality=bucket.average_quality,
            focus_score=quality_weight * q + volume_weight * v,
        )
        for bucket, q, v in zip(buckets, quality, volume)
    ]


def _bucket_midpoint(buckets: Sequence[DurationBucket], index: int) -> float:
    bucket = buckets[index]
    if bucket.upper is not None:
        return (bucket.lower + bucket.upper) / 2
    if index == 0:
        return float(bucket.lower)
    previous_width = bucket.lower - buckets[index - 1].lower
    return bucket.lower + previous_width / 2


def _round_minutes(value: float) -> int:
    return int(math.floor(value + 0.5))


def recommend_session_length(buckets: Sequence[DurationBucket],
                             mean_session_length: float = 0.0,
                             confidence_samples: int = 5,
                             fallback_minutes: int = 25) -> OptimalSessionLength:
    """Pick the duration bucket whose sessions were rated best.

    Each bucket's mean quality is shrunk by its rated sample size,
    ``quality * n / (n + confidence_samples)``, so a single 5-star session
    cannot outrank a long track record at 4.5. The winner's midpoint is the
    recommendation.

    Args:
        buckets: Output of ``distribution_by_duration_range``
        mean_session_length: Historical mean session length, used for ties
            and as the fallback when nothing was rated
        confidence_samples: Shrinkage constant ``k``
        fallback_minutes: Recommendation when there is no history at all
    """
    best_index: Optional[int] = None
    best_score = 0.0

    for index, bucket in enumerate(buckets):
        if bucket.rated_count == 0:
            continue
        n = bucket.rated_count
        score = bucket.average_quality * n / (n + confidence_samples)

        if best_index is None or score > best_score + TIE_TOLERANCE:
            best_index, best_score = index, score
        elif abs(score - best_score) <= TIE_TOLERANCE and mean_session_length > 0:
            current_gap = abs(_bucket_midpoint(buckets, best_index) - mean_session_length)
            gap = abs(_bucket_midpoint(buckets, index) - mean_session_length)
            if gap < current_gap:
                best_index, best_score = index, score

    if best_index is None:
        if mean_session_length > 0:
            return OptimalSessionLength(
                recommended_minutes=_round_minutes(mean_session_length),
                basis="historical_mean",
            )
        return OptimalSessionLength(recommended_minutes=fallback_minutes, basis="default")

    best = buckets[best_index]
    return OptimalSessionLength(
        recommended_minutes=_round_minutes(_bucket_midpoint(buckets, best_index)),
        basis="quality",
        bucket_label=best.label,
        average_quality=best.average_quality,
        weighted_quality=best_score,
        sample_size=best.rated_count,
    )


def confidence_label(score: float) -> str:
    """Map a 0-1 confidence score to its display tier."""
    if score >= 0.8:
        return "High"
    if score >= 0.6:
        return "Medium"
    if score >= 0.4:
        return "Low"
    return "Very Low"


def _slot_label(day_of_week: int, hour: int) -> str:
    return f"{DAY_NAMES[day_of_week]} {format_hour(hour)}"


def suggest_session_times(cells: Sequence[HeatmapCell],
                          optimal: OptimalSessionLength,
                          count: int = 2) -> SessionSuggestion:
    """Suggest the best tested times to schedule a session.

    Only cells with at least one session are candidates; when fewer than
    ``count`` qualify, the shorter list is returned as is.
    """
    tested = [cell for cell in cells if cell.session_count > 0]
    ranked = sorted(tested, key=lambda c: (-c.focus_score, c.day_of_week, c.hour))[:count]

    times = [
        SuggestedTime(
            day_of_week=cell.day_of_week,
            hour=cell.hour,
            score=cell.focus_score,
            label=_slot_label(cell.day_of_week, cell.hour),
        )
        for cell in ranked
    ]

    if not times:
        return SessionSuggestion(
            suggested_duration_minutes=optimal.recommended_minutes,
            confidence=0.0,
            confidence_label=confidence_label(0.0),
            reason="Log a few more sessions to get time-of-day suggestions.",
        )

    best = ranked[0]
    reason = (
        f"{times[0].label} is your strongest slot "
        f"({best.session_count} session{'s' if best.session_count != 1 else ''}, "
        f"average quality {best.average_quality:.1f})"
    )
    if optimal.basis == "quality":
        reason += f"; {optimal.bucket_label} minute sessions rate best for you"
    reason += "."

    return SessionSuggestion(
        suggested_duration_minutes=optimal.recommended_minutes,
        confidence=best.focus_score,
        confidence_label=confidence_label(best.focus_score),
        reason=reason,
        alternative_times=times,
    )


def peak_hours(cells: Sequence[HeatmapCell], limit: int = 3) -> List[int]:
    """Hours of day ranked by summed focus score across the week."""
    by_hour: Dict[int, float] = defaultdict(float)
    for cell in cells:
        by_hour[cell.hour] += cell.focus_score

    ranked = sorted((h for h, score in by_hour.items() if score > 0),
                    key=lambda h: (-by_hour[h], h))
    return ranked[:limit]
