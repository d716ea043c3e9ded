from __future__ import annotations

import logging
import math
from typing import Iterable, Optional

from data.models import (
    SDT_CATEGORIES,
    SDT_CORRECT_REJECTION,
    SDT_FALSE_ALARM,
    SDT_HIT,
    SDT_MISS,
    STIMULUS_VISUAL,
    AggregateMetrics,
    TrialOutcome,
)


logger = logging.getLogger(__name__)

Z_CLAMP = 3.719
P_LOW = 0.0001
P_HIGH = 0.9999

# Beasley-Springer-Moro coefficients
_A = (2.50662823884, -18.61500062529, 41.39119773534, -25.44106049637)
_B = (-8.47351093090, 23.08336743743, -21.06224101826, 3.13082909833)
_C = (
    0.3374754822726147,
    0.9761690190917186,
    0.1607979714918209,
    0.0276438810333863,
    0.0038405729373609,
    0.0003951896511919,
    0.0000321767881768,
    0.0000002888167364,
    0.0000003960315187,
)


def inv_normal(p: float) -> float:
    """Standard normal quantile, clamped to +-3.719 outside [0.0001, 0.9999]."""
    if p <= P_LOW:
        return -Z_CLAMP
    if p >= P_HIGH:
        return Z_CLAMP

    y = p - 0.5
    if abs(y) < 0.42:
        r = y * y
        num = ((_A[3] * r + _A[2]) * r + _A[1]) * r + _A[0]
        den = (((_B[3] * r + _B[2]) * r + _B[1]) * r + _B[0]) * r + 1.0
        return y * num / den

    r = p if y < 0 else 1.0 - p
    s = math.log(-math.log(r))
    x = 0.0
    for coef in reversed(_C):
        x = x * s + coef
    return -x if y < 0 else x


def correct_extreme_rate(rate: float, n: int) -> float:
    """Log-linear fix for rates of exactly 0 or 1, which have no finite z-score."""
    if n <= 0:
        return rate
    if rate == 0.0:
        return 0.5 / n
    if rate == 1.0:
        return (n - 0.5) / n
    return rate


class MetricsAggregator:
    def __init__(self) -> None:
        self._counts = {category: 0 for category in SDT_CATEGORIES}
        self.processed: int = 0
        self._rt_sum: int = 0
        self._rt_n: int = 0
        self._final: Optional[AggregateMetrics] = None

    @property
    def is_finalized(self) -> bool:
        return self._final is not None

    def counts(self) -> dict[str, int]:
        return dict(self._counts)

    def update(self, category: str) -> None:
        if self._final is not None:
            raise RuntimeError("metrics already finalized")
        self.processed += 1
        if category in self._counts:
            self._counts[category] += 1
        self._warn_if_inconsistent()

    def add_outcome(self, outcome: TrialOutcome) -> None:
        self.update(outcome.sdt_category)
        rt = outcome.reaction_time_ms
        if outcome.response is not None and rt is not None and rt > 0:
            self._rt_sum += rt
            self._rt_n += 1

    def consistency_error(self) -> Optional[str]:
        tallied = sum(self._counts.values())
        if tallied == self.processed:
            return None
        return f"category counts sum to {tallied} but {self.processed} outcomes were processed"

    def _warn_if_inconsistent(self) -> None:
        problem = self.consistency_error()
        if problem is not None:
            logger.warning("SDT tally mismatch: %s", problem)

    def average_reaction_time_ms(self) -> Optional[int]:
        if self._rt_n == 0:
            return None
        return int(round(self._rt_sum / self._rt_n))

    def finalize(self) -> AggregateMetrics:
        if self._final is not None:
            return self._final
        self._warn_if_inconsistent()

        hits = self._counts[SDT_HIT]
        misses = self._counts[SDT_MISS]
        false_alarms = self._counts[SDT_FALSE_ALARM]
        correct_rejections = self._counts[SDT_CORRECT_REJECTION]
        signal_trials = hits + misses
        noise_trials = false_alarms + correct_rejections

        hit_rate = hits / signal_trials if signal_trials else 0.0
        fa_rate = false_alarms / noise_trials if noise_trials else 0.0
        corrected_hit = correct_extreme_rate(hit_rate, signal_trials)
        corrected_fa = correct_extreme_rate(fa_rate, noise_trials)

        if signal_trials == 0 or noise_trials == 0:
            z_hit = z_fa = 0.0
            d_prime = criterion = 0.0
        else:
            z_hit = inv_normal(corrected_hit)
            z_fa = inv_normal(corrected_fa)
            d_prime = round(z_hit - z_fa, 4)
            criterion = round(-0.5 * (z_hit + z_fa), 4)

        self._final = AggregateMetrics(
            hits=hits,
            misses=misses,
            false_alarms=false_alarms,
            correct_rejections=correct_rejections,
            hit_rate=hit_rate,
            false_alarm_rate=fa_rate,
            corrected_hit_rate=corrected_hit,
            corrected_false_alarm_rate=corrected_fa,
            z_hit=z_hit,
            z_false_alarm=z_fa,
            d_prime=d_prime,
            criterion=criterion,
            average_reaction_time_ms=self.average_reaction_time_ms(),
        )
        logger.info(
            "Run metrics: H=%d M=%d FA=%d CR=%d d'=%.4f c=%.4f",
            hits,
            misses,
            false_alarms,
            correct_rejections,
            d_prime,
            criterion,
        )
        return self._final


def summarize_outcomes(outcomes: Iterable[TrialOutcome]) -> dict:
    outcomes = list(outcomes)
    agg = MetricsAggregator()
    for outcome in outcomes:
        agg.add_outcome(outcome)
    metrics = agg.finalize()
    visual = sum(1 for o in outcomes if o.spec.stimulus_type == STIMULUS_VISUAL)
    return {
        "total_trials": len(outcomes),
        "hits": metrics.hits,
        "misses": metrics.misses,
        "false_alarms": metrics.false_alarms,
        "correct_rejections": metrics.correct_rejections,
        "avg_reaction_time": metrics.average_reaction_time_ms,
        "visual_trials": visual,
        "audio_trials": len(outcomes) - visual,
        "d_prime": metrics.d_prime,
        "criterion": metrics.criterion,
    }
