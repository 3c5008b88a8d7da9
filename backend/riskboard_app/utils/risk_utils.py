import math
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..schemas import (
    PredictionOut, RationaleItem, RiskBars, RiskCounts, StudentOut, StudentWithPrediction
)

class RiskTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        # display order: high first
        return TIER_ORDER.index(self)

TIER_ORDER: Tuple[RiskTier, ...] = (RiskTier.HIGH, RiskTier.MEDIUM, RiskTier.LOW)

NUDGE_RULES: Tuple[Tuple[str, str], ...] = (
    ("attendance", "Attendance is impacting your score. Aim for full attendance next week."),
    ("gpa", "Maintain consistent study blocks to keep your GPA strong."),
    ("submissions", "Submit assignments ahead of deadlines to reduce risk."),
)

def parse_tier(level: Optional[str]) -> Optional[RiskTier]:
    if level is None:
        return None
    try:
        return RiskTier(level)
    except ValueError:
        return None

def tier_of(item: StudentWithPrediction) -> Optional[RiskTier]:
    if item.prediction is None:
        return None
    return parse_tier(item.prediction.risk_level)

def display_tier(item: StudentWithPrediction) -> RiskTier:
    """Tier used for ordering the student table.

    Students with no prediction, or with a tier outside high/medium/low, are
    ranked together with low-risk students.
    """
    tier = tier_of(item)
    if tier is None:
        return RiskTier.LOW
    return tier

# ---------------- latest prediction per student ----------------
def latest_predictions(predictions: Iterable) -> Dict[int, object]:
    """Most recent prediction per student id.

    A later-dated prediction replaces the current pick; on equal dates the
    first one seen is kept, so feeding rows newest-first gives a stable result.
    """
    latest: Dict[int, object] = {}
    for pred in predictions:
        current = latest.get(pred.student_id)
        if current is None or _is_newer(pred.prediction_date, current.prediction_date):
            latest[pred.student_id] = pred
    return latest

def _is_newer(candidate, current) -> bool:
    if candidate is None:
        return False
    if current is None:
        return True
    return candidate > current

def attach_predictions(students: Sequence, predictions: Iterable) -> List[StudentWithPrediction]:
    latest = latest_predictions(predictions)
    out: List[StudentWithPrediction] = []
    for s in students:
        pred = latest.get(s.id)
        out.append(StudentWithPrediction(
            student=StudentOut.model_validate(s),
            prediction=PredictionOut.model_validate(pred) if pred is not None else None,
        ))
    return out

# ---------------- aggregation + ordering ----------------
def count_risk_tiers(items: Iterable[StudentWithPrediction]) -> RiskCounts:
    counts = {tier: 0 for tier in TIER_ORDER}
    for item in items:
        tier = tier_of(item)
        if tier is not None:
            counts[tier] += 1
    return RiskCounts(high=counts[RiskTier.HIGH], medium=counts[RiskTier.MEDIUM], low=counts[RiskTier.LOW])

def risk_bars(counts: RiskCounts) -> RiskBars:
    # floor of 1 keeps an all-zero chart at 0% instead of dividing by zero
    top = max(counts.high, counts.medium, counts.low, 1)
    return RiskBars(
        high=counts.high / top * 100,
        medium=counts.medium / top * 100,
        low=counts.low / top * 100,
    )

def sort_by_risk(items: Sequence[StudentWithPrediction]) -> List[StudentWithPrediction]:
    # sorted() is stable: equal tiers keep their incoming (name) order
    return sorted(items, key=lambda item: display_tier(item).rank)

# ---------------- rationale ----------------
def rank_rationale(rationale: Optional[Dict[str, float]]) -> List[Tuple[str, float]]:
    """Factors by descending weight; equal weights keep insertion order, NaN goes last."""
    if not rationale:
        return []
    return sorted(rationale.items(), key=lambda kv: _rank_key(kv[1]))

def _rank_key(weight) -> float:
    w = float(weight)
    if math.isnan(w):
        return math.inf
    return -w

def weight_percent(weight) -> int:
    w = float(weight)
    if math.isnan(w):
        return 0
    if math.isinf(w):
        return 100 if w > 0 else 0
    return max(0, min(100, round(w * 100)))

def weight_bar_width(weight) -> float:
    w = float(weight)
    if math.isnan(w):
        return 0.0
    return max(0.0, min(100.0, w * 100))

def factor_label(factor: str) -> str:
    return factor.replace("_", " ")

def rationale_items(rationale: Optional[Dict[str, float]]) -> List[RationaleItem]:
    return [
        RationaleItem(
            factor=factor,
            label=factor_label(factor),
            weight=float(weight),
            percent=weight_percent(weight),
            bar_width=weight_bar_width(weight),
        )
        for factor, weight in rank_rationale(rationale)
    ]

# ---------------- nudges ----------------
def nudge_for(factor: str) -> str:
    # first matching keyword wins; matching is case-sensitive
    for keyword, message in NUDGE_RULES:
        if keyword in factor:
            return message
    return f"Focus on improving {factor_label(factor)} this week."

def generate_nudges(rationale: Optional[Dict[str, float]], limit: int = 3) -> List[str]:
    return [nudge_for(factor) for factor, _ in rank_rationale(rationale)[:limit]]
