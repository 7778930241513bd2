"""Vendor trust-score rules.

Pure functions for initializing, updating and interpreting the reputation
score attached to accounts. Nothing here touches the database: callers read
the current values, ask the engine for the new ones and persist the result
(see ``services.account_service.write_trust_score``).

Scores live in ``[1.0, 5.0]`` with one decimal. A review blends into the
existing score as an exponentially weighted moving average so one review
cannot swing an established reputation; the first review sets the score
outright.
"""
import math
from collections.abc import Mapping
from typing import Any, Callable, Iterable, Iterator, NamedTuple, Optional

from exceptions import InvalidAdjustmentError, InvalidRatingError, InvalidScoreError
from models import Role, TrustTier

MIN_SCORE = 1.0
MAX_SCORE = 5.0
VENDOR_INITIAL_SCORE = 3.0
DEFAULT_INITIAL_SCORE = 4.0

# Weight kept by the existing score when a new rating arrives
HISTORY_WEIGHT = 0.7
RATING_WEIGHT = 0.3

LOW_TRUST_WARNING_BELOW = 3.0

TIER_THRESHOLDS = (
    (4.5, TrustTier.HIGHLY_TRUSTED),
    (3.5, TrustTier.TRUSTED),
    (2.5, TrustTier.MODERATE_TRUST),
)

TIER_LABELS = {
    TrustTier.HIGHLY_TRUSTED: "Highly Trusted",
    TrustTier.TRUSTED: "Trusted",
    TrustTier.MODERATE_TRUST: "Moderate Trust",
    TrustTier.LOW_TRUST: "Low Trust",
}

TIER_BADGES = {
    TrustTier.HIGHLY_TRUSTED: "success",
    TrustTier.TRUSTED: "default",
    TrustTier.MODERATE_TRUST: "warning",
    TrustTier.LOW_TRUST: "destructive",
}

TRUST_LEVELS = {
    1: "New user - Limited access",
    2: "Basic user - Standard access",
    3: "Verified user - Enhanced access",
    4: "Trusted user - Premium access",
    5: "Elite user - Full access",
}


class TrustUpdate(NamedTuple):
    """New values produced by a review, to be persisted by the caller."""

    new_score: float
    new_review_count: int


def round_score(value: float) -> float:
    """Round half-up to one decimal place."""
    return math.floor(value * 10 + 0.5) / 10


def _check_score(score: float) -> None:
    if not MIN_SCORE <= score <= MAX_SCORE:
        raise InvalidScoreError(f"Trust score must be between {MIN_SCORE} and {MAX_SCORE}, got {score}")


def initial_score(role: Role | str) -> float:
    """Return the score a freshly registered account starts with.

    Vendors start unproven and have to earn their way up through reviews;
    customers and admins are not publicly rated and start trusted.
    """
    return VENDOR_INITIAL_SCORE if Role(role) is Role.VENDOR else DEFAULT_INITIAL_SCORE


def validate_rating(rating: Any) -> int:
    """Return ``rating`` if it is an integer in 1..5, else raise."""
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise InvalidRatingError(f"Rating must be an integer between 1 and 5, got {rating!r}")
    return rating


def record_review(current_score: float, review_count: int, rating: int) -> TrustUpdate:
    """Blend a new customer rating into a vendor's score.

    Args:
        current_score: The vendor's score before this review.
        review_count: Number of reviews already folded into ``current_score``.
        rating: Integer rating in 1..5.

    Returns:
        The new score (one decimal) and the incremented review count.

    Raises:
        InvalidRatingError: ``rating`` is not an integer in 1..5.
        InvalidScoreError: the current values are outside their domain.
    """
    validate_rating(rating)
    if review_count < 0:
        raise InvalidScoreError(f"Review count must be non-negative, got {review_count}")

    if review_count == 0:
        new_score = float(rating)
    else:
        _check_score(current_score)
        new_score = current_score * HISTORY_WEIGHT + rating * RATING_WEIGHT

    return TrustUpdate(round_score(new_score), review_count + 1)


def apply_admin_adjustment(current_score: float, delta: int) -> float:
    """Nudge a score one step up or down, staying inside the score domain."""
    if isinstance(delta, bool) or delta not in (-1, 1):
        raise InvalidAdjustmentError(f"Adjustment must be -1 or +1, got {delta!r}")
    return round_score(min(MAX_SCORE, max(MIN_SCORE, current_score + delta)))


def classify(score: float) -> TrustTier:
    """Map a score to its trust tier (closed-open boundaries)."""
    for threshold, tier in TIER_THRESHOLDS:
        if score >= threshold:
            return tier
    return TrustTier.LOW_TRUST


def tier_label(tier: TrustTier) -> str:
    return TIER_LABELS[tier]


def badge_variant(score: float) -> str:
    """Badge style used wherever a score is displayed."""
    return TIER_BADGES[classify(score)]


def needs_low_trust_warning(score: float) -> bool:
    """Whether checkout should warn the customer about this vendor."""
    return score < LOW_TRUST_WARNING_BELOW


def trust_level_description(score: float) -> str:
    level = min(max(math.floor(score + 0.5), 1), 5)
    return TRUST_LEVELS[level]


def can_perform_action(trust_score: float, required_score: float) -> bool:
    return trust_score >= required_score


def _default_score(item: Any) -> Optional[float]:
    if isinstance(item, Mapping):
        return item.get("trust_score")
    return getattr(item, "trust_score", None)


class TrustFilter:
    """Lazy view over ``items`` keeping those scored at or above ``min_score``.

    The view holds a reference to ``items`` and re-evaluates on every
    iteration, so it can be consumed more than once when ``items`` is a
    sequence. A threshold of 0 passes everything through.
    """

    def __init__(
        self,
        items: Iterable[Any],
        min_score: float,
        key: Callable[[Any], Optional[float]] = _default_score,
    ) -> None:
        self.items = items
        self.min_score = min_score
        self.key = key

    def __iter__(self) -> Iterator[Any]:
        if self.min_score <= 0:
            yield from self.items
            return
        for item in self.items:
            score = self.key(item)
            if score is not None and score >= self.min_score:
                yield item


def filter_by_trust(
    items: Iterable[Any],
    min_score: float,
    key: Callable[[Any], Optional[float]] = _default_score,
) -> TrustFilter:
    """Return a restartable view of ``items`` with ``trust_score >= min_score``.

    Items may be mappings or objects exposing ``trust_score``; pass ``key`` for
    anything else. Items without a score are dropped when a threshold is set.
    """
    return TrustFilter(items, min_score, key)
