"""
Confidence Model - Feedback-Driven Confidence Adjustment

helpful      -> +delta
not_helpful  -> -delta
outdated     -> -2 * delta

The result is always clamped to [min_confidence, max_confidence].
"""

from remediation_store.models.remediation import FeedbackRating


RATING_WEIGHTS = {
    FeedbackRating.HELPFUL: 1.0,
    FeedbackRating.NOT_HELPFUL: -1.0,
    FeedbackRating.OUTDATED: -2.0,
}


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(value, upper))


def adjust_confidence(
    confidence: float,
    rating: FeedbackRating,
    delta: float,
    min_confidence: float,
    max_confidence: float,
) -> float:
    """Return the confidence after one feedback event.

    Rounded to 10 decimal places so repeated steps of 0.1 land on 0.4, 0.2,
    and so on instead of accumulating float error.
    """
    adjusted = confidence + RATING_WEIGHTS[FeedbackRating(rating)] * delta
    return round(clamp(adjusted, min_confidence, max_confidence), 10)
