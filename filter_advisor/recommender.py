"""
Filter recommendation engine.

Maps ImageMetrics to one of the fixed filters. Rules are evaluated in strict
priority order and the first match wins; blur rules always precede
brightness rules. Comparisons are strict, so a value sitting exactly on a
threshold falls through to the next rule.
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, Tuple

from filter_advisor.models import FilterType, ImageMetrics, RationaleClass, Recommendation

logger = logging.getLogger(__name__)

LOW_BLUR_THRESHOLD = 100.0
HIGH_BLUR_THRESHOLD = 500.0
DARK_THRESHOLD = 80.0
BRIGHT_THRESHOLD = 180.0

RATIONALE_TEMPLATES: Dict[RationaleClass, Tuple[FilterType, str]] = {
    RationaleClass.LOW_BLUR: (
        FilterType.HIGHPASS,
        "Your image has low blur (sharp details). I recommend the **High Pass** filter to further "
        "enhance edges and bring out fine details, making the image pop.",
    ),
    RationaleClass.HIGH_BLUR: (
        FilterType.MEDIAN,
        "Your image appears slightly blurry. I recommend the **Median Blur** filter to smooth out "
        "any noise artifacts while preserving what edge definition remains.",
    ),
    RationaleClass.DARK: (
        FilterType.HIGHPASS,
        "Your image is quite dark. I recommend the **High Pass** filter which will increase contrast "
        "and brightness, helping to reveal hidden details in the shadows.",
    ),
    RationaleClass.BRIGHT: (
        FilterType.GAUSSIAN,
        "Your image is well-lit. I recommend the **Gaussian Blur** filter for a soft, professional "
        "look that works great for portraits and product photography.",
    ),
    RationaleClass.DEFAULT: (
        FilterType.GAUSSIAN,
        "Based on your image metrics, I recommend the **Gaussian Blur** filter. It provides a "
        "balanced smoothing effect that works well for most image types.",
    ),
}


def classify(metrics: ImageMetrics) -> RationaleClass:
    """Pick the rationale class for a metrics snapshot."""
    if metrics.blur < LOW_BLUR_THRESHOLD:
        return RationaleClass.LOW_BLUR
    if metrics.blur > HIGH_BLUR_THRESHOLD:
        return RationaleClass.HIGH_BLUR
    if metrics.brightness < DARK_THRESHOLD:
        return RationaleClass.DARK
    if metrics.brightness > BRIGHT_THRESHOLD:
        return RationaleClass.BRIGHT
    return RationaleClass.DEFAULT


def recommend(metrics: ImageMetrics) -> Recommendation:
    """
    Recommend a filter for the given metrics.

    Args:
        metrics: Metrics of the current image

    Returns:
        Recommendation with the template text of the matched class
    """
    rationale_class = classify(metrics)
    filter_type, rationale = RATIONALE_TEMPLATES[rationale_class]
    return Recommendation(filter_type=filter_type, rationale_class=rationale_class, rationale=rationale)


class FilterAdvisor(ABC):
    """Anything that can turn metrics into a recommendation (rules, remote model, ...)."""

    @abstractmethod
    def advise(self, metrics: ImageMetrics) -> Recommendation:
        """Return a recommendation for ``metrics``. Must not raise for valid metrics."""


class RuleBasedAdvisor(FilterAdvisor):
    """Advisor backed by the threshold rules in this module."""

    def advise(self, metrics: ImageMetrics) -> Recommendation:
        recommendation = recommend(metrics)
        logger.debug(
            "Rule %s matched (blur=%.2f brightness=%.2f) -> %s",
            recommendation.rationale_class.value, metrics.blur, metrics.brightness,
            recommendation.filter_type.value,
        )
        return recommendation
