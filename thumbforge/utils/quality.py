"""Quality assessment of synthesized images and corrective post-production plans."""

import logging
from typing import List, Dict, Tuple, Union

from thumbforge.core.models import PostProductionPlan, QualityAssessment, QualityMetrics

logger = logging.getLogger(__name__)


DEFAULT_QUALITY_THRESHOLD = 60

# (metric, direction, limit, issue, recommendation), checked in order
QUALITY_RULES: List[Tuple[str, str, float, str, str]] = [
    ("brightness", "below", 40, "Image is too dark",
     "Increase brightness by 10-20% for better visibility"),
    ("brightness", "above", 90, "Image is too bright",
     "Reduce brightness to avoid washed-out appearance"),
    ("contrast", "below", 50, "Low contrast - may be hard to see details",
     "Boost contrast by 15-25% to make elements pop"),
    ("saturation", "below", 40, "Colors are too muted - consider increasing saturation",
     "Increase saturation by 20-30% for more vibrant colors"),
    ("sharpness", "below", 60, "Image appears blurry - consider sharpening",
     "Apply sharpening filter to enhance details"),
    ("composition", "below", 60, "Composition could be improved",
     "Consider repositioning main subject using rule of thirds"),
]

NO_METRICS_ISSUE = "No quality metrics available for this image"
NO_METRICS_RECOMMENDATION = "Review the image manually before publishing"

# Plan tuning
CONTRAST_TARGET = 60
SATURATION_TARGET = 60
SHARPNESS_TARGET = 70
DARK_BRIGHTNESS = 50
BRIGHT_BRIGHTNESS = 85


def _coerce_metrics(observed: Union[QualityMetrics, Dict[str, float], None]) -> QualityMetrics:
    if observed is None:
        return QualityMetrics()
    if isinstance(observed, QualityMetrics):
        return observed
    known = {k: v for k, v in observed.items() if k in QualityMetrics.model_fields}
    return QualityMetrics(**known)


def validate_image_quality(
    image_url: str,
    observed_metrics: Union[QualityMetrics, Dict[str, float], None] = None,
    threshold: float = DEFAULT_QUALITY_THRESHOLD
) -> QualityAssessment:
    """Score an image from whatever metrics were observed.

    The overall score is the unweighted mean of the supplied metrics; missing
    metrics are excluded rather than counted as zero. With no metrics at all
    the assessment has score 0, is invalid and carries a single issue.

    Args:
        image_url: Image being assessed (for logging)
        observed_metrics: Partial metrics on a 0-100 scale
        threshold: Minimum overall score for a valid image

    Returns:
        The quality assessment
    """
    metrics = _coerce_metrics(observed_metrics)
    present = metrics.present()

    if not present:
        logger.warning(f"No quality metrics supplied for {image_url}")
        return QualityAssessment(
            metrics=metrics,
            overall_score=0,
            is_valid=False,
            issues=[NO_METRICS_ISSUE],
            recommendations=[NO_METRICS_RECOMMENDATION],
        )

    overall = sum(present.values()) / len(present)

    issues = []
    recommendations = []
    for name, direction, limit, issue, recommendation in QUALITY_RULES:
        value = present.get(name)
        if value is None:
            continue
        if (direction == "below" and value < limit) or (direction == "above" and value > limit):
            issues.append(issue)
            recommendations.append(recommendation)

    assessment = QualityAssessment(
        metrics=metrics,
        overall_score=overall,
        is_valid=overall >= threshold,
        issues=issues,
        recommendations=recommendations,
    )
    logger.info(
        f"Quality assessed for {image_url}: {overall:.1f} "
        f"({'valid' if assessment.is_valid else 'below threshold'}, {len(issues)} issues)"
    )
    return assessment


def generate_post_production_instructions(assessment: QualityAssessment) -> PostProductionPlan:
    """Derive corrective operations from an assessment.

    Vignette and grain are always applied. Contrast and saturation boosts
    grow by the deficit below their targets; sharpening doubles for soft
    images; brightness is nudged when too dark or too bright. Metrics that
    were not observed leave their defaults in place.
    """
    metrics = assessment.metrics
    update: Dict[str, object] = {}

    if metrics.brightness is not None:
        if metrics.brightness < DARK_BRIGHTNESS:
            update.update(adjust_brightness=True, brightness_adjustment=15)
        elif metrics.brightness > BRIGHT_BRIGHTNESS:
            update.update(adjust_brightness=True, brightness_adjustment=-10)

    if metrics.contrast is not None and metrics.contrast < CONTRAST_TARGET:
        deficit = CONTRAST_TARGET - metrics.contrast
        update["contrast_boost"] = min(100, round(20 + deficit))

    if metrics.saturation is not None and metrics.saturation < SATURATION_TARGET:
        deficit = SATURATION_TARGET - metrics.saturation
        update["saturation_boost"] = min(100, round(15 + deficit))

    if metrics.sharpness is not None and metrics.sharpness < SHARPNESS_TARGET:
        update["sharpen_amount"] = 20

    return PostProductionPlan(**update)


class QualityAssessor:
    """Quality assessment with a configurable validity threshold.

    Attributes:
        threshold: Minimum overall score for a valid image
    """

    def __init__(self, threshold: float = DEFAULT_QUALITY_THRESHOLD):
        self.threshold = threshold

    def assess(
        self,
        image_url: str,
        observed_metrics: Union[QualityMetrics, Dict[str, float], None] = None
    ) -> QualityAssessment:
        return validate_image_quality(image_url, observed_metrics, self.threshold)

    def plan(self, assessment: QualityAssessment) -> PostProductionPlan:
        return generate_post_production_instructions(assessment)

    def __repr__(self) -> str:
        return f"QualityAssessor(threshold={self.threshold})"
