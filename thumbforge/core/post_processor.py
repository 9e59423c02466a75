"""Post-production stage: quality assessment plus a single renderer pass."""

import logging
from typing import Dict, Optional, Union

from thumbforge.core.base_backend import BaseRenderer
from thumbforge.core.errors import PostProductionError
from thumbforge.core.models import PostProductionPlan, PostProductionResult, QualityMetrics
from thumbforge.utils.quality import QualityAssessor

logger = logging.getLogger(__name__)


class PostProcessor:
    """Applies corrective operations to a synthesized image.

    The output image is not re-validated; the pipeline makes one pass.

    Attributes:
        renderer: Renderer that applies the operations
        assessor: Quality assessor used to derive the plan
    """

    def __init__(self, renderer: BaseRenderer, assessor: Optional[QualityAssessor] = None):
        self.renderer = renderer
        self.assessor = assessor or QualityAssessor()
        logger.info(f"Initialized PostProcessor with renderer: {renderer.name}")

    def apply_post_production_effects(self, image_url: str, plan: PostProductionPlan) -> str:
        """Send the plan's operations to the renderer.

        Returns:
            URL of the processed image

        Raises:
            PostProductionError: If the renderer fails
        """
        operations = plan.operations()
        if not operations:
            return image_url

        logger.info(f"Applying {len(operations)} post-production operations via {self.renderer.name}")
        return self.renderer.render(image_url, operations)

    def complete_post_production_pipeline(
        self,
        image_url: str,
        observed_metrics: Union[QualityMetrics, Dict[str, float], None] = None
    ) -> PostProductionResult:
        """Assess, plan and render in one pass.

        A renderer failure that is not fatal falls back to the original image.

        Raises:
            PostProductionError: If the renderer is unreachable
        """
        assessment = self.assessor.assess(image_url, observed_metrics)
        plan = self.assessor.plan(assessment)

        try:
            processed_url = self.apply_post_production_effects(image_url, plan)
            fallback_used = False
        except PostProductionError as e:
            if e.fatal:
                raise
            logger.warning(f"Post-production failed, keeping original image: {e}")
            processed_url = image_url
            fallback_used = True

        return PostProductionResult(
            processed_image_url=processed_url,
            quality_result=assessment,
            applied_effects=plan,
            fallback_used=fallback_used,
        )
