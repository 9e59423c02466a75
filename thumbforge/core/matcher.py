"""Scores reference thumbnails against a request's derived descriptors."""

import logging
from typing import Optional, List, Dict

from thumbforge.core.catalog import ReferenceCatalog
from thumbforge.core.models import (
    MatchResult,
    ReferenceThumbnail,
    ThumbnailMetadata,
    UserMetadata,
)

logger = logging.getLogger(__name__)


# Descriptor dimension -> weight. Every dimension counts toward the total.
SIMILARITY_WEIGHTS: Dict[str, int] = {
    "subject_position": 15,
    "mood": 20,
    "lighting": 15,
    "emotional_expression": 15,
    "text_position": 10,
    "contrast": 10,
}


def calculate_similarity_score(
    user_metadata: UserMetadata,
    reference_metadata: Optional[ThumbnailMetadata]
) -> float:
    """Weighted agreement between user and reference descriptors.

    A dimension matches only when both sides have a value and the values
    are equal. Missing values never match but still count toward the total.

    Returns:
        Score in [0, 1]
    """
    if reference_metadata is None:
        return 0.0

    score = 0
    total = 0
    for field, weight in SIMILARITY_WEIGHTS.items():
        user_value = getattr(user_metadata, field)
        reference_value = getattr(reference_metadata, field)
        if user_value is not None and user_value == reference_value:
            score += weight
        total += weight

    return score / total if total else 0.0


class Matcher:
    """Finds the best reference thumbnail for a request.

    Attributes:
        catalog: Reference catalog to search
    """

    def __init__(self, catalog: ReferenceCatalog):
        self.catalog = catalog

    def find_candidates(
        self,
        topic: Optional[str] = None,
        style: Optional[str] = None
    ) -> List[ReferenceThumbnail]:
        """Candidate references for a topic and style.

        A topic preference restricts the search to its listed references.
        Otherwise all active references are used, filtered by style, then
        narrowed to the topic's category when that category has entries.
        """
        if topic:
            preference = self.catalog.get_topic_preference(topic)
            if preference and preference.reference_ids:
                wanted = set(preference.reference_ids)
                candidates = [r for r in self.catalog.list_active() if r.id in wanted]
                logger.debug(f"Topic preference for '{topic}' gives {len(candidates)} candidates")
                return candidates

        candidates = self.catalog.list_active()
        if style:
            candidates = [r for r in candidates if r.style == style]
        if topic:
            in_topic = [r for r in candidates if r.category == topic]
            if in_topic:
                candidates = in_topic

        return sorted(candidates, key=lambda r: (-r.viral_score, r.id))

    def find_best_match(
        self,
        user_metadata: UserMetadata,
        topic: Optional[str] = None,
        style: Optional[str] = None
    ) -> Optional[MatchResult]:
        """Score every candidate and return the best.

        Ties are broken by viral score (highest first) then id (ascending).

        Returns:
            The best match, or None when there are no candidates
        """
        candidates = self.find_candidates(topic, style)
        if not candidates:
            logger.warning(f"No reference candidates for topic={topic!r}, style={style!r}")
            return None

        scored = []
        for reference in candidates:
            metadata = self.catalog.get_metadata(reference.id)
            score = calculate_similarity_score(user_metadata, metadata)
            scored.append((score, reference, metadata))

        score, reference, metadata = min(
            scored,
            key=lambda item: (-item[0], -item[1].viral_score, item[1].id)
        )

        logger.info(
            f"Reference selected: {reference.title} "
            f"(score: {score:.2f}, candidates: {len(candidates)})"
        )
        return MatchResult(
            reference_id=reference.id,
            match_score=score,
            reference=reference.model_copy(deep=True),
            metadata=metadata.model_copy(deep=True) if metadata else None,
        )
