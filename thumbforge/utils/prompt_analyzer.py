"""Keyword-based prompt analysis used when no vision service is configured."""

import logging
import re
from typing import Optional, List, Dict

from thumbforge.core.base_backend import BaseAnalyzer
from thumbforge.core.models import UserMetadata, QualityMetrics

logger = logging.getLogger(__name__)


KNOWN_TOPICS = [
    "gaming",
    "tech",
    "crypto",
    "fitness",
    "education",
    "lifestyle",
    "business",
    "music",
    "cooking",
    "travel",
]

DEFAULT_TOPIC = "general"

# Checked in order; the first mood with a matching keyword wins
MOOD_KEYWORDS: Dict[str, List[str]] = {
    "shocked": ["shocked", "shock", "stunned", "astonished", "jaw-dropping", "omg", "mind blown"],
    "excited": ["excited", "exciting", "hyped", "thrilled", "energetic", "epic"],
    "curious": ["curious", "mystery", "mysterious", "secret", "intriguing", "what if"],
    "angry": ["angry", "furious", "rage", "mad", "fierce"],
    "happy": ["happy", "smiling", "smile", "joyful", "cheerful", "fun"],
    "sad": ["sad", "crying", "tears", "heartbroken", "emotional"],
    "confused": ["confused", "puzzled", "unsure", "weird"],
}

EXPRESSION_KEYWORDS: Dict[str, List[str]] = {
    "shocked": ["shocked", "shock", "jaw-dropping", "open mouth", "wide eyes"],
    "surprised": ["surprised", "surprise", "amazed", "wow"],
    "excited": ["excited", "hyped", "thrilled"],
    "happy": ["happy", "smiling", "smile", "laughing"],
    "confused": ["confused", "puzzled"],
    "skeptical": ["skeptical", "doubtful", "raised eyebrow", "suspicious"],
}

LIGHTING_KEYWORDS: Dict[str, List[str]] = {
    "dramatic": ["dramatic", "cinematic", "moody lighting", "shadows"],
    "neon": ["neon", "glowing", "rgb lights", "cyberpunk"],
    "soft": ["soft light", "soft lighting", "diffused", "gentle light"],
    "bright": ["bright", "sunny", "well lit", "vivid"],
    "dim": ["dim", "dark", "night", "low light"],
    "natural": ["natural light", "daylight", "outdoor", "outdoors"],
    "backlit": ["backlit", "silhouette", "rim light"],
    "spotlight": ["spotlight", "stage light"],
}

POSITION_PATTERNS: Dict[str, str] = {
    "left": r"\b(on|at|to) the left\b|\bleft side\b",
    "right": r"\b(on|at|to) the right\b|\bright side\b",
    "center": r"\b(in the )?(center|centre|middle)\b",
}

TEXT_POSITION_PATTERNS: Dict[str, str] = {
    "top": r"\b(text|title|words|caption)\b[^.]*\b(top|above)\b",
    "bottom": r"\b(text|title|words|caption)\b[^.]*\b(bottom|below)\b",
    "side": r"\b(text|title|words|caption)\b[^.]*\bside\b",
    "overlay": r"\b(text|title|words|caption)\b[^.]*\b(overlay|over the)\b",
}

FACE_KEYWORDS = ["face", "person", "man", "woman", "me", "myself", "selfie", "reaction", "expression", "guy", "girl"]
PRODUCT_KEYWORDS = ["product", "review", "unboxing", "phone", "laptop", "gadget", "device", "headphones"]
TEXT_KEYWORDS = ["text", "title", "words", "caption", "headline"]

COLOR_NAMES = [
    "red", "orange", "yellow", "green", "blue", "purple", "pink",
    "black", "white", "gold", "silver", "teal", "cyan", "magenta",
]

STYLE_NAMES = ["dramatic", "minimalist", "colorful", "professional", "casual", "dark", "neon", "vintage"]


def extract_topic_from_prompt(prompt: str) -> str:
    """Find the first known topic mentioned in a prompt.

    Args:
        prompt: User prompt

    Returns:
        A known topic, or "general" when none is mentioned
    """
    lower_prompt = prompt.lower()
    for topic in KNOWN_TOPICS:
        if _contains(lower_prompt, topic):
            return topic
    return DEFAULT_TOPIC


def _contains(text: str, keyword: str) -> bool:
    return re.search(rf"\b{re.escape(keyword)}\b", text) is not None


def _first_keyword_match(text: str, table: Dict[str, List[str]]) -> Optional[str]:
    for key, keywords in table.items():
        if any(_contains(text, keyword) for keyword in keywords):
            return key
    return None


def _first_pattern_match(text: str, table: Dict[str, str]) -> Optional[str]:
    for key, pattern in table.items():
        if re.search(pattern, text):
            return key
    return None


class HeuristicAnalyzer(BaseAnalyzer):
    """Derives descriptors from prompt keywords.

    Uploaded images are ignored. Image assessment reports a fixed set of
    observed metrics, since no vision service is available to measure them.
    """

    DEFAULT_OBSERVED_METRICS = {"brightness": 65, "contrast": 75}

    def __init__(self, observed_metrics: Optional[Dict[str, float]] = None):
        """Initialize the analyzer.

        Args:
            observed_metrics: Metrics reported by assess_image
        """
        self.observed_metrics = dict(
            self.DEFAULT_OBSERVED_METRICS if observed_metrics is None else observed_metrics
        )

    def analyze(self, prompt: str, images: Optional[List[str]] = None) -> UserMetadata:
        text = f" {prompt.lower()} "

        contrast = None
        if "high contrast" in text:
            contrast = "high"
        elif "low contrast" in text:
            contrast = "low"

        metadata = UserMetadata(
            mood=_first_keyword_match(text, MOOD_KEYWORDS),
            emotional_expression=_first_keyword_match(text, EXPRESSION_KEYWORDS),
            lighting=_first_keyword_match(text, LIGHTING_KEYWORDS),
            subject_position=_first_pattern_match(text, POSITION_PATTERNS),
            text_position=_first_pattern_match(text, TEXT_POSITION_PATTERNS),
            contrast=contrast,
            has_face=any(_contains(text, keyword) for keyword in FACE_KEYWORDS),
            has_product=any(_contains(text, keyword) for keyword in PRODUCT_KEYWORDS),
            has_text=any(_contains(text, keyword) for keyword in TEXT_KEYWORDS),
            color_preferences=[c for c in COLOR_NAMES if _contains(text, c)],
            style_preference=next((s for s in STYLE_NAMES if _contains(text, s)), None),
        )

        logger.debug(f"Heuristic analysis of '{prompt[:50]}': {metadata.model_dump(exclude_none=True)}")
        return metadata

    def assess_image(self, image_url: str) -> QualityMetrics:
        return QualityMetrics(**self.observed_metrics)

    @property
    def name(self) -> str:
        return "Heuristic"
