"""Gemini vision/LLM analysis backend."""

import json
import logging
import re
from typing import Optional, List, Dict, Any, Type, TypeVar

from google import genai
from google.genai import types
from pydantic import BaseModel, ValidationError

from thumbforge.core.base_backend import BaseAnalyzer
from thumbforge.core.errors import AnalysisError
from thumbforge.core.models import (
    QualityMetrics,
    ThumbnailComparison,
    ThumbnailMetadata,
    UserMetadata,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


PROMPT_ANALYSIS_INSTRUCTIONS = """Analyze this YouTube thumbnail generation request and extract the following metadata:

User Request: "{user_prompt}"

Extract and return as JSON:
{{
  "mood": "shocked|excited|curious|angry|happy|sad|confused",
  "emotional_expression": "shocked|happy|excited|surprised|confused|skeptical",
  "subject_position": "left|center|right|top|bottom",
  "text_position": "top|bottom|overlay|side",
  "lighting": "dramatic|soft|bright|dim|natural",
  "contrast": "high|medium|low",
  "has_face": true|false,
  "has_product": true|false,
  "has_text": true|false,
  "color_preferences": ["color1", "color2"],
  "style_preference": "minimalist|colorful|dramatic|professional|casual"
}}

Omit any field you cannot determine. Return ONLY valid JSON."""

THUMBNAIL_ANALYSIS_INSTRUCTIONS = """Analyze this YouTube thumbnail image and extract the following metadata in JSON format:

{
  "subject_position": "left|center|right|top|bottom",
  "text_position": "top|bottom|overlay|side",
  "text_alignment": "left|center|right",
  "color_palette": ["color1", "color2", "color3"],
  "lighting": "dramatic|soft|bright|dim|natural",
  "contrast": "high|medium|low",
  "mood": "shocked|excited|curious|angry|happy|sad|confused",
  "emotional_expression": "shocked|happy|excited|surprised|confused|skeptical",
  "has_text": true|false,
  "text_style": "bold|outline|shadow|3d|simple",
  "has_face": true|false,
  "face_expression": "shocked|happy|excited|surprised|confused|skeptical",
  "has_product": true|false,
  "layer_count": number,
  "symmetry": "symmetric|asymmetric|balanced",
  "depth_of_field": "shallow|deep|medium",
  "extracted_prompt": "detailed description for an image model",
  "confidence": 0.0-1.0
}

Be precise and return ONLY valid JSON."""

THUMBNAIL_COMPARISON_INSTRUCTIONS = """Compare these two YouTube thumbnails. The first is the
reference, the second was generated from it. Return as JSON:
{
  "similarity_score": 0.0-1.0,
  "matching_elements": ["element1", "element2"],
  "differences": ["difference1", "difference2"]
}
Return ONLY valid JSON."""

IMAGE_ASSESSMENT_INSTRUCTIONS = """Rate this YouTube thumbnail image. Return JSON with
integer scores from 0 to 100:
{
  "brightness": 0-100,
  "contrast": 0-100,
  "saturation": 0-100,
  "sharpness": 0-100,
  "composition": 0-100
}
Return ONLY valid JSON."""


def _extract_json(text: str) -> Dict[str, Any]:
    """Find and parse a JSON object in model output. Returns {} if none."""
    if not text:
        return {}
    match = re.search(r"(\{[\s\S]*\})", text)
    if not match:
        return {}
    try:
        parsed = json.loads(match.group(1))
    except ValueError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _snake_case(key: str) -> str:
    return re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", key).lower()


def _keep_valid_fields(model_class: Type[ModelT], raw: Dict[str, Any], **fixed: Any) -> ModelT:
    """Build ``model_class`` from the fields of ``raw`` that validate on their own.

    Keys are accepted in camelCase or snake_case; unknown keys are ignored.
    """
    known = {}
    for key, value in raw.items():
        key = _snake_case(key)
        if key in model_class.model_fields and key not in fixed:
            known[key] = value

    try:
        return model_class(**known, **fixed)
    except ValidationError as e:
        logger.warning(f"Gemini returned malformed {model_class.__name__}, keeping valid fields: {e}")

    cleaned = {}
    for key, value in known.items():
        try:
            model_class(**{key: value}, **fixed)
        except ValidationError:
            continue
        cleaned[key] = value
    return model_class(**cleaned, **fixed)


def _clean_metrics(raw: Dict[str, Any]) -> Dict[str, float]:
    metrics = {}
    for name in QualityMetrics.model_fields:
        value = raw.get(name)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            metrics[name] = max(0.0, min(100.0, float(value)))
    return metrics


class GeminiAnalyzer(BaseAnalyzer):
    """Analysis backend using Google Gemini.

    Attributes:
        api_key: Gemini API key
        model: Gemini model used for analysis
        client: google-genai client instance
    """

    DEFAULT_MODEL = "gemini-2.0-flash"

    def __init__(self, api_key: str, model: Optional[str] = None):
        """Initialize the Gemini analyzer.

        Args:
            api_key: Gemini API key
            model: Optional model name

        Raises:
            ValueError: If API key is empty
        """
        if not api_key:
            raise ValueError("Gemini API key is required")

        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL
        self.client = genai.Client(api_key=api_key)
        logger.info(f"Initialized Gemini analyzer with model: {self.model}")

    def _image_parts(self, images: Optional[List[str]]) -> list:
        return [
            types.Part.from_uri(file_uri=image_url, mime_type="image/jpeg")
            for image_url in images or []
        ]

    def _generate_json(self, contents: list, failure: str) -> Dict[str, Any]:
        """Run one Gemini call and parse its JSON answer.

        Raises:
            AnalysisError: With ``failure`` as message if the call fails
        """
        try:
            response = self.client.models.generate_content(model=self.model, contents=contents)
        except Exception as e:
            logger.error(f"{failure}: {e}")
            raise AnalysisError(failure) from e
        return _extract_json(getattr(response, "text", "") or "")

    def analyze(self, prompt: str, images: Optional[List[str]] = None) -> UserMetadata:
        """Analyze the prompt and uploaded images with Gemini.

        Fields Gemini does not return, or returns malformed, stay unset.

        Raises:
            AnalysisError: If the Gemini call itself fails
        """
        contents = [PROMPT_ANALYSIS_INSTRUCTIONS.format(user_prompt=prompt), *self._image_parts(images)]
        raw = self._generate_json(contents, "Failed to analyze user prompt")
        if not raw:
            logger.warning("Gemini returned no usable JSON; continuing with empty metadata")
            return UserMetadata()
        return _keep_valid_fields(UserMetadata, raw)

    def analyze_thumbnail(self, image_url: str, reference_thumbnail_id: str) -> ThumbnailMetadata:
        """Extract compositional descriptors from a reference thumbnail.

        Raises:
            AnalysisError: If the call fails or Gemini returns no JSON
        """
        contents = [THUMBNAIL_ANALYSIS_INSTRUCTIONS, *self._image_parts([image_url])]
        raw = self._generate_json(contents, "Failed to analyze thumbnail image")
        if not raw:
            raise AnalysisError("Failed to extract JSON from Gemini response")

        metadata = _keep_valid_fields(ThumbnailMetadata, raw, reference_thumbnail_id=reference_thumbnail_id)
        logger.info(f"Extracted metadata for {reference_thumbnail_id} (confidence: {metadata.confidence})")
        return metadata

    def compare_thumbnails(self, reference_image_url: str, generated_image_url: str) -> ThumbnailComparison:
        """Ask Gemini how closely a generated thumbnail follows its reference.

        Raises:
            AnalysisError: If the call fails or Gemini returns no JSON
        """
        contents = [
            THUMBNAIL_COMPARISON_INSTRUCTIONS,
            *self._image_parts([reference_image_url, generated_image_url]),
        ]
        raw = self._generate_json(contents, "Failed to compare thumbnails")
        if not raw:
            raise AnalysisError("Failed to extract JSON from Gemini response")
        return _keep_valid_fields(ThumbnailComparison, raw)

    def assess_image(self, image_url: str) -> QualityMetrics:
        """Ask Gemini to rate the generated image.

        Returns empty metrics when Gemini is unavailable or unparseable.
        """
        contents = [IMAGE_ASSESSMENT_INSTRUCTIONS, *self._image_parts([image_url])]

        try:
            raw = self._generate_json(contents, "Gemini image assessment failed")
        except AnalysisError:
            return QualityMetrics()

        return QualityMetrics(**_clean_metrics(raw))

    @property
    def name(self) -> str:
        return "Gemini"
