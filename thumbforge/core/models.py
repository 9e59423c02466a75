"""Core data models for thumbnail generation."""

import json
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from thumbforge.core.errors import RecordImmutableError


class ImageModel(str, Enum):
    """Image models a caller may request."""
    DALL_E_3 = "dall-e-3"
    ROUTIX_V1 = "routix-v1"
    ROUTIX_V2 = "routix-v2"

    @classmethod
    def default(cls) -> "ImageModel":
        return cls.DALL_E_3

    @classmethod
    def normalize(cls, value: Any) -> "ImageModel":
        """Map any value to a known model, falling back to the default."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for member in cls:
                if member.value == value.strip().lower():
                    return member
        return cls.default()


class GenerationStatus(str, Enum):
    """Pipeline states of a generation record."""
    PENDING = "pending"
    VALIDATING = "validating"
    ANALYZING = "analyzing"
    MATCHING = "matching"
    PROMPTING = "prompting"
    GENERATING = "generating"
    POST_PROCESSING = "post_processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (GenerationStatus.COMPLETED, GenerationStatus.FAILED)


# Forward order of the non-terminal states, ending in COMPLETED
STATUS_SEQUENCE = [
    GenerationStatus.PENDING,
    GenerationStatus.VALIDATING,
    GenerationStatus.ANALYZING,
    GenerationStatus.MATCHING,
    GenerationStatus.PROMPTING,
    GenerationStatus.GENERATING,
    GenerationStatus.POST_PROCESSING,
    GenerationStatus.COMPLETED,
]


class LedgerEntryType(str, Enum):
    """Kinds of credit ledger movements."""
    PURCHASE = "purchase"
    USAGE = "usage"
    REFUND = "refund"
    BONUS = "bonus"
    REFERRAL_BONUS = "referral_bonus"


def _normalize_descriptor(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip().lower()
        return value or None
    return value


def _parse_palette(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            parsed = [c.strip() for c in value.split(",")]
        value = parsed if isinstance(parsed, list) else [str(parsed)]
    return [str(c).strip() for c in value if str(c).strip()]


class GenerationRequest(BaseModel):
    """A validated request to generate a thumbnail.

    Attributes:
        id: Request identifier
        user_id: Owner of the request
        user_prompt: Trimmed natural-language request (3-2000 chars)
        uploaded_image_refs: URLs of images the user uploaded
        preferred_style: Optional style key (see the style library)
        preferred_mood: Optional mood key (see the mood library)
        topic: Optional topic used for reference matching
        model: Image model; unknown values normalize to the default
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"req_{uuid4().hex}")
    user_id: str = Field(..., min_length=1, description="Owner of the request")
    user_prompt: str = Field(
        ...,
        min_length=3,
        max_length=2000,
        description="Natural-language description of the thumbnail"
    )
    uploaded_image_refs: List[str] = Field(default_factory=list)
    preferred_style: Optional[str] = None
    preferred_mood: Optional[str] = None
    topic: Optional[str] = None
    model: ImageModel = Field(default=ImageModel.DALL_E_3)

    @field_validator("user_prompt", mode="before")
    @classmethod
    def _trim_prompt(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("preferred_style", "preferred_mood", "topic", mode="before")
    @classmethod
    def _normalize_keys(cls, value: Any) -> Any:
        return _normalize_descriptor(value)

    @field_validator("uploaded_image_refs", mode="before")
    @classmethod
    def _default_refs(cls, value: Any) -> Any:
        return value or []

    @field_validator("model", mode="before")
    @classmethod
    def _normalize_model(cls, value: Any) -> ImageModel:
        return ImageModel.normalize(value)


class UserMetadata(BaseModel):
    """Descriptors derived from a user's prompt and uploaded images.

    Every field is optional; analysis is best-effort.
    """

    model_config = ConfigDict(frozen=True)

    mood: Optional[str] = None
    lighting: Optional[str] = None
    subject_position: Optional[str] = None
    emotional_expression: Optional[str] = None
    text_position: Optional[str] = None
    contrast: Optional[str] = None
    has_face: Optional[bool] = None
    has_product: Optional[bool] = None
    has_text: Optional[bool] = None
    color_preferences: List[str] = Field(default_factory=list)
    style_preference: Optional[str] = None

    @field_validator(
        "mood", "lighting", "subject_position", "emotional_expression",
        "text_position", "contrast", "style_preference",
        mode="before"
    )
    @classmethod
    def _normalize(cls, value: Any) -> Any:
        return _normalize_descriptor(value)

    @field_validator("color_preferences", mode="before")
    @classmethod
    def _parse_colors(cls, value: Any) -> List[str]:
        return _parse_palette(value)

    def extracted_elements(self) -> List[str]:
        """Summarize what analysis found, for logging."""
        elements = []
        if self.has_face:
            elements.append("face")
        if self.has_product:
            elements.append("product")
        if self.has_text:
            elements.append("text")
        elements.append(f"mood: {self.mood or 'unknown'}")
        elements.append(f"lighting: {self.lighting or 'unknown'}")
        return elements


class ReferenceThumbnail(BaseModel):
    """A curated example thumbnail in the reference catalog."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str = ""
    image_url: str
    category: str
    style: str
    viral_score: float = Field(default=0.8, ge=0.0, le=1.0)
    is_active: bool = True

    @field_validator("category", "style", mode="before")
    @classmethod
    def _normalize(cls, value: Any) -> Any:
        return _normalize_descriptor(value)


class ThumbnailMetadata(BaseModel):
    """Compositional descriptors extracted from a reference thumbnail."""

    model_config = ConfigDict(frozen=True)

    reference_thumbnail_id: str
    subject_position: Optional[str] = None
    text_position: Optional[str] = None
    text_alignment: Optional[str] = None
    color_palette: List[str] = Field(default_factory=list)
    lighting: Optional[str] = None
    contrast: Optional[str] = None
    mood: Optional[str] = None
    emotional_expression: Optional[str] = None
    has_text: bool = False
    text_style: Optional[str] = None
    has_face: bool = False
    face_expression: Optional[str] = None
    has_product: bool = False
    layer_count: int = Field(default=1, ge=0)
    symmetry: Optional[str] = None
    depth_of_field: Optional[str] = None
    extracted_prompt: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @field_validator(
        "subject_position", "text_position", "text_alignment", "lighting",
        "contrast", "mood", "emotional_expression", "text_style",
        "face_expression", "symmetry", "depth_of_field",
        mode="before"
    )
    @classmethod
    def _normalize(cls, value: Any) -> Any:
        return _normalize_descriptor(value)

    @field_validator("color_palette", mode="before")
    @classmethod
    def _parse_colors(cls, value: Any) -> List[str]:
        return _parse_palette(value)


class ThumbnailComparison(BaseModel):
    """How closely a generated thumbnail follows its reference."""

    model_config = ConfigDict(frozen=True)

    similarity_score: float = Field(default=0.0, ge=0.0, le=1.0)
    matching_elements: List[str] = Field(default_factory=list)
    differences: List[str] = Field(default_factory=list)


class TopicPreference(BaseModel):
    """Precomputed best-matching references for a topic."""

    topic: str
    reference_ids: List[str] = Field(default_factory=list)
    style_preferences: Dict[str, float] = Field(default_factory=dict)
    color_preferences: Dict[str, float] = Field(default_factory=dict)

    @field_validator("topic", mode="before")
    @classmethod
    def _normalize(cls, value: Any) -> Any:
        return _normalize_descriptor(value)


class MatchResult(BaseModel):
    """The best reference for a request and how well it agrees with it."""

    model_config = ConfigDict(frozen=True)

    reference_id: str
    match_score: float = Field(..., ge=0.0, le=1.0)
    reference: ReferenceThumbnail
    metadata: Optional[ThumbnailMetadata] = None


class PromptQualityReport(BaseModel):
    """Heuristic assessment of a prompt."""

    score: int = Field(..., ge=0, le=100)
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class EngineeredPrompt(BaseModel):
    """The final instruction sent to the image model, with its score."""

    model_config = ConfigDict(frozen=True)

    text: str
    quality_score: int = Field(..., ge=0, le=100)
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class PromptFeedback(BaseModel):
    """Textual feedback used to refine a prompt."""

    model_config = ConfigDict(populate_by_name=True)

    too_much_focus: Optional[str] = Field(default=None, alias="tooMuchFocus")
    needs_more_focus: Optional[str] = Field(default=None, alias="needsMoreFocus")
    color_issue: Optional[str] = Field(default=None, alias="colorIssue")
    lighting_issue: Optional[str] = Field(default=None, alias="lightingIssue")
    composition_issue: Optional[str] = Field(default=None, alias="compositionIssue")


class SynthesizedImage(BaseModel):
    """Reference to an image produced by the external image model.

    Attributes:
        url: Location of the generated image
        prompt: The prompt used to generate the image
        model: The requested image model
        backend: Name of the backend that generated the image
        timestamp: When the image was generated
        metadata: Additional information about the generation
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(..., min_length=1, description="Location of the generated image")
    prompt: str = Field(..., description="The prompt used to generate the image")
    model: ImageModel = Field(default=ImageModel.DALL_E_3)
    backend: str = Field(..., description="Name of the backend that generated the image")
    timestamp: datetime = Field(default_factory=datetime.now)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class QualityMetrics(BaseModel):
    """Observed image metrics, each on a 0-100 scale. Any may be missing."""

    model_config = ConfigDict(frozen=True)

    brightness: Optional[float] = Field(default=None, ge=0, le=100)
    contrast: Optional[float] = Field(default=None, ge=0, le=100)
    saturation: Optional[float] = Field(default=None, ge=0, le=100)
    sharpness: Optional[float] = Field(default=None, ge=0, le=100)
    composition: Optional[float] = Field(default=None, ge=0, le=100)

    def present(self) -> Dict[str, float]:
        """Return only the metrics that were supplied."""
        return {k: v for k, v in self.model_dump().items() if v is not None}


class QualityAssessment(BaseModel):
    """Result of validating a synthesized image against target metrics."""

    model_config = ConfigDict(frozen=True)

    metrics: QualityMetrics
    overall_score: float = Field(..., ge=0, le=100)
    is_valid: bool
    issues: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class PostProductionPlan(BaseModel):
    """Named corrective operations for the external renderer."""

    model_config = ConfigDict(frozen=True)

    apply_vignette: bool = True
    vignette_intensity: int = Field(default=30, ge=0, le=100)
    apply_grain: bool = True
    grain_amount: int = Field(default=15, ge=0, le=100)
    enhance_contrast: bool = True
    contrast_boost: int = Field(default=20, ge=0, le=100)
    saturate_colors: bool = True
    saturation_boost: int = Field(default=15, ge=0, le=100)
    sharpen_image: bool = True
    sharpen_amount: int = Field(default=10, ge=0, le=100)
    adjust_brightness: bool = False
    brightness_adjustment: int = Field(default=0, ge=-50, le=50)

    def operations(self) -> List[Dict[str, Any]]:
        """Ordered list of enabled operations, as sent to the renderer."""
        ops = []
        if self.adjust_brightness and self.brightness_adjustment != 0:
            ops.append({"name": "brightness", "amount": self.brightness_adjustment})
        if self.enhance_contrast and self.contrast_boost:
            ops.append({"name": "contrast", "amount": self.contrast_boost})
        if self.saturate_colors and self.saturation_boost:
            ops.append({"name": "saturation", "amount": self.saturation_boost})
        if self.sharpen_image and self.sharpen_amount:
            ops.append({"name": "sharpen", "amount": self.sharpen_amount})
        if self.apply_grain and self.grain_amount:
            ops.append({"name": "grain", "amount": self.grain_amount})
        if self.apply_vignette and self.vignette_intensity:
            ops.append({"name": "vignette", "amount": self.vignette_intensity})
        return ops


class PostProductionResult(BaseModel):
    """Outcome of the post-production pipeline."""

    model_config = ConfigDict(frozen=True)

    processed_image_url: str
    quality_result: QualityAssessment
    applied_effects: PostProductionPlan
    fallback_used: bool = False


class CreditLedgerEntry(BaseModel):
    """A single signed movement of a user's credits."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"trans_{uuid4().hex}")
    user_id: str
    amount: int
    type: LedgerEntryType
    description: str = ""
    generation_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)


class GenerationRecord(BaseModel):
    """Durable aggregate tracking one generation through the pipeline.

    Records are frozen: every transition returns a new record. Once the
    status is terminal no further transition is accepted.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"gen_{uuid4().hex}")
    user_id: str
    user_prompt: str
    request: Optional[GenerationRequest] = None
    user_metadata: Optional[UserMetadata] = None
    match: Optional[MatchResult] = None
    engineered_prompt: Optional[EngineeredPrompt] = None
    synthesized_image: Optional[SynthesizedImage] = None
    quality: Optional[QualityAssessment] = None
    post_production: Optional[PostProductionPlan] = None
    final_image_url: Optional[str] = None
    credits_charged: int = 0
    status: GenerationStatus = GenerationStatus.PENDING
    error_message: Optional[str] = None
    error_type: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def advance(self, status: GenerationStatus, **payload: Any) -> "GenerationRecord":
        """Move forward to ``status``, attaching stage payload fields.

        Raises:
            RecordImmutableError: If this record is already terminal
            ValueError: If ``status`` is not ahead of the current status
        """
        if self.is_terminal:
            raise RecordImmutableError(self.id, self.status.value)
        if status == GenerationStatus.FAILED:
            raise ValueError("Use fail() to move a record to failed")
        if STATUS_SEQUENCE.index(status) <= STATUS_SEQUENCE.index(self.status):
            raise ValueError(
                f"Cannot move record {self.id} from {self.status.value} to {status.value}"
            )

        now = datetime.now()
        update = dict(payload, status=status, updated_at=now)
        if status == GenerationStatus.COMPLETED:
            update["completed_at"] = now
        return self.model_copy(update=update, deep=True)

    def fail(self, error_message: str, error_type: Optional[str] = None) -> "GenerationRecord":
        """Move to failed with a human-readable reason."""
        if self.is_terminal:
            raise RecordImmutableError(self.id, self.status.value)
        now = datetime.now()
        return self.model_copy(update={
            "status": GenerationStatus.FAILED,
            "error_message": error_message,
            "error_type": error_type,
            "updated_at": now,
            "completed_at": now,
        }, deep=True)


class GenerationResult(BaseModel):
    """What the caller receives from a generation."""

    id: str
    status: GenerationStatus
    final_image_url: Optional[str] = None
    generated_prompt: Optional[str] = None
    reference_thumbnail_id: Optional[str] = None
    quality_score: Optional[float] = None
    credits_used: int = 0
    error_message: Optional[str] = None
    error_type: Optional[str] = None

    @classmethod
    def from_record(cls, record: GenerationRecord) -> "GenerationResult":
        completed = record.status == GenerationStatus.COMPLETED
        return cls(
            id=record.id,
            status=record.status,
            final_image_url=record.final_image_url,
            generated_prompt=record.engineered_prompt.text if record.engineered_prompt else None,
            reference_thumbnail_id=record.match.reference_id if record.match else None,
            quality_score=record.quality.overall_score if record.quality else None,
            credits_used=record.credits_charged if completed else 0,
            error_message=record.error_message,
            error_type=record.error_type,
        )
