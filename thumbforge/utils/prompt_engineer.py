"""Prompt engineering for viral-quality YouTube thumbnails."""

import logging
from dataclasses import dataclass
from typing import Optional, List, Dict, Tuple, Union

from thumbforge.core.models import (
    EngineeredPrompt,
    ImageModel,
    PromptFeedback,
    PromptQualityReport,
    ThumbnailMetadata,
    UserMetadata,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StyleProfile:
    """Keywords and intent of a visual style."""
    keywords: Tuple[str, ...]
    color_intensity: str
    mood: str


@dataclass(frozen=True)
class MoodProfile:
    """Facial expressions and keywords that convey a mood."""
    expressions: Tuple[str, ...]
    intensity: str
    keywords: Tuple[str, ...]


@dataclass
class PromptTemplate:
    """Template for a common thumbnail type."""
    name: str
    category: str
    template: str
    description: str
    tags: List[str]

    def format(self, **kwargs) -> str:
        """Format template with provided values.

        Args:
            **kwargs: Values to substitute in template

        Returns:
            Formatted prompt string
        """
        return self.template.format(**kwargs)


class PromptLibrary:
    """Style, mood, lighting and composition tables used to compose prompts.

    Dictionary order is significant: variations use the first N styles.
    """

    STYLES: Dict[str, StyleProfile] = {
        "dramatic": StyleProfile(
            ("dramatic lighting", "high contrast", "cinematic", "bold shadows"), "high", "intense"),
        "minimalist": StyleProfile(
            ("clean", "simple", "uncluttered", "elegant", "minimal"), "low", "sophisticated"),
        "colorful": StyleProfile(
            ("vibrant", "saturated colors", "rainbow", "multicolor", "bright palette"), "very high", "energetic"),
        "professional": StyleProfile(
            ("professional", "corporate", "polished", "sleek", "modern"), "medium", "trustworthy"),
        "casual": StyleProfile(
            ("friendly", "approachable", "fun", "playful", "relaxed"), "medium", "welcoming"),
        "dark": StyleProfile(
            ("dark background", "moody", "mysterious", "night", "shadows"), "low", "mysterious"),
        "neon": StyleProfile(
            ("neon lights", "glowing", "electric", "futuristic", "bright neon"), "very high", "futuristic"),
        "vintage": StyleProfile(
            ("retro", "vintage", "nostalgic", "old-school", "classic"), "medium", "nostalgic"),
    }

    MOODS: Dict[str, MoodProfile] = {
        "shocked": MoodProfile(
            ("wide eyes", "open mouth", "surprised expression", "jaw-dropping"), "high",
            ("shocked", "amazed", "stunned", "astonished")),
        "excited": MoodProfile(
            ("bright smile", "energetic pose", "dynamic motion", "jumping"), "high",
            ("excited", "enthusiastic", "energetic", "vibrant")),
        "curious": MoodProfile(
            ("raised eyebrow", "questioning look", "intrigued", "interested"), "medium",
            ("curious", "intriguing", "mysterious", "thought-provoking")),
        "angry": MoodProfile(
            ("furrowed brow", "intense stare", "clenched jaw", "fierce"), "high",
            ("angry", "fierce", "intense", "powerful")),
        "happy": MoodProfile(
            ("genuine smile", "warm eyes", "relaxed face", "content"), "medium",
            ("happy", "joyful", "cheerful", "positive")),
        "sad": MoodProfile(
            ("downturned mouth", "sad eyes", "melancholic", "emotional"), "medium",
            ("sad", "emotional", "touching", "heartfelt")),
        "confused": MoodProfile(
            ("tilted head", "uncertain expression", "questioning", "puzzled"), "medium",
            ("confused", "puzzled", "uncertain", "mysterious")),
    }

    LIGHTING: Dict[str, str] = {
        "dramatic": "dramatic side lighting with deep shadows",
        "soft": "soft, diffused lighting with minimal shadows",
        "bright": "bright, even lighting with high visibility",
        "dim": "dim, moody lighting with low key setup",
        "natural": "natural daylight with realistic shadows",
        "backlit": "backlit with rim lighting and silhouette effects",
        "neon": "neon and LED lighting with glowing effects",
        "spotlight": "spotlight effect with subject illuminated against dark background",
    }

    COMPOSITIONS: Dict[str, str] = {
        "rule_of_thirds": "subject positioned at intersection of rule of thirds grid",
        "centered": "subject centered in frame for maximum impact",
        "leading_lines": "leading lines directing viewer attention to subject",
        "framing": "subject framed by natural or architectural elements",
        "depth": "multiple layers creating depth and visual interest",
        "symmetry": "symmetrical composition for balanced, professional look",
        "diagonal": "diagonal composition for dynamic, energetic feel",
        "negative_space": "generous negative space emphasizing subject",
    }

    # Symmetry descriptors produced by image analysis
    COMPOSITION_ALIASES: Dict[str, str] = {
        "symmetric": "symmetry",
        "symmetrical": "symmetry",
        "balanced": "centered",
        "asymmetric": "rule_of_thirds",
        "rule of thirds": "rule_of_thirds",
    }

    QUALITY_KEYWORDS: List[str] = [
        "4k quality",
        "ultra detailed",
        "professional photography",
        "high resolution",
        "cinematic quality",
        "studio lighting",
        "sharp focus",
        "perfect composition",
        "trending on youtube",
        "viral thumbnail style",
    ]

    VIRAL_KEYWORDS: List[str] = [
        "eye-catching",
        "attention-grabbing",
        "scroll-stopping",
        "viral-worthy",
        "trending",
        "high-engagement",
        "clickable",
        "memorable",
    ]

    # Terms the quality scorer treats as viral optimization
    VIRAL_SCORING_TERMS: List[str] = ["viral", "trending", "clickable", "engagement", "scroll-stopping"]

    TOPIC_KEYWORDS: Dict[str, List[str]] = {
        "gaming": ["epic gameplay", "intense action", "winning moment", "gameplay highlight"],
        "tech": ["cutting-edge", "innovative", "futuristic", "high-tech"],
        "crypto": ["blockchain", "digital", "decentralized", "crypto-themed"],
        "fitness": ["athletic", "muscular", "energetic", "powerful"],
        "education": ["informative", "clear", "professional", "educational"],
        "lifestyle": ["aspirational", "stylish", "trendy", "fashionable"],
        "business": ["corporate", "professional", "growth", "success"],
        "music": ["musical", "rhythmic", "colorful", "expressive"],
    }

    # Image model -> (label, positive instructions, things to avoid)
    MODEL_OPTIMIZATIONS: Dict[ImageModel, Tuple[str, List[str], List[str]]] = {
        ImageModel.DALL_E_3: (
            "DALL-E 3",
            [
                "Highly detailed and photorealistic",
                "Professional studio quality",
                "Sharp focus on subject",
                "Vibrant, saturated colors",
                "Professional composition",
                "Cinematic lighting setup",
            ],
            ["watermarks", "text that's hard to read", "blurry elements", "low contrast"],
        ),
        ImageModel.ROUTIX_V1: (
            "Routix v1",
            [
                "Bold, graphic thumbnail rendering",
                "Clear separation between subject and background",
                "Punchy, saturated colors",
            ],
            ["cluttered backgrounds", "small details", "washed-out colors"],
        ),
        ImageModel.ROUTIX_V2: (
            "Routix v2",
            [
                "Photorealistic subject with expressive face",
                "Depth of field separating subject from background",
                "High dynamic range lighting",
            ],
            ["distorted faces", "extra limbs", "unreadable text", "low contrast"],
        ),
    }

    TEMPLATES = [
        PromptTemplate(
            name="reaction",
            category="general",
            template=("YouTube reaction thumbnail: {subject}. Person with shocked/excited expression, "
                      "bright colors, high contrast. Dramatic lighting with emphasis on facial expression. "
                      "Text overlay ready space. Professional quality, trending thumbnail style."),
            description="Person with shocked/excited expression",
            tags=["reaction", "face", "expression"],
        ),
        PromptTemplate(
            name="tutorial",
            category="education",
            template=("YouTube tutorial thumbnail: {subject}. Clean, organized layout with step-by-step "
                      "visual elements. Professional, educational aesthetic. Clear hierarchy of information. "
                      "Minimalist style with focus on clarity. High contrast for readability."),
            description="Clean, organized layout",
            tags=["tutorial", "how-to", "education"],
        ),
        PromptTemplate(
            name="review",
            category="reviews",
            template=("YouTube review thumbnail: {subject}. Product or subject prominently displayed with "
                      "professional lighting. Reviewer's expression showing opinion (satisfied/impressed). "
                      "Clean background with product-focused composition. Professional, trustworthy aesthetic."),
            description="Product-focused with opinion",
            tags=["review", "product", "unboxing"],
        ),
        PromptTemplate(
            name="vlog",
            category="lifestyle",
            template=("YouTube vlog thumbnail: {subject}. Authentic, relatable scene with person in natural "
                      "setting. Warm, inviting lighting. Genuine emotion and expression. Lifestyle aesthetic. "
                      "Engaging and approachable composition."),
            description="Authentic, relatable scene",
            tags=["vlog", "lifestyle", "daily"],
        ),
        PromptTemplate(
            name="gaming",
            category="gaming",
            template=("YouTube gaming thumbnail: {subject}. Epic gaming moment with intense action. Vibrant "
                      "colors and high contrast. Player's reaction visible. Gaming aesthetic with dynamic "
                      "composition. Exciting, energetic mood."),
            description="Epic gaming moment",
            tags=["gaming", "gameplay", "action"],
        ),
        PromptTemplate(
            name="news",
            category="news",
            template=("YouTube news thumbnail: {subject}. Professional, serious aesthetic. Clear, readable "
                      "layout. High contrast for visibility. Authoritative composition. Breaking news style "
                      "with urgency. Professional quality, journalistic approach."),
            description="Professional, serious aesthetic",
            tags=["news", "breaking", "journalism"],
        ),
    ]

    # Fallbacks used whenever an input is missing or unknown
    DEFAULTS: Dict[str, str] = {
        "composition": "rule_of_thirds",
        "lighting": "dramatic",
        "style": "professional",
        "text_style": "bold",
        "text_position": "top",
        "contrast": "high",
        "template": "review",
    }

    @classmethod
    def get_template(cls, name: str) -> Optional[PromptTemplate]:
        """Get template by name, or None."""
        for template in cls.TEMPLATES:
            if template.name == name:
                return template
        return None

    @classmethod
    def get_templates_by_category(cls, category: str) -> List[PromptTemplate]:
        return [t for t in cls.TEMPLATES if t.category == category]

    @classmethod
    def search_templates(cls, query: str) -> List[PromptTemplate]:
        """Search templates by name, tags, or description."""
        query_lower = query.lower()
        results = []

        for template in cls.TEMPLATES:
            if (query_lower in template.name.lower() or
                query_lower in template.description.lower() or
                any(query_lower in tag.lower() for tag in template.tags)):
                results.append(template)

        return results

    @classmethod
    def get_all_categories(cls) -> List[str]:
        return sorted(set(t.category for t in cls.TEMPLATES))


def resolve_composition(symmetry: Optional[str]) -> str:
    """Composition instruction for a symmetry descriptor (default: rule of thirds)."""
    key = PromptLibrary.COMPOSITION_ALIASES.get(symmetry, symmetry) if symmetry else None
    if key not in PromptLibrary.COMPOSITIONS:
        key = PromptLibrary.DEFAULTS["composition"]
    return PromptLibrary.COMPOSITIONS[key]


def resolve_lighting(lighting: Optional[str]) -> str:
    """Lighting instruction for a lighting descriptor (default: dramatic)."""
    if lighting not in PromptLibrary.LIGHTING:
        lighting = PromptLibrary.DEFAULTS["lighting"]
    return PromptLibrary.LIGHTING[lighting]


def resolve_style(style: Optional[str]) -> StyleProfile:
    """Style profile for a style key (default: professional)."""
    if style not in PromptLibrary.STYLES:
        style = PromptLibrary.DEFAULTS["style"]
    return PromptLibrary.STYLES[style]


def resolve_mood(mood: Optional[str]) -> Optional[MoodProfile]:
    """Mood profile for a mood key; None when the mood is unknown."""
    return PromptLibrary.MOODS.get(mood) if mood else None


def resolve_text_style(text_style: Optional[str]) -> str:
    return text_style or PromptLibrary.DEFAULTS["text_style"]


def resolve_text_position(text_position: Optional[str]) -> str:
    return text_position or PromptLibrary.DEFAULTS["text_position"]


def resolve_contrast(contrast: Optional[str]) -> str:
    return contrast or PromptLibrary.DEFAULTS["contrast"]


class PromptComposer:
    """Builds, scores and refines prompts for the image model.

    All methods are deterministic: identical inputs give identical text.
    """

    def __init__(self):
        """Initialize the prompt composer."""
        logger.info("PromptComposer initialized")

    def build_prompt(
        self,
        user_prompt: str,
        user_metadata: Optional[UserMetadata] = None,
        reference_metadata: Optional[ThumbnailMetadata] = None,
        style: Optional[str] = None
    ) -> str:
        """Render the instruction for the image model.

        Sections, in order: subject, composition, lighting, expression and
        mood, style, color palette, text style (only when the reference has
        text), contrast, quality keywords, call to action.

        Args:
            user_prompt: The literal user request
            user_metadata: Descriptors derived from the request
            reference_metadata: Descriptors of the matched reference, if any
            style: Style key; defaults to "professional"

        Returns:
            The composed prompt
        """
        user_metadata = user_metadata or UserMetadata()
        reference = reference_metadata
        parts: List[str] = []

        parts.append(f"Create a YouTube thumbnail featuring: {user_prompt.strip()}")

        parts.append(f"Composition: {resolve_composition(reference.symmetry if reference else None)}")

        lighting = reference.lighting if reference and reference.lighting else user_metadata.lighting
        parts.append(f"Lighting: {resolve_lighting(lighting)}")

        mood = user_metadata.mood or (reference.mood if reference else None)
        mood_profile = resolve_mood(mood)
        if mood_profile:
            parts.append(f"Expression: {', '.join(mood_profile.expressions)}")
            parts.append(f"Mood: {', '.join(mood_profile.keywords)}")
        elif mood:
            parts.append(f"Mood: {mood}")

        parts.append(f"Style: {', '.join(resolve_style(style).keywords)}")

        palette = reference.color_palette if reference and reference.color_palette else user_metadata.color_preferences
        if palette:
            parts.append(f"Color palette: {', '.join(palette[:3])}")

        if reference and reference.has_text:
            parts.append(f"Text style: {resolve_text_style(reference.text_style)} typography")
            parts.append(f"Text position: {resolve_text_position(reference.text_position)} of frame")

        contrast = reference.contrast if reference and reference.contrast else user_metadata.contrast
        parts.append(f"Contrast: {resolve_contrast(contrast)} contrast for maximum impact")

        parts.append(f"Quality: {', '.join(PromptLibrary.QUALITY_KEYWORDS[:5])}")

        parts.append("Optimized for YouTube, designed to stop scrolling and drive clicks")

        prompt = "\n".join(parts)
        logger.debug(f"Composed prompt ({len(prompt)} chars)")
        return prompt

    def generate_prompt_variations(
        self,
        user_prompt: str,
        user_metadata: Optional[UserMetadata] = None,
        reference_metadata: Optional[ThumbnailMetadata] = None,
        variation_count: int = 3
    ) -> List[str]:
        """Render the same inputs under the first ``variation_count`` styles."""
        styles = list(PromptLibrary.STYLES)[:max(0, variation_count)]
        return [
            self.build_prompt(user_prompt, user_metadata, reference_metadata, style)
            for style in styles
        ]

    def enhance_for_viral_potential(self, prompt: str, topic: Optional[str] = None) -> str:
        """Append viral keywords, plus topic keywords when the topic is known."""
        enhanced = f"{prompt}\n\nMake it {', '.join(PromptLibrary.VIRAL_KEYWORDS[:3])}"

        topic_keywords = PromptLibrary.TOPIC_KEYWORDS.get((topic or "").strip().lower())
        if topic_keywords:
            enhanced += f"\n\nIncorporate: {', '.join(topic_keywords)}"

        return enhanced

    def optimize_for_model(self, prompt: str, model: ImageModel = ImageModel.DALL_E_3) -> str:
        """Append the model's positive instructions and things to avoid."""
        label, positives, negatives = PromptLibrary.MODEL_OPTIMIZATIONS[ImageModel.normalize(model)]

        optimized = f"{prompt}\n\n{label} optimization:\n"
        optimized += "\n".join(positives[:3])
        optimized += f"\n\nAvoid: {', '.join(negatives)}"
        return optimized

    def score_prompt_quality(self, prompt: str) -> PromptQualityReport:
        """Heuristically score a prompt from a base of 50.

        Points are awarded for quality keywords (+15 if more than three),
        composition (+10), lighting (+10), mood/expression (+10), color (+5),
        viral terms (+10) and a length of 100-1000 characters (+5). Missing
        categories add weaknesses and recommendations instead.
        """
        text = prompt.lower()
        strengths: List[str] = []
        weaknesses: List[str] = []
        recommendations: List[str] = []
        score = 50

        quality_keyword_count = sum(1 for kw in PromptLibrary.QUALITY_KEYWORDS if kw in text)
        if quality_keyword_count > 3:
            strengths.append("Strong quality emphasis")
            score += 15
        elif quality_keyword_count == 0:
            weaknesses.append("Missing quality keywords")
            recommendations.append('Add quality descriptors like "4k", "professional", "cinematic"')

        if "composition" in text or "rule of thirds" in text:
            strengths.append("Good composition guidance")
            score += 10
        else:
            recommendations.append("Add specific composition instructions")

        if "light" in text or "shadow" in text:
            strengths.append("Detailed lighting instructions")
            score += 10
        else:
            weaknesses.append("Missing lighting details")
            recommendations.append("Specify lighting setup (dramatic, soft, bright, etc.)")

        if "mood" in text or "expression" in text:
            strengths.append("Clear emotional direction")
            score += 10
        else:
            recommendations.append("Describe the mood or facial expression")

        if "color" in text or "palette" in text:
            strengths.append("Color palette specified")
            score += 5
        else:
            recommendations.append("Specify color palette for consistency")

        if any(term in text for term in PromptLibrary.VIRAL_SCORING_TERMS):
            strengths.append("Viral optimization included")
            score += 10

        if len(prompt) < 100:
            weaknesses.append("Prompt too short")
            recommendations.append("Expand prompt with more detailed instructions")
        elif len(prompt) > 1000:
            weaknesses.append("Prompt too long")
            recommendations.append("Condense to essential instructions")
        else:
            strengths.append("Optimal prompt length")
            score += 5

        return PromptQualityReport(
            score=max(0, min(100, score)),
            strengths=strengths,
            weaknesses=weaknesses,
            recommendations=recommendations,
        )

    def refine_prompt(
        self,
        original_prompt: str,
        feedback: Union[PromptFeedback, Dict[str, str]]
    ) -> str:
        """Rewrite a prompt according to textual feedback."""
        if not isinstance(feedback, PromptFeedback):
            feedback = PromptFeedback.model_validate(feedback)

        refined = original_prompt

        if feedback.too_much_focus:
            refined = refined.replace(
                feedback.too_much_focus,
                f"less emphasis on {feedback.too_much_focus}",
                1
            )

        if feedback.needs_more_focus:
            refined += f"\n\nIncrease focus on: {feedback.needs_more_focus}"

        if feedback.color_issue:
            refined += f"\n\nColor adjustment: {feedback.color_issue}"

        if feedback.lighting_issue:
            refined += f"\n\nLighting adjustment: {feedback.lighting_issue}"

        if feedback.composition_issue:
            refined += f"\n\nComposition adjustment: {feedback.composition_issue}"

        return refined

    def create_template_prompt(
        self,
        thumbnail_type: str,
        subject: str,
        metadata: Optional[UserMetadata] = None
    ) -> str:
        """Prompt from a thumbnail-type template (unknown types use "review")."""
        template = (PromptLibrary.get_template(thumbnail_type)
                    or PromptLibrary.get_template(PromptLibrary.DEFAULTS["template"]))
        prompt = template.format(subject=subject)

        if metadata and metadata.mood:
            prompt += f" Mood: {metadata.mood}."
        if metadata and metadata.lighting:
            prompt += f" Lighting: {metadata.lighting}."

        return prompt

    def engineer(
        self,
        user_prompt: str,
        user_metadata: Optional[UserMetadata] = None,
        reference_metadata: Optional[ThumbnailMetadata] = None,
        style: Optional[str] = None,
        topic: Optional[str] = None,
        model: ImageModel = ImageModel.DALL_E_3
    ) -> EngineeredPrompt:
        """Compose, enhance for virality, optimize for the model, and score."""
        prompt = self.build_prompt(user_prompt, user_metadata, reference_metadata, style)
        prompt = self.enhance_for_viral_potential(prompt, topic)
        prompt = self.optimize_for_model(prompt, model)
        report = self.score_prompt_quality(prompt)

        logger.info(f"Engineered prompt: {len(prompt)} chars, quality score {report.score}")
        return EngineeredPrompt(
            text=prompt,
            quality_score=report.score,
            strengths=report.strengths,
            weaknesses=report.weaknesses,
            recommendations=report.recommendations,
        )

    def __repr__(self) -> str:
        return "PromptComposer(styles={}, moods={}, templates={})".format(
            len(PromptLibrary.STYLES),
            len(PromptLibrary.MOODS),
            len(PromptLibrary.TEMPLATES)
        )


# Global prompt composer instance
_global_composer: Optional[PromptComposer] = None


def get_prompt_composer() -> PromptComposer:
    """Get or create the global prompt composer instance."""
    global _global_composer

    if _global_composer is None:
        _global_composer = PromptComposer()

    return _global_composer


def reset_prompt_composer() -> None:
    """Reset the global prompt composer instance (useful for testing)."""
    global _global_composer
    _global_composer = None
