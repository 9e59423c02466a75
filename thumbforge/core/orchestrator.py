"""State machine driving one thumbnail generation from request to delivery."""

import logging
from typing import Optional, List, Any

from pydantic import ValidationError as PydanticValidationError

from thumbforge.core.base_backend import BaseAnalyzer
from thumbforge.core.errors import GenerationError, LedgerError, ValidationError
from thumbforge.core.image_synthesizer import ImageSynthesizer
from thumbforge.core.ledger import CreditLedger, GenerationCharge
from thumbforge.core.matcher import Matcher
from thumbforge.core.models import (
    GenerationRecord,
    GenerationRequest,
    GenerationResult,
    GenerationStatus,
    ImageModel,
    QualityMetrics,
    UserMetadata,
)
from thumbforge.core.post_processor import PostProcessor
from thumbforge.core.store import GenerationStore
from thumbforge.utils.prompt_analyzer import extract_topic_from_prompt
from thumbforge.utils.prompt_engineer import PromptComposer

logger = logging.getLogger(__name__)


DEFAULT_CREDIT_COST = 2


def _describe_validation_error(error: PydanticValidationError) -> str:
    details = error.errors()
    if not details:
        return "Invalid generation request"
    first = details[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "request"
    return f"Invalid {field}: {first.get('msg', 'invalid value')}"


class GenerationOrchestrator:
    """Runs the generation pipeline and owns its failure semantics.

    Stages run in order: validating (including the credit debit), analyzing,
    matching, prompting, generating, post_processing, completed. Every
    transition is persisted. Any failure after the debit marks the record
    failed and refunds the debit exactly once. Callers always receive a
    completed or failed result, never an exception, except for interrupts
    which are re-raised after the record is failed and refunded.

    Attributes:
        analyzer: Prompt and image analysis backend
        matcher: Reference matcher
        composer: Prompt composer
        synthesizer: Image synthesizer adapter
        post_processor: Post-production stage
        ledger: Credit ledger
        store: Generation record store
        credit_cost: Credits charged per generation
        default_model: Image model used when a request names none
    """

    def __init__(
        self,
        analyzer: BaseAnalyzer,
        matcher: Matcher,
        composer: PromptComposer,
        synthesizer: ImageSynthesizer,
        post_processor: PostProcessor,
        ledger: CreditLedger,
        store: GenerationStore,
        credit_cost: int = DEFAULT_CREDIT_COST,
        default_model: ImageModel = ImageModel.DALL_E_3
    ):
        if credit_cost < 1:
            raise ValueError("credit_cost must be at least 1")

        self.analyzer = analyzer
        self.matcher = matcher
        self.composer = composer
        self.synthesizer = synthesizer
        self.post_processor = post_processor
        self.ledger = ledger
        self.store = store
        self.credit_cost = credit_cost
        self.default_model = ImageModel.normalize(default_model)

        logger.info(
            f"Initialized GenerationOrchestrator (analyzer: {analyzer.name}, "
            f"synthesizer: {synthesizer.backend.name}, credit cost: {credit_cost})"
        )

    def _transition(self, record: GenerationRecord, status: GenerationStatus, **payload: Any) -> GenerationRecord:
        record = self.store.save(record.advance(status, **payload))
        logger.info(f"Generation {record.id}: {status.value}")
        return record

    def _fail(
        self,
        record: GenerationRecord,
        charge: Optional[GenerationCharge],
        message: str,
        error_type: str
    ) -> GenerationRecord:
        """Refund any held charge, then persist the failed record.

        A record already stored as terminal was delivered or failed before;
        it is returned unchanged and its charge is left as it is.
        """
        stored = self.store.get(record.id)
        if stored is not None and stored.is_terminal:
            logger.warning(
                f"Generation {record.id} is already {stored.status.value}; "
                f"not failing it for: {message}"
            )
            return stored

        if charge is not None:
            try:
                refund = charge.refund(message)
            except LedgerError as e:
                logger.exception(f"Refund failed for generation {record.id}")
                message = f"{message} (refund failed: {e})"
            else:
                if refund is not None:
                    logger.info(f"Refunded {refund.amount} credits for generation {record.id}")

        failed = self.store.save(record.fail(message, error_type))
        logger.error(f"Generation {record.id} failed during {record.status.value}: {message}")
        return failed

    def _validate(
        self,
        user_id: Any,
        user_prompt: Any,
        uploaded_image_refs: Optional[List[str]],
        preferred_style: Optional[str],
        preferred_mood: Optional[str],
        topic: Optional[str],
        model: Any
    ) -> GenerationRequest:
        try:
            return GenerationRequest(
                user_id=user_id,
                user_prompt=user_prompt,
                uploaded_image_refs=uploaded_image_refs or [],
                preferred_style=preferred_style,
                preferred_mood=preferred_mood,
                topic=topic,
                model=model or self.default_model,
            )
        except PydanticValidationError as e:
            raise ValidationError(_describe_validation_error(e)) from e

    def _analyze(self, request: GenerationRequest) -> UserMetadata:
        metadata = self.analyzer.analyze(request.user_prompt, request.uploaded_image_refs)

        overrides = {}
        if request.preferred_mood:
            overrides["mood"] = request.preferred_mood
        if request.preferred_style:
            overrides["style_preference"] = request.preferred_style
        if overrides:
            metadata = metadata.model_copy(update=overrides)

        logger.debug(f"Extracted elements: {metadata.extracted_elements()}")
        return metadata

    def _observe(self, image_url: str) -> QualityMetrics:
        """Best-effort metrics for the generated image."""
        try:
            return self.analyzer.assess_image(image_url)
        except Exception as e:
            logger.warning(f"Image assessment unavailable, continuing without metrics: {e}")
            return QualityMetrics()

    def generate(
        self,
        user_id: str,
        user_prompt: str,
        uploaded_image_refs: Optional[List[str]] = None,
        preferred_style: Optional[str] = None,
        preferred_mood: Optional[str] = None,
        topic: Optional[str] = None,
        model: Optional[str] = None
    ) -> GenerationResult:
        """Generate a thumbnail.

        Args:
            user_id: User being charged
            user_prompt: Natural-language request (3-2000 chars after trimming)
            uploaded_image_refs: URLs of images the user uploaded
            preferred_style: Optional style key
            preferred_mood: Optional mood key, overriding analysis
            topic: Optional topic; extracted from the prompt when missing
            model: Image model; unknown values use the default model

        Returns:
            A completed or failed GenerationResult
        """
        record = self.store.save(GenerationRecord(
            user_id=str(user_id) if user_id is not None else "",
            user_prompt=user_prompt if isinstance(user_prompt, str) else "",
        ))
        logger.info(f"Generation {record.id} started for user {record.user_id}")

        charge: Optional[GenerationCharge] = None
        try:
            record = self._transition(record, GenerationStatus.VALIDATING)
            request = self._validate(
                user_id, user_prompt, uploaded_image_refs,
                preferred_style, preferred_mood, topic, model
            )
            charge = GenerationCharge(self.ledger, request.user_id, record.id, self.credit_cost)
            charge.hold()

            record = self._transition(
                record, GenerationStatus.ANALYZING,
                request=request, credits_charged=self.credit_cost
            )
            metadata = self._analyze(request)

            record = self._transition(record, GenerationStatus.MATCHING, user_metadata=metadata)
            resolved_topic = request.topic or extract_topic_from_prompt(request.user_prompt)
            match = self.matcher.find_best_match(metadata, resolved_topic, request.preferred_style)

            record = self._transition(record, GenerationStatus.PROMPTING, match=match)
            engineered = self.composer.engineer(
                request.user_prompt,
                metadata,
                match.metadata if match else None,
                style=request.preferred_style or metadata.style_preference,
                topic=resolved_topic,
                model=request.model,
            )

            record = self._transition(record, GenerationStatus.GENERATING, engineered_prompt=engineered)
            image = self.synthesizer.synthesize(engineered.text, request.model)

            record = self._transition(record, GenerationStatus.POST_PROCESSING, synthesized_image=image)
            outcome = self.post_processor.complete_post_production_pipeline(
                image.url, self._observe(image.url)
            )

            record = self._transition(
                record, GenerationStatus.COMPLETED,
                quality=outcome.quality_result,
                post_production=outcome.applied_effects,
                final_image_url=outcome.processed_image_url,
            )
            charge.settle()

        except GenerationError as e:
            record = self._fail(record, charge, e.message, type(e).__name__)
        except Exception as e:
            logger.exception(f"Unexpected error in generation {record.id}")
            record = self._fail(
                record, charge,
                f"Unexpected error during {record.status.value}: {e}",
                type(e).__name__
            )
        except BaseException as e:
            self._fail(record, charge, "Generation interrupted", type(e).__name__)
            raise

        return GenerationResult.from_record(record)

    def get_generation(self, generation_id: str) -> Optional[GenerationResult]:
        record = self.store.get(generation_id)
        return GenerationResult.from_record(record) if record else None

    def get_history(self, user_id: str, limit: Optional[int] = None) -> List[GenerationResult]:
        return [GenerationResult.from_record(r) for r in self.store.list_for_user(user_id, limit)]
