"""Image synthesizer adapter with bounded retry for transient failures."""

import logging

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from thumbforge.core.base_backend import BaseSynthesizer
from thumbforge.core.errors import SynthesisError, SynthesisFailure
from thumbforge.core.models import ImageModel, SynthesizedImage

logger = logging.getLogger(__name__)


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, SynthesisError) and error.retryable


class ImageSynthesizer:
    """Call boundary to the external image-generation service.

    Only ``rate_limited`` and ``timeout`` failures are retried, up to
    ``max_attempts`` calls with exponential backoff. ``content_rejected`` and
    ``unknown`` failures propagate on the first occurrence.

    Attributes:
        backend: The image-generation backend
        max_attempts: Total number of calls allowed per synthesis
    """

    def __init__(
        self,
        backend: BaseSynthesizer,
        max_attempts: int = 3,
        backoff_multiplier: float = 1,
        backoff_min: float = 2,
        backoff_max: float = 10
    ):
        """Initialize the synthesizer.

        Args:
            backend: The backend to use for generation
            max_attempts: Maximum number of calls, including the first
            backoff_multiplier: Multiplier for the exponential wait
            backoff_min: Minimum wait between attempts in seconds
            backoff_max: Maximum wait between attempts in seconds
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.backend = backend
        self.max_attempts = max_attempts
        self.backoff_multiplier = backoff_multiplier
        self.backoff_min = backoff_min
        self.backoff_max = backoff_max

        logger.info(
            f"Initialized ImageSynthesizer with backend: {backend.name}, "
            f"max_attempts: {max_attempts}"
        )

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.backoff_multiplier,
                min=self.backoff_min,
                max=self.backoff_max
            ),
            retry=retry_if_exception(_is_retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True
        )

    def synthesize(self, prompt: str, model: ImageModel) -> SynthesizedImage:
        """Generate one image for ``prompt``.

        Args:
            prompt: The engineered prompt
            model: The requested image model

        Returns:
            The synthesized image

        Raises:
            SynthesisError: If generation fails, after retries where allowed
        """
        logger.info(f"Synthesizing with {self.backend.name} using model {model.value}")

        try:
            for attempt in self._retrying():
                with attempt:
                    image = self.backend.synthesize(prompt, model)
        except SynthesisError as e:
            logger.error(f"Synthesis failed ({e.kind.value}) with {self.backend.name}: {e}")
            raise
        except Exception as e:
            logger.error(f"Unexpected synthesis error with {self.backend.name}: {e}")
            raise SynthesisError(SynthesisFailure.UNKNOWN, f"Image generation failed: {e}") from e

        if not image.url:
            raise SynthesisError(SynthesisFailure.UNKNOWN, "No image URL returned from generation")

        logger.info(f"Successfully synthesized image with {self.backend.name}")
        return image

    def health_check(self) -> dict[str, bool]:
        """Check health of the configured backend.

        Returns:
            Dictionary mapping backend name to health status
        """
        results = {self.backend.name: self.backend.health_check()}
        logger.info(f"Health check results: {results}")
        return results
