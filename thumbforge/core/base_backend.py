"""Abstract base classes for the external collaborators of the pipeline."""

from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any

from thumbforge.core.errors import AnalysisError
from thumbforge.core.models import (
    ImageModel,
    QualityMetrics,
    SynthesizedImage,
    ThumbnailMetadata,
    UserMetadata,
)


class BaseSynthesizer(ABC):
    """Abstract interface that all image-generation backends must implement.

    This defines the contract for backend implementations, allowing the pipeline
    to swap image-generation services without changing orchestration logic.

    Attributes:
        api_key: Optional API key for cloud-based backends
    """

    def __init__(self, api_key: Optional[str] = None):
        """Initialize the backend.

        Args:
            api_key: Optional API key for authentication with cloud services
        """
        self.api_key = api_key

    @abstractmethod
    def synthesize(self, prompt: str, model: ImageModel) -> SynthesizedImage:
        """Generate an image from a text prompt.

        Args:
            prompt: The engineered prompt
            model: The requested image model

        Returns:
            SynthesizedImage referencing the generated image

        Raises:
            SynthesisError: With a kind of rate_limited, content_rejected,
                timeout or unknown
        """
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """Check if the backend is available and working.

        Returns:
            True if the backend is healthy and can generate images, False otherwise
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the human-readable name of this backend."""
        pass

    @property
    @abstractmethod
    def supported_models(self) -> list[str]:
        """Get a list of provider models this backend can call."""
        pass

    def __repr__(self) -> str:
        """String representation of the backend."""
        return f"{self.__class__.__name__}(name='{self.name}')"


class BaseAnalyzer(ABC):
    """Vision/LLM analysis service.

    Analysis is best-effort: implementations return whatever descriptors
    they could derive and leave the rest unset.
    """

    @abstractmethod
    def analyze(self, prompt: str, images: Optional[List[str]] = None) -> UserMetadata:
        """Derive descriptors from a prompt and optional uploaded images.

        Raises:
            AnalysisError: If no analysis could be produced at all
        """
        pass

    @abstractmethod
    def assess_image(self, image_url: str) -> QualityMetrics:
        """Observe quality metrics of a generated image.

        Returns:
            QualityMetrics, possibly with some or all values missing
        """
        pass

    def analyze_thumbnail(self, image_url: str, reference_thumbnail_id: str) -> ThumbnailMetadata:
        """Extract compositional descriptors from a reference thumbnail.

        Raises:
            AnalysisError: If this analyzer cannot look at images
        """
        raise AnalysisError(f"{self.name} analyzer cannot analyze thumbnail images")

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"


class BaseRenderer(ABC):
    """External renderer that applies named post-production operations."""

    @abstractmethod
    def render(self, image_url: str, operations: List[Dict[str, Any]]) -> str:
        """Apply ``operations`` in order to the image.

        Returns:
            URL of the processed image

        Raises:
            PostProductionError: ``fatal`` is True when the renderer is unreachable
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"
