"""Factory for creating synthesizer, analyzer and renderer backends."""

import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any, Type

from thumbforge.backends.gemini import GeminiAnalyzer
from thumbforge.backends.renderer import HttpRenderer, PassthroughRenderer
from thumbforge.backends.replicate import ReplicateSynthesizer
from thumbforge.core.base_backend import BaseAnalyzer, BaseRenderer, BaseSynthesizer
from thumbforge.utils.prompt_analyzer import HeuristicAnalyzer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackendSpec:
    """Registered backend class and what it needs to be constructed."""
    backend_class: Type
    requires_api_key: bool = False
    description: str = ""


class BackendFactory:
    """Factory class for creating backend instances.

    Backends are registered by kind ("synthesizer", "analyzer", "renderer")
    and name. Custom backends can be added with ``register_backend``.
    """

    _registry: Dict[str, Dict[str, BackendSpec]] = {
        "synthesizer": {
            "replicate": BackendSpec(ReplicateSynthesizer, True, "Replicate hosted image models"),
        },
        "analyzer": {
            "gemini": BackendSpec(GeminiAnalyzer, True, "Google Gemini vision/LLM analysis"),
            "heuristic": BackendSpec(HeuristicAnalyzer, False, "Keyword-based analysis"),
        },
        "renderer": {
            "http": BackendSpec(HttpRenderer, False, "External renderer service over HTTP"),
            "passthrough": BackendSpec(PassthroughRenderer, False, "Returns images unchanged"),
        },
    }

    @classmethod
    def _get_spec(cls, kind: str, name: str) -> BackendSpec:
        if kind not in cls._registry:
            raise ValueError(f"Unknown backend kind: '{kind}'")

        backends = cls._registry[kind]
        spec = backends.get(name.lower())
        if spec is None:
            supported = ", ".join(sorted(backends))
            raise ValueError(
                f"Unsupported {kind} backend: '{name}'. "
                f"Supported backends: {supported}"
            )
        return spec

    @classmethod
    def create_backend(
        cls,
        kind: str,
        name: str,
        api_key: Optional[str] = None,
        **options: Any
    ) -> Any:
        """Create a backend instance.

        Args:
            kind: "synthesizer", "analyzer" or "renderer"
            name: Registered backend name (e.g., "replicate", "gemini")
            api_key: API key for backends that require one
            **options: Extra constructor arguments

        Returns:
            An instance of the requested backend

        Raises:
            ValueError: If the backend is not registered
            ValueError: If an API key is required but missing
        """
        spec = cls._get_spec(kind, name)

        if spec.requires_api_key and not api_key:
            raise ValueError(f"API key is required for {name} {kind} backend")

        logger.info(f"Creating {name} {kind} backend")

        if spec.requires_api_key:
            return spec.backend_class(api_key=api_key, **options)
        return spec.backend_class(**options)

    @classmethod
    def create_synthesizer(cls, name: str, api_key: Optional[str] = None, **options: Any) -> BaseSynthesizer:
        return cls.create_backend("synthesizer", name, api_key, **options)

    @classmethod
    def create_analyzer(cls, name: str, api_key: Optional[str] = None, **options: Any) -> BaseAnalyzer:
        return cls.create_backend("analyzer", name, api_key, **options)

    @classmethod
    def create_renderer(cls, name: str, **options: Any) -> BaseRenderer:
        return cls.create_backend("renderer", name, **options)

    @classmethod
    def register_backend(
        cls,
        kind: str,
        name: str,
        backend_class: Type,
        requires_api_key: bool = False,
        description: str = ""
    ) -> None:
        """Register a custom backend under ``kind``/``name``."""
        if kind not in cls._registry:
            raise ValueError(f"Unknown backend kind: '{kind}'")
        cls._registry[kind][name.lower()] = BackendSpec(backend_class, requires_api_key, description)
        logger.info(f"Registered {kind} backend: {name}")

    @classmethod
    def get_supported_backends(cls, kind: str) -> list[str]:
        """Get list of registered backend names for a kind."""
        if kind not in cls._registry:
            raise ValueError(f"Unknown backend kind: '{kind}'")
        return sorted(cls._registry[kind])

    @classmethod
    def is_supported(cls, kind: str, name: str) -> bool:
        return name.lower() in cls._registry.get(kind, {})
