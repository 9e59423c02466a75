"""Shared test fixtures and configuration."""

import pytest
import os
from unittest.mock import Mock

from thumbforge.core.catalog import InMemoryCatalogStore, ReferenceCatalog
from thumbforge.core.models import (
    ImageModel,
    ReferenceThumbnail,
    SynthesizedImage,
    ThumbnailMetadata,
    UserMetadata,
)
from thumbforge.utils.prompt_engineer import reset_prompt_composer


@pytest.fixture
def sample_prompt():
    """Return a sample prompt for testing."""
    return "Create a gaming thumbnail with a shocked face"


@pytest.fixture
def shocked_metadata():
    """Return user metadata for a shocked gaming request."""
    return UserMetadata(
        mood="shocked",
        emotional_expression="shocked",
        lighting="dramatic",
        subject_position="center",
        text_position="top",
        contrast="high",
        has_face=True,
    )


@pytest.fixture
def catalog_store():
    """Return a catalog store with gaming and tech references."""
    store = InMemoryCatalogStore()
    store.add_reference(ReferenceThumbnail(
        id="ref-gaming-shocked", title="Shocked Gamer", image_url="https://example.com/g1.jpg",
        category="gaming", style="dramatic", viral_score=0.85,
    ))
    store.add_reference(ReferenceThumbnail(
        id="ref-gaming-happy", title="Happy Gamer", image_url="https://example.com/g2.jpg",
        category="gaming", style="colorful", viral_score=0.95,
    ))
    store.add_reference(ReferenceThumbnail(
        id="ref-tech", title="Tech Review", image_url="https://example.com/t1.jpg",
        category="tech", style="professional", viral_score=0.9,
    ))
    store.store_metadata(ThumbnailMetadata(
        reference_thumbnail_id="ref-gaming-shocked",
        subject_position="center", text_position="top", mood="shocked",
        emotional_expression="shocked", lighting="dramatic", contrast="high",
        color_palette=["red", "yellow", "black", "white"], has_text=True,
        text_style="bold", has_face=True, symmetry="balanced",
    ))
    store.store_metadata(ThumbnailMetadata(
        reference_thumbnail_id="ref-gaming-happy",
        subject_position="left", mood="happy", emotional_expression="happy",
        lighting="bright", contrast="medium", color_palette=["blue", "green"],
    ))
    store.store_metadata(ThumbnailMetadata(
        reference_thumbnail_id="ref-tech",
        subject_position="right", mood="curious", lighting="soft", contrast="high",
    ))
    return store


@pytest.fixture
def reference_catalog(catalog_store):
    """Return a reference catalog over the sample store."""
    return ReferenceCatalog(catalog_store)


@pytest.fixture
def sample_synthesized_image():
    """Return a sample SynthesizedImage for testing."""
    return SynthesizedImage(
        url="https://example.com/generated.png",
        prompt="test prompt",
        model=ImageModel.DALL_E_3,
        backend="test_backend",
    )


@pytest.fixture
def mock_synthesizer_backend(sample_synthesized_image):
    """Return a mocked synthesizer backend."""
    backend = Mock()
    backend.name = "MockSynth"
    backend.synthesize.return_value = sample_synthesized_image
    backend.health_check.return_value = True
    return backend


@pytest.fixture
def test_api_key():
    """Return a test API key."""
    return "r8_test_token_12345"


@pytest.fixture(autouse=True)
def _reset_composer():
    """Reset the global prompt composer between tests."""
    reset_prompt_composer()
    yield
    reset_prompt_composer()


# Skip integration tests unless explicitly requested
def pytest_collection_modifyitems(config, items):
    """Automatically skip integration tests unless RUN_INTEGRATION_TESTS is set."""
    skip_integration = pytest.mark.skip(reason="Integration tests disabled (set RUN_INTEGRATION_TESTS=true to enable)")

    for item in items:
        if "integration" in item.keywords:
            if not os.getenv("RUN_INTEGRATION_TESTS", "").lower() == "true":
                item.add_marker(skip_integration)
