"""Unit tests for the reference catalog."""

import json

import pytest
from unittest.mock import Mock, patch

from thumbforge.core.catalog import InMemoryCatalogStore, ReferenceCatalog
from thumbforge.core.errors import AnalysisError
from thumbforge.core.models import ReferenceThumbnail, ThumbnailMetadata
from thumbforge.utils.prompt_analyzer import HeuristicAnalyzer


class TestInMemoryCatalogStore:
    """Tests for InMemoryCatalogStore."""

    def test_list_active_sorted_by_viral_score(self, catalog_store):
        """Test that active references come highest viral score first."""
        ids = [r.id for r in catalog_store.list_active()]
        assert ids == ["ref-gaming-happy", "ref-tech", "ref-gaming-shocked"]

    def test_inactive_references_hidden(self, catalog_store):
        """Test that deactivated references are not listed as active."""
        catalog_store.set_active("ref-tech", False)

        assert "ref-tech" not in [r.id for r in catalog_store.list_active()]
        assert "ref-tech" in [r.id for r in catalog_store.list_all()]

    def test_store_metadata_unknown_reference(self):
        """Test that metadata for an unknown reference is rejected."""
        store = InMemoryCatalogStore()
        with pytest.raises(KeyError):
            store.store_metadata(ThumbnailMetadata(reference_thumbnail_id="missing"))

    def test_topic_preferences(self, catalog_store):
        """Test creating and reading topic preferences."""
        catalog_store.update_topic_preferences("Gaming", ["ref-gaming-shocked"], {"dramatic": 0.9})

        preference = catalog_store.get_topic_preference("gaming")
        assert preference.reference_ids == ["ref-gaming-shocked"]
        assert preference.style_preferences == {"dramatic": 0.9}

    def test_get_stats(self, catalog_store):
        """Test catalog statistics."""
        stats = catalog_store.get_stats()

        assert stats["total_thumbnails"] == 3
        assert stats["categories"] == ["gaming", "tech"]
        assert stats["highest_viral_score"] == 0.95
        assert stats["average_viral_score"] == pytest.approx(0.9)

    def test_get_stats_empty(self):
        """Test statistics for an empty catalog."""
        assert InMemoryCatalogStore().get_stats()["total_thumbnails"] == 0

    def test_from_file(self, tmp_path):
        """Test loading a catalog with nested metadata and topics from JSON."""
        data = {
            "references": [{
                "id": "ref-1", "title": "One", "image_url": "https://example.com/1.jpg",
                "category": "Gaming", "style": "Dramatic", "viral_score": 0.7,
                "metadata": {"mood": "shocked", "color_palette": "red,black"},
            }],
            "topics": [{"topic": "gaming", "reference_ids": ["ref-1"]}],
        }
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps(data))

        store = InMemoryCatalogStore.from_file(path)

        reference = store.list_active()[0]
        assert reference.category == "gaming"
        assert reference.style == "dramatic"
        assert store.get_metadata("ref-1").color_palette == ["red", "black"]
        assert store.get_topic_preference("gaming").reference_ids == ["ref-1"]

    def test_ingest_reference(self):
        """Test registering a reference with descriptors extracted from its image."""
        store = InMemoryCatalogStore()
        reference = ReferenceThumbnail(
            id="ref-new", title="New", image_url="https://example.com/new.jpg",
            category="tech", style="professional",
        )
        analyzer = Mock()
        analyzer.analyze_thumbnail.return_value = ThumbnailMetadata(
            reference_thumbnail_id="ref-new", mood="curious", confidence=0.8
        )

        metadata = store.ingest_reference(reference, analyzer)

        analyzer.analyze_thumbnail.assert_called_once_with("https://example.com/new.jpg", "ref-new")
        assert metadata.mood == "curious"
        assert store.get_metadata("ref-new") == metadata
        assert [r.id for r in store.list_active()] == ["ref-new"]

    def test_ingest_reference_analysis_failure(self):
        """Test that a failed analysis leaves the catalog unchanged."""
        store = InMemoryCatalogStore()
        reference = ReferenceThumbnail(
            id="ref-new", title="New", image_url="https://example.com/new.jpg",
            category="tech", style="professional",
        )

        with pytest.raises(AnalysisError, match="cannot analyze thumbnail images"):
            store.ingest_reference(reference, HeuristicAnalyzer())

        assert store.list_all() == []


class TestReferenceCatalog:
    """Tests for the read-through ReferenceCatalog cache."""

    def test_list_active_by_topic(self, reference_catalog):
        """Test filtering by topic category."""
        ids = [r.id for r in reference_catalog.list_active_by_topic("Gaming")]
        assert ids == ["ref-gaming-happy", "ref-gaming-shocked"]

    def test_list_active_by_style(self, reference_catalog):
        """Test filtering by style."""
        assert [r.id for r in reference_catalog.list_active_by_style("professional")] == ["ref-tech"]

    def test_get_reference(self, reference_catalog):
        """Test looking up an active reference by id."""
        assert reference_catalog.get_reference("ref-tech").title == "Tech Review"
        assert reference_catalog.get_reference("missing") is None

    def test_cache_serves_stale_until_refresh(self, catalog_store):
        """Test that store changes appear only after the refresh interval."""
        with patch('thumbforge.core.catalog.time.time', return_value=1000.0):
            catalog = ReferenceCatalog(catalog_store, refresh_seconds=60)
            assert len(catalog.list_active()) == 3

        catalog_store.add_reference(ReferenceThumbnail(
            id="ref-new", title="New", image_url="https://example.com/n.jpg",
            category="music", style="neon",
        ))

        with patch('thumbforge.core.catalog.time.time', return_value=1030.0):
            assert len(catalog.list_active()) == 3

        with patch('thumbforge.core.catalog.time.time', return_value=1061.0):
            assert len(catalog.list_active()) == 4

    def test_invalidate_forces_reload(self, catalog_store):
        """Test that invalidate drops cached data."""
        catalog = ReferenceCatalog(catalog_store, refresh_seconds=3600)
        catalog.list_active()

        catalog_store.set_active("ref-tech", False)
        assert len(catalog.list_active()) == 3

        catalog.invalidate()
        assert len(catalog.list_active()) == 2

    def test_metadata_cached(self, catalog_store):
        """Test that metadata lookups hit the store once per refresh."""
        catalog = ReferenceCatalog(catalog_store, refresh_seconds=3600)

        with patch.object(catalog_store, "get_metadata", wraps=catalog_store.get_metadata) as spy:
            catalog.get_metadata("ref-tech")
            catalog.get_metadata("ref-tech")

        assert spy.call_count == 1
