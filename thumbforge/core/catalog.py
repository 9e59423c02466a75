"""Reference catalog of curated thumbnails and their extracted descriptors."""

import json
import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import Optional, List, Dict, Any, Union

from thumbforge.core.base_backend import BaseAnalyzer
from thumbforge.core.models import ReferenceThumbnail, ThumbnailMetadata, TopicPreference

logger = logging.getLogger(__name__)


class BaseCatalogStore(ABC):
    """Persistence boundary for the reference catalog."""

    @abstractmethod
    def list_active(self) -> List[ReferenceThumbnail]:
        """All active references, highest viral score first."""
        pass

    @abstractmethod
    def get_metadata(self, reference_id: str) -> Optional[ThumbnailMetadata]:
        pass

    @abstractmethod
    def get_topic_preference(self, topic: str) -> Optional[TopicPreference]:
        pass


def _by_viral_score(references: List[ReferenceThumbnail]) -> List[ReferenceThumbnail]:
    return sorted(references, key=lambda r: (-r.viral_score, r.id))


class InMemoryCatalogStore(BaseCatalogStore):
    """Catalog store held in process memory.

    Example:
        store = InMemoryCatalogStore()
        ref = store.add_reference(ReferenceThumbnail(...))
        store.store_metadata(ThumbnailMetadata(reference_thumbnail_id=ref.id, ...))
    """

    def __init__(self):
        self._references: Dict[str, ReferenceThumbnail] = {}
        self._metadata: Dict[str, ThumbnailMetadata] = {}
        self._topics: Dict[str, TopicPreference] = {}
        self._lock = Lock()

    def add_reference(self, reference: ReferenceThumbnail) -> ReferenceThumbnail:
        """Register a reference thumbnail, replacing any with the same id."""
        with self._lock:
            self._references[reference.id] = reference
        logger.info(f"Registered reference thumbnail: {reference.id} ({reference.title})")
        return reference

    def store_metadata(self, metadata: ThumbnailMetadata) -> ThumbnailMetadata:
        """Attach extracted descriptors to a registered reference.

        Raises:
            KeyError: If the reference is unknown
        """
        with self._lock:
            if metadata.reference_thumbnail_id not in self._references:
                raise KeyError(f"Unknown reference thumbnail: {metadata.reference_thumbnail_id}")
            self._metadata[metadata.reference_thumbnail_id] = metadata
        return metadata

    def ingest_reference(self, reference: ReferenceThumbnail, analyzer: BaseAnalyzer) -> ThumbnailMetadata:
        """Register a reference together with descriptors extracted from its image.

        The image is analyzed first, so a failed analysis leaves the catalog
        unchanged.

        Raises:
            AnalysisError: If the analyzer cannot extract descriptors
        """
        metadata = analyzer.analyze_thumbnail(reference.image_url, reference.id)
        self.add_reference(reference)
        return self.store_metadata(metadata)

    def set_active(self, reference_id: str, is_active: bool) -> ReferenceThumbnail:
        with self._lock:
            reference = self._references[reference_id].model_copy(update={"is_active": is_active})
            self._references[reference_id] = reference
        return reference

    def update_topic_preferences(
        self,
        topic: str,
        reference_ids: List[str],
        style_preferences: Optional[Dict[str, float]] = None,
        color_preferences: Optional[Dict[str, float]] = None
    ) -> TopicPreference:
        """Create or replace the preferred references for a topic."""
        preference = TopicPreference(
            topic=topic,
            reference_ids=reference_ids,
            style_preferences=style_preferences or {},
            color_preferences=color_preferences or {},
        )
        with self._lock:
            self._topics[preference.topic] = preference
        logger.info(f"Topic preferences updated for '{preference.topic}': {reference_ids}")
        return preference

    def list_active(self) -> List[ReferenceThumbnail]:
        with self._lock:
            active = [r for r in self._references.values() if r.is_active]
        return _by_viral_score(active)

    def list_all(self) -> List[ReferenceThumbnail]:
        with self._lock:
            return _by_viral_score(list(self._references.values()))

    def get_metadata(self, reference_id: str) -> Optional[ThumbnailMetadata]:
        with self._lock:
            return self._metadata.get(reference_id)

    def get_topic_preference(self, topic: str) -> Optional[TopicPreference]:
        with self._lock:
            return self._topics.get(topic.strip().lower())

    def get_stats(self) -> Dict[str, Any]:
        """Summary statistics over every registered reference."""
        references = self.list_all()
        if not references:
            return {
                "total_thumbnails": 0,
                "categories": [],
                "styles": [],
                "average_viral_score": 0.0,
                "highest_viral_score": 0.0,
            }
        scores = [r.viral_score for r in references]
        return {
            "total_thumbnails": len(references),
            "categories": sorted({r.category for r in references}),
            "styles": sorted({r.style for r in references}),
            "average_viral_score": sum(scores) / len(scores),
            "highest_viral_score": max(scores),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryCatalogStore":
        """Build a store from ``{"references": [...], "topics": [...]}``.

        Each reference entry may carry a nested ``metadata`` object.
        """
        store = cls()
        for entry in data.get("references", []):
            entry = dict(entry)
            metadata = entry.pop("metadata", None)
            reference = store.add_reference(ReferenceThumbnail(**entry))
            if metadata:
                store.store_metadata(
                    ThumbnailMetadata(reference_thumbnail_id=reference.id, **metadata)
                )
        for topic in data.get("topics", []):
            store.update_topic_preferences(
                topic["topic"],
                topic.get("reference_ids", []),
                topic.get("style_preferences"),
                topic.get("color_preferences"),
            )
        return store

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "InMemoryCatalogStore":
        """Load a catalog from a JSON file."""
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        store = cls.from_dict(data)
        logger.info(f"Loaded {len(store.list_all())} reference thumbnails from {path}")
        return store


class ReferenceCatalog:
    """Read-through cache in front of a catalog store.

    The active reference list, per-reference metadata and topic preferences
    are cached for at most ``refresh_seconds``; after that the next read
    reloads from the store.

    Attributes:
        store: Underlying catalog store
        refresh_seconds: Maximum age of cached data
    """

    def __init__(self, store: BaseCatalogStore, refresh_seconds: float = 300):
        self.store = store
        self.refresh_seconds = refresh_seconds
        self._lock = Lock()
        self._loaded_at: Optional[float] = None
        self._active: List[ReferenceThumbnail] = []
        self._metadata: Dict[str, Optional[ThumbnailMetadata]] = {}
        self._topics: Dict[str, Optional[TopicPreference]] = {}

    def _ensure_fresh(self) -> None:
        # Caller holds self._lock
        now = time.time()
        if self._loaded_at is not None and now - self._loaded_at < self.refresh_seconds:
            return
        self._active = self.store.list_active()
        self._metadata = {}
        self._topics = {}
        self._loaded_at = now
        logger.debug(f"Reference catalog refreshed: {len(self._active)} active references")

    def invalidate(self) -> None:
        """Drop cached data so the next read reloads from the store."""
        with self._lock:
            self._loaded_at = None

    def list_active(self) -> List[ReferenceThumbnail]:
        with self._lock:
            self._ensure_fresh()
            return list(self._active)

    def list_active_by_topic(self, topic: str) -> List[ReferenceThumbnail]:
        """Active references whose category is ``topic``."""
        topic = topic.strip().lower()
        return [r for r in self.list_active() if r.category == topic]

    def list_active_by_style(self, style: str) -> List[ReferenceThumbnail]:
        style = style.strip().lower()
        return [r for r in self.list_active() if r.style == style]

    def get_reference(self, reference_id: str) -> Optional[ReferenceThumbnail]:
        return next((r for r in self.list_active() if r.id == reference_id), None)

    def get_metadata(self, reference_id: str) -> Optional[ThumbnailMetadata]:
        with self._lock:
            self._ensure_fresh()
            if reference_id not in self._metadata:
                self._metadata[reference_id] = self.store.get_metadata(reference_id)
            return self._metadata[reference_id]

    def get_topic_preference(self, topic: str) -> Optional[TopicPreference]:
        key = topic.strip().lower()
        with self._lock:
            self._ensure_fresh()
            if key not in self._topics:
                self._topics[key] = self.store.get_topic_preference(key)
            return self._topics[key]
