"""Unit tests for the generation record store."""

from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from thumbforge.core.errors import RecordImmutableError
from thumbforge.core.models import (
    GenerationRecord,
    GenerationRequest,
    GenerationStatus,
    QualityAssessment,
    QualityMetrics,
    UserMetadata,
)
from thumbforge.core.store import GenerationStore


def _completed(user_id, score, credits=2, created_at=None):
    record = GenerationRecord(
        user_id=user_id, user_prompt="p", credits_charged=credits,
        created_at=created_at or datetime.now(),
    )
    quality = QualityAssessment(metrics=QualityMetrics(sharpness=score), overall_score=score, is_valid=True)
    return record.advance(GenerationStatus.COMPLETED, quality=quality)


class TestGenerationStore:
    """Tests for GenerationStore."""

    def test_read_your_writes(self):
        """Test that get returns the latest saved version."""
        store = GenerationStore()
        record = store.save(GenerationRecord(user_id="u", user_prompt="p"))
        advanced = store.save(record.advance(GenerationStatus.VALIDATING))

        assert store.get(record.id) == advanced
        assert store.get("missing") is None

    def test_status_history(self):
        """Test that every persisted transition is remembered."""
        store = GenerationStore()
        record = store.save(GenerationRecord(user_id="u", user_prompt="p"))
        record = store.save(record.advance(GenerationStatus.VALIDATING))
        store.save(record.fail("boom"))

        assert store.get_status_history(record.id) == [
            GenerationStatus.PENDING, GenerationStatus.VALIDATING, GenerationStatus.FAILED
        ]

    def test_rejects_writes_over_terminal(self):
        """Test that a terminal record cannot be overwritten."""
        store = GenerationStore()
        record = GenerationRecord(user_id="u", user_prompt="p")
        store.save(record.fail("boom"))

        with pytest.raises(RecordImmutableError):
            store.save(record.advance(GenerationStatus.VALIDATING))

    def test_list_for_user_newest_first(self):
        """Test listing a user's records newest first, with a limit."""
        store = GenerationStore()
        now = datetime.now()
        old = store.save(_completed("u", 70, created_at=now - timedelta(minutes=5)))
        new = store.save(_completed("u", 80, created_at=now))
        store.save(_completed("other", 90))

        assert [r.id for r in store.list_for_user("u")] == [new.id, old.id]
        assert [r.id for r in store.list_for_user("u", limit=1)] == [new.id]

    def test_get_stats(self):
        """Test per-user statistics."""
        store = GenerationStore()
        store.save(_completed("u", 70))
        store.save(_completed("u", 80))
        store.save(GenerationRecord(user_id="u", user_prompt="p", credits_charged=2).fail("boom"))

        stats = store.get_stats("u")

        assert stats["total_generations"] == 3
        assert stats["completed"] == 2
        assert stats["failed"] == 1
        assert stats["average_quality"] == 75.0
        assert stats["credits_used"] == 4

    def test_get_stats_empty(self):
        """Test statistics for a user without generations."""
        assert GenerationStore().get_stats("nobody")["average_quality"] == 0.0

    def test_stored_terminal_record_not_shared(self):
        """Test that changing a returned record's payloads leaves the stored one intact."""
        store = GenerationStore()
        request = GenerationRequest(user_id="u", user_prompt="A shocked gamer", uploaded_image_refs=["a.png"])
        record = GenerationRecord(user_id="u", user_prompt="A shocked gamer").advance(
            GenerationStatus.ANALYZING, request=request
        )
        completed = store.save(record.advance(
            GenerationStatus.COMPLETED,
            user_metadata=UserMetadata(mood="shocked", color_preferences=["red"]),
            quality=QualityAssessment(metrics=QualityMetrics(brightness=65), overall_score=65, is_valid=True),
        ))

        fetched = store.get(completed.id)
        with pytest.raises(ValidationError):
            fetched.user_metadata.mood = "happy"
        with pytest.raises(ValidationError):
            fetched.quality.metrics.brightness = 1
        fetched.request.uploaded_image_refs.append("x.png")
        fetched.user_metadata.color_preferences.append("blue")
        completed.request.uploaded_image_refs.append("y.png")
        store.list_for_user("u")[0].quality.issues.append("tampered")

        stored = store.get(completed.id)
        assert stored.user_metadata.mood == "shocked"
        assert stored.quality.metrics.brightness == 65
        assert stored.request.uploaded_image_refs == ["a.png"]
        assert stored.user_metadata.color_preferences == ["red"]
        assert stored.quality.issues == []
