"""Unit tests for the Gemini analysis backend."""

import pytest
from unittest.mock import Mock, patch

from thumbforge.backends.gemini import GeminiAnalyzer, _extract_json
from thumbforge.core.errors import AnalysisError
from thumbforge.core.models import QualityMetrics, ThumbnailComparison, UserMetadata


def _analyzer_returning(mock_client_class, text=None, side_effect=None):
    mock_client = Mock()
    if side_effect is not None:
        mock_client.models.generate_content.side_effect = side_effect
    else:
        mock_client.models.generate_content.return_value = Mock(text=text)
    mock_client_class.return_value = mock_client
    return GeminiAnalyzer(api_key="test_key"), mock_client


class TestExtractJson:
    """Tests for JSON extraction from model output."""

    def test_fenced_json(self):
        """Test extracting JSON wrapped in a markdown fence."""
        assert _extract_json('```json\n{"mood": "shocked"}\n```') == {"mood": "shocked"}

    @pytest.mark.parametrize("text", ["", "no json here", "{not valid}", "[1, 2]"])
    def test_unusable_output(self, text):
        """Test that unusable output gives an empty dict."""
        assert _extract_json(text) == {}


class TestGeminiAnalyzer:
    """Tests for GeminiAnalyzer."""

    @patch('thumbforge.backends.gemini.genai.Client')
    def test_initialization(self, mock_client_class):
        """Test analyzer initialization."""
        analyzer = GeminiAnalyzer(api_key="test_key")

        assert analyzer.model == GeminiAnalyzer.DEFAULT_MODEL
        assert analyzer.name == "Gemini"
        mock_client_class.assert_called_once_with(api_key="test_key")

    def test_initialization_empty_api_key(self):
        """Test that initialization fails with empty API key."""
        with pytest.raises(ValueError, match="API key is required"):
            GeminiAnalyzer(api_key="")

    @patch('thumbforge.backends.gemini.genai.Client')
    def test_analyze(self, mock_client_class):
        """Test that Gemini's JSON becomes normalized metadata."""
        analyzer, mock_client = _analyzer_returning(
            mock_client_class,
            text='Here you go: {"mood": "Shocked", "lighting": "dramatic", "has_face": true, '
                 '"color_preferences": ["red", "yellow"], "unrelated": 1}'
        )

        metadata = analyzer.analyze("Create a gaming thumbnail with a shocked face")

        assert metadata.mood == "shocked"
        assert metadata.lighting == "dramatic"
        assert metadata.has_face is True
        assert metadata.color_preferences == ["red", "yellow"]

        contents = mock_client.models.generate_content.call_args.kwargs["contents"]
        assert "Create a gaming thumbnail with a shocked face" in contents[0]

    @patch('thumbforge.backends.gemini.genai.Client')
    def test_analyze_keeps_valid_fields(self, mock_client_class):
        """Test that malformed fields are dropped individually."""
        analyzer, _ = _analyzer_returning(
            mock_client_class, text='{"mood": "excited", "has_face": "sometimes"}'
        )

        metadata = analyzer.analyze("An exciting unboxing")

        assert metadata.mood == "excited"
        assert metadata.has_face is None

    @patch('thumbforge.backends.gemini.genai.Client')
    def test_analyze_no_json(self, mock_client_class):
        """Test that output without JSON gives empty metadata."""
        analyzer, _ = _analyzer_returning(mock_client_class, text="I cannot help with that")
        assert analyzer.analyze("A thumbnail") == UserMetadata()

    @patch('thumbforge.backends.gemini.genai.Client')
    def test_analyze_client_error(self, mock_client_class):
        """Test that a failing Gemini call raises AnalysisError."""
        analyzer, _ = _analyzer_returning(mock_client_class, side_effect=RuntimeError("quota"))

        with pytest.raises(AnalysisError, match="Failed to analyze user prompt"):
            analyzer.analyze("A thumbnail")

    @patch('thumbforge.backends.gemini.genai.Client')
    def test_assess_image(self, mock_client_class):
        """Test that image ratings are clamped to 0-100."""
        analyzer, _ = _analyzer_returning(
            mock_client_class, text='{"brightness": 70, "contrast": 140, "sharpness": "high"}'
        )

        metrics = analyzer.assess_image("https://example.com/a.png")

        assert metrics == QualityMetrics(brightness=70, contrast=100)

    @patch('thumbforge.backends.gemini.genai.Client')
    def test_assess_image_failure(self, mock_client_class):
        """Test that assessment failures give empty metrics."""
        analyzer, _ = _analyzer_returning(mock_client_class, side_effect=RuntimeError("down"))
        assert analyzer.assess_image("https://example.com/a.png").present() == {}


class TestGeminiThumbnailAnalysis:
    """Tests for reference thumbnail analysis and comparison."""

    @patch('thumbforge.backends.gemini.genai.Client')
    def test_analyze_thumbnail(self, mock_client_class):
        """Test extracting reference metadata, camelCase keys included."""
        analyzer, mock_client = _analyzer_returning(
            mock_client_class,
            text='{"subjectPosition": "Center", "mood": "shocked", "colorPalette": ["red", "yellow"], '
                 '"hasText": true, "textStyle": "bold", "layerCount": 3, "symmetry": "balanced", '
                 '"confidence": 0.9}'
        )

        metadata = analyzer.analyze_thumbnail("https://example.com/ref.jpg", "ref-1")

        assert metadata.reference_thumbnail_id == "ref-1"
        assert metadata.subject_position == "center"
        assert metadata.color_palette == ["red", "yellow"]
        assert metadata.has_text is True
        assert metadata.layer_count == 3
        assert metadata.confidence == 0.9
        contents = mock_client.models.generate_content.call_args.kwargs["contents"]
        assert len(contents) == 2

    @patch('thumbforge.backends.gemini.genai.Client')
    def test_analyze_thumbnail_drops_invalid_fields(self, mock_client_class):
        """Test that out-of-range values are dropped and the id is not overridden."""
        analyzer, _ = _analyzer_returning(
            mock_client_class,
            text='{"mood": "happy", "confidence": 4, "reference_thumbnail_id": "other"}'
        )

        metadata = analyzer.analyze_thumbnail("https://example.com/ref.jpg", "ref-1")

        assert metadata.mood == "happy"
        assert metadata.confidence == 0.0
        assert metadata.reference_thumbnail_id == "ref-1"

    @patch('thumbforge.backends.gemini.genai.Client')
    def test_analyze_thumbnail_no_json(self, mock_client_class):
        """Test that a reply without JSON is an analysis failure."""
        analyzer, _ = _analyzer_returning(mock_client_class, text="A person looking shocked")

        with pytest.raises(AnalysisError, match="Failed to extract JSON"):
            analyzer.analyze_thumbnail("https://example.com/ref.jpg", "ref-1")

    @patch('thumbforge.backends.gemini.genai.Client')
    def test_analyze_thumbnail_client_error(self, mock_client_class):
        """Test that a failing Gemini call raises AnalysisError."""
        analyzer, _ = _analyzer_returning(mock_client_class, side_effect=RuntimeError("quota"))

        with pytest.raises(AnalysisError, match="Failed to analyze thumbnail image"):
            analyzer.analyze_thumbnail("https://example.com/ref.jpg", "ref-1")

    @patch('thumbforge.backends.gemini.genai.Client')
    def test_compare_thumbnails(self, mock_client_class):
        """Test comparing a generated thumbnail with its reference."""
        analyzer, mock_client = _analyzer_returning(
            mock_client_class,
            text='{"similarityScore": 0.75, "matchingElements": ["red palette"], "differences": ["no text"]}'
        )

        comparison = analyzer.compare_thumbnails("https://example.com/ref.jpg", "https://example.com/gen.png")

        assert comparison == ThumbnailComparison(
            similarity_score=0.75, matching_elements=["red palette"], differences=["no text"]
        )
        contents = mock_client.models.generate_content.call_args.kwargs["contents"]
        assert len(contents) == 3

    @patch('thumbforge.backends.gemini.genai.Client')
    def test_compare_thumbnails_failure(self, mock_client_class):
        """Test that comparison failures raise AnalysisError."""
        analyzer, _ = _analyzer_returning(mock_client_class, side_effect=RuntimeError("down"))

        with pytest.raises(AnalysisError, match="Failed to compare thumbnails"):
            analyzer.compare_thumbnails("https://example.com/ref.jpg", "https://example.com/gen.png")
