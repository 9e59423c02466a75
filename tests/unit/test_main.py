"""Unit tests for the composition root and CLI."""

import json
import os

import pytest
from unittest.mock import Mock, patch

from app.config import Settings
from app.main import build_parser, create_orchestrator, load_catalog, main
from thumbforge.backends.renderer import HttpRenderer, PassthroughRenderer
from thumbforge.backends.replicate import ReplicateSynthesizer
from thumbforge.core.ledger import CreditLedger
from thumbforge.core.models import ImageModel
from thumbforge.utils.prompt_analyzer import HeuristicAnalyzer


def _settings(**overrides):
    values = {"replicate_token": "r8_test_token", "retry_backoff_min": 0, "retry_backoff_max": 0}
    values.update(overrides)
    with patch.dict(os.environ, {}, clear=True):
        return Settings(_env_file=None, **values)


def _replicate_client(mock_client_class, url="https://replicate.delivery/out.png"):
    mock_client = Mock()
    mock_client.run.return_value = url
    mock_client_class.return_value = mock_client
    return mock_client


class TestCreateOrchestrator:
    """Tests for wiring backends from configuration."""

    @patch('thumbforge.backends.replicate.replicate.Client')
    def test_default_wiring(self, mock_client_class):
        """Test the default Replicate, heuristic and passthrough stack."""
        orchestrator = create_orchestrator(_settings(generation_credit_cost=3, default_model="routix-v1"))

        assert isinstance(orchestrator.synthesizer.backend, ReplicateSynthesizer)
        assert isinstance(orchestrator.analyzer, HeuristicAnalyzer)
        assert isinstance(orchestrator.post_processor.renderer, PassthroughRenderer)
        assert orchestrator.credit_cost == 3
        assert orchestrator.default_model == ImageModel.ROUTIX_V1
        assert orchestrator.synthesizer.max_attempts == 3

    @patch('thumbforge.backends.gemini.genai.Client')
    @patch('thumbforge.backends.replicate.replicate.Client')
    def test_gemini_and_http_renderer(self, mock_replicate, mock_genai):
        """Test wiring the Gemini analyzer and the HTTP renderer."""
        config = _settings(
            analysis_backend="gemini",
            gemini_api_key="gemini_key",
            renderer_backend="http",
            renderer_url="https://render.example.com",
        )

        orchestrator = create_orchestrator(config)

        assert orchestrator.analyzer.name == "Gemini"
        assert isinstance(orchestrator.post_processor.renderer, HttpRenderer)
        mock_genai.assert_called_once_with(api_key="gemini_key")

    def test_missing_token(self):
        """Test that a missing Replicate token is a configuration error."""
        with pytest.raises(ValueError, match="REPLICATE_TOKEN is required"):
            create_orchestrator(_settings(replicate_token=None))

    @patch('thumbforge.backends.replicate.replicate.Client')
    def test_shared_ledger(self, mock_client_class):
        """Test that a supplied ledger is used."""
        ledger = CreditLedger()
        assert create_orchestrator(_settings(), ledger=ledger).ledger is ledger


class TestLoadCatalog:
    """Tests for catalog loading."""

    def test_empty_without_path(self):
        """Test that no path gives an empty catalog."""
        assert load_catalog(_settings()).list_active() == []

    def test_from_file(self, tmp_path):
        """Test loading references from a JSON file."""
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({"references": [{
            "id": "ref-1", "title": "Gamer", "image_url": "https://example.com/1.jpg",
            "category": "gaming", "style": "dramatic",
        }]}))

        catalog = load_catalog(_settings(catalog_path=str(path)))

        assert [r.id for r in catalog.list_active()] == ["ref-1"]


class TestMain:
    """Tests for the command-line entry point."""

    def test_parser(self):
        """Test argument parsing."""
        args = build_parser().parse_args([
            "A shocked gamer", "--topic", "gaming", "--image", "a.png", "--image", "b.png"
        ])

        assert args.user == "cli-user"
        assert args.topic == "gaming"
        assert args.images == ["a.png", "b.png"]
        assert args.credits is None

    @patch('thumbforge.backends.replicate.replicate.Client')
    def test_completed_generation(self, mock_client_class, capsys):
        """Test a successful run prints the result and exits 0."""
        _replicate_client(mock_client_class)

        code = main(["Create a gaming thumbnail with a shocked face", "--credits", "5"], _settings())

        output = json.loads(capsys.readouterr().out)
        assert code == 0
        assert output["status"] == "completed"
        assert output["final_image_url"] == "https://replicate.delivery/out.png"
        assert output["credits_used"] == 2

    @patch('thumbforge.backends.replicate.replicate.Client')
    def test_failed_generation(self, mock_client_class, capsys):
        """Test that a run without credits exits 1."""
        mock_client = _replicate_client(mock_client_class)

        code = main(["Create a gaming thumbnail"], _settings())

        output = json.loads(capsys.readouterr().out)
        assert code == 1
        assert output["status"] == "failed"
        assert output["error_type"] == "InsufficientCreditsError"
        mock_client.run.assert_not_called()

    @patch('thumbforge.backends.replicate.replicate.Client')
    def test_starting_credits_setting(self, mock_client_class, capsys):
        """Test that STARTING_CREDITS funds the CLI user."""
        _replicate_client(mock_client_class)

        code = main(["Create a gaming thumbnail"], _settings(starting_credits=2))

        assert code == 0
        assert json.loads(capsys.readouterr().out)["status"] == "completed"

    def test_configuration_error(self, capsys):
        """Test that configuration errors exit 2."""
        code = main(["Create a gaming thumbnail"], _settings(replicate_token=None))

        assert code == 2
        assert "REPLICATE_TOKEN is required" in capsys.readouterr().err
