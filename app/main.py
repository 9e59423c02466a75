"""Composition root and command-line entry point for thumbnail generation."""

import argparse
import logging
import sys
from typing import Optional, List

from app.config import Settings, settings as default_settings
from thumbforge.core.backend_factory import BackendFactory
from thumbforge.core.catalog import InMemoryCatalogStore, ReferenceCatalog
from thumbforge.core.image_synthesizer import ImageSynthesizer
from thumbforge.core.ledger import CreditLedger
from thumbforge.core.matcher import Matcher
from thumbforge.core.models import GenerationStatus, LedgerEntryType
from thumbforge.core.orchestrator import GenerationOrchestrator
from thumbforge.core.post_processor import PostProcessor
from thumbforge.core.store import GenerationStore
from thumbforge.utils.prompt_engineer import get_prompt_composer
from thumbforge.utils.quality import QualityAssessor

# Configure logging
logging.basicConfig(
    level=default_settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def load_catalog(config: Settings) -> ReferenceCatalog:
    """Load the reference catalog from ``catalog_path`` (empty if unset)."""
    if config.catalog_path:
        store = InMemoryCatalogStore.from_file(config.catalog_path)
    else:
        logger.warning("No CATALOG_PATH configured; reference matching will find no candidates")
        store = InMemoryCatalogStore()
    return ReferenceCatalog(store, refresh_seconds=config.catalog_refresh_seconds)


def create_orchestrator(
    config: Optional[Settings] = None,
    ledger: Optional[CreditLedger] = None,
    store: Optional[GenerationStore] = None,
    catalog: Optional[ReferenceCatalog] = None
) -> GenerationOrchestrator:
    """Create the orchestrator with backends chosen by configuration.

    Returns:
        Initialized GenerationOrchestrator

    Raises:
        ValueError: If required configuration is missing
    """
    config = config or default_settings

    try:
        config.validate_required_keys()

        synthesizer_backend = BackendFactory.create_synthesizer(
            config.synthesis_backend,
            config.replicate_token,
            model_map=config.model_map or None,
            timeout=config.timeout
        )

        if config.analysis_backend == "gemini":
            analyzer = BackendFactory.create_analyzer(
                "gemini", config.gemini_api_key, model=config.gemini_model
            )
        else:
            analyzer = BackendFactory.create_analyzer(config.analysis_backend)

        if config.renderer_backend == "http":
            renderer = BackendFactory.create_renderer(
                "http",
                base_url=config.renderer_url,
                api_key=config.renderer_api_key,
                timeout=config.timeout
            )
        else:
            renderer = BackendFactory.create_renderer(config.renderer_backend)

    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        raise

    orchestrator = GenerationOrchestrator(
        analyzer=analyzer,
        matcher=Matcher(catalog or load_catalog(config)),
        composer=get_prompt_composer(),
        synthesizer=ImageSynthesizer(
            synthesizer_backend,
            max_attempts=config.max_retries,
            backoff_min=config.retry_backoff_min,
            backoff_max=config.retry_backoff_max
        ),
        post_processor=PostProcessor(renderer, QualityAssessor(config.quality_threshold)),
        ledger=ledger or CreditLedger(),
        store=store or GenerationStore(),
        credit_cost=config.generation_credit_cost,
        default_model=config.default_model,
    )
    return orchestrator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="thumbforge",
        description="Generate a YouTube thumbnail from a text prompt."
    )
    parser.add_argument("prompt", help="Description of the thumbnail")
    parser.add_argument("--user", default="cli-user", help="User id to charge (default: cli-user)")
    parser.add_argument("--topic", help="Topic used for reference matching")
    parser.add_argument("--style", help="Preferred style (e.g., dramatic, minimalist, neon)")
    parser.add_argument("--mood", help="Preferred mood (e.g., shocked, excited, curious)")
    parser.add_argument("--model", help="Image model: dall-e-3, routix-v1 or routix-v2")
    parser.add_argument(
        "--image", action="append", default=[], dest="images",
        help="URL of an uploaded reference image (repeatable)"
    )
    parser.add_argument(
        "--credits", type=int, default=None,
        help="Credits granted to the user before generating (default: STARTING_CREDITS)"
    )
    return parser


def main(argv: Optional[List[str]] = None, config: Optional[Settings] = None) -> int:
    """Run one generation and print the result as JSON.

    Returns:
        Process exit code: 0 when completed, 1 when failed, 2 on configuration errors
    """
    args = build_parser().parse_args(argv)
    config = config or default_settings

    try:
        orchestrator = create_orchestrator(config)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    credits = config.starting_credits if args.credits is None else args.credits
    if credits > 0:
        orchestrator.ledger.grant(args.user, credits, LedgerEntryType.BONUS, "Starting credits")

    result = orchestrator.generate(
        user_id=args.user,
        user_prompt=args.prompt,
        uploaded_image_refs=args.images,
        preferred_style=args.style,
        preferred_mood=args.mood,
        topic=args.topic,
        model=args.model,
    )

    print(result.model_dump_json(indent=2))
    return 0 if result.status == GenerationStatus.COMPLETED else 1


if __name__ == "__main__":
    sys.exit(main())
