"""Application configuration management."""

from typing import Optional, Dict
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pipeline settings read from the environment or a .env file.

    Tokens for Replicate and Gemini belong in the environment. Backend
    selection, credit pricing and retry bounds have working defaults.

    Attributes:
        replicate_token: Replicate API token for image synthesis
        gemini_api_key: Google Gemini API key for prompt and image analysis
        synthesis_backend: Which synthesizer backend to use
        analysis_backend: Which analyzer backend to use ("gemini" or "heuristic")
        renderer_backend: Which renderer to use ("http" or "passthrough")
        default_model: Image model used when a request names none
        generation_credit_cost: Credits charged per generation
        max_retries: Maximum synthesis attempts for transient failures
        timeout: Request timeout in seconds
        catalog_path: JSON file holding the reference catalog
        quality_threshold: Minimum overall quality score for a valid image
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        run_integration_tests: Whether to run integration tests
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )

    # API Keys
    replicate_token: Optional[str] = None
    gemini_api_key: Optional[str] = None

    # Backends
    synthesis_backend: str = "replicate"
    analysis_backend: str = "heuristic"
    renderer_backend: str = "passthrough"
    renderer_url: Optional[str] = None
    renderer_api_key: str = ""
    gemini_model: Optional[str] = None

    # Model Configuration
    model_map: Dict[str, str] = {}  # Image model -> Replicate model overrides
    default_model: str = "dall-e-3"

    # Credits
    generation_credit_cost: int = 2
    starting_credits: int = 0  # Granted as a bonus to CLI users

    # Synthesis retry
    max_retries: int = 3
    retry_backoff_min: float = 2
    retry_backoff_max: float = 10
    timeout: int = 60

    # Reference catalog
    catalog_path: Optional[str] = None
    catalog_refresh_seconds: float = 300

    # Quality
    quality_threshold: float = 60

    # Application Settings
    log_level: str = "INFO"

    # Testing
    run_integration_tests: bool = False

    def validate_required_keys(self) -> None:
        """Validate that required API keys are present.

        Raises:
            ValueError: If required API keys are missing
        """
        if not self.replicate_token and self.synthesis_backend == "replicate":
            raise ValueError(
                "REPLICATE_TOKEN is required when using the Replicate backend. "
                "Please set it in your .env file or environment variables. "
                "Get your token from: https://replicate.com/account/api-tokens"
            )

        if not self.gemini_api_key and self.analysis_backend == "gemini":
            raise ValueError(
                "GEMINI_API_KEY is required when using the Gemini analyzer. "
                "Please set it in your .env file or environment variables. "
                "Get your key from: https://aistudio.google.com/app/apikey"
            )

        if not self.renderer_url and self.renderer_backend == "http":
            raise ValueError(
                "RENDERER_URL is required when using the HTTP renderer."
            )


# Global settings instance
settings = Settings()
