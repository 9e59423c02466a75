"""Renderers that apply post-production operations to generated images."""

import logging
from typing import List, Dict, Any

import requests

from thumbforge.core.base_backend import BaseRenderer
from thumbforge.core.errors import PostProductionError

logger = logging.getLogger(__name__)


class HttpRenderer(BaseRenderer):
    """Renderer service reached over HTTP.

    Posts ``{"image_url": ..., "operations": [...]}`` to ``{base_url}/render``
    and expects ``{"url": ...}`` back.

    Attributes:
        base_url: Renderer service root URL
        timeout: Request timeout in seconds
    """

    def __init__(self, base_url: str, api_key: str = "", timeout: int = 30):
        """Initialize the renderer client.

        Args:
            base_url: Renderer service root URL
            api_key: Optional bearer token
            timeout: Request timeout in seconds

        Raises:
            ValueError: If base_url is empty
        """
        if not base_url:
            raise ValueError("Renderer URL is required")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        if api_key:
            self.session.headers["Authorization"] = f"Bearer {api_key}"
        logger.info(f"Initialized HTTP renderer at {self.base_url}")

    def render(self, image_url: str, operations: List[Dict[str, Any]]) -> str:
        payload = {"image_url": image_url, "operations": operations}
        logger.debug(f"Rendering {image_url} with operations: {[op['name'] for op in operations]}")

        try:
            response = self.session.post(
                f"{self.base_url}/render",
                json=payload,
                timeout=self.timeout
            )
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            logger.error(f"Renderer unreachable: {e}")
            raise PostProductionError(f"Renderer unreachable: {e}", fatal=True) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Renderer request failed: {e}")
            raise PostProductionError(f"Renderer request failed: {e}") from e

        try:
            response.raise_for_status()
            processed_url = response.json().get("url")
        except (requests.exceptions.HTTPError, ValueError, AttributeError) as e:
            logger.warning(f"Renderer returned an unusable response: {e}")
            raise PostProductionError(f"Renderer returned an unusable response: {e}") from e

        if not processed_url:
            raise PostProductionError("Renderer response did not include a URL")

        return processed_url

    @property
    def name(self) -> str:
        return "HTTP"


class PassthroughRenderer(BaseRenderer):
    """Renderer that records the operations and returns the image unchanged.

    Used when no renderer service is configured.
    """

    def render(self, image_url: str, operations: List[Dict[str, Any]]) -> str:
        for op in operations:
            logger.info(f"Applying {op['name']} effect with amount {op['amount']}")
        return image_url

    @property
    def name(self) -> str:
        return "Passthrough"
