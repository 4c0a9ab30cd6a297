"""
Hugging Face Inference Client

HTTP client for token-classification (NER) models served by the Hugging Face
Inference API. Handles bearer authentication, transient-status retries and
mapping of error payloads onto the stafind error types.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from stafind.shared.config import DEFAULT_HF_BASE_URL
from stafind.shared.errors import ExtractionError, InferencePermissionError

logger = logging.getLogger(__name__)

METHOD_NAME = "huggingface"

PERMISSION_ERROR_MARKERS = ("sufficient permissions", "authentication method")


def is_permission_error(message: str) -> bool:
    """True when an API error message means the token lacks inference rights."""
    lowered = message.lower()
    return any(marker in lowered for marker in PERMISSION_ERROR_MARKERS)


class HuggingFaceInferenceClient:
    """
    Client for the Hugging Face Inference API.

    One POST per call to ``{base_url}/{model}`` with body
    ``{"inputs": text, "parameters": {"aggregation_strategy": "simple"}}``.
    Transient statuses (429 and 5xx, which include "model loading") are
    retried by the session; other non-200 responses are raised as
    ``ExtractionError`` or ``InferencePermissionError``.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_HF_BASE_URL,
        timeout: float = 30.0,
        max_retries: int = 2,
        retry_backoff_factor: float = 1.0,
        rate_limit_delay: float = 0.0,
    ):
        """
        Initialize the client.

        Args:
            api_key: Hugging Face access token with Inference API permission
            base_url: Base URL; the model id is appended to it
            timeout: Per-request timeout in seconds
            max_retries: Retries for transient HTTP statuses
            retry_backoff_factor: Multiplier for exponential backoff
            rate_limit_delay: Minimum delay between requests (seconds)

        Raises:
            ValueError: If api_key is empty
        """
        if not api_key:
            raise ValueError("Hugging Face API key is required")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.rate_limit_delay = rate_limit_delay
        self.last_request_time = 0.0

        self.session = requests.Session()
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=retry_backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["POST"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def _enforce_rate_limit(self) -> None:
        elapsed = time.time() - self.last_request_time
        if elapsed < self.rate_limit_delay:
            sleep_time = self.rate_limit_delay - elapsed
            logger.debug(f"Rate limiting: sleeping for {sleep_time:.2f} seconds")
            time.sleep(sleep_time)
        self.last_request_time = time.time()

    def _get_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def model_url(self, model: str) -> str:
        return f"{self.base_url}/{model}"

    def _handle_response(self, response: requests.Response, model: str) -> list[dict[str, Any]]:
        """
        Turn an HTTP response into a list of NER entities.

        Raises:
            InferencePermissionError: If the token lacks inference permission
            ExtractionError: For any other error status or malformed body
        """
        if response.status_code != 200:
            error_message = None
            try:
                body = response.json()
                if isinstance(body, dict):
                    error_message = body.get("error")
            except ValueError:
                pass

            if error_message:
                if is_permission_error(error_message):
                    raise InferencePermissionError(
                        f"Hugging Face API permission error: {error_message}. "
                        "Check that the API key has Inference API permissions enabled",
                        method=METHOD_NAME,
                    )
                raise ExtractionError(f"Hugging Face API error: {error_message}", method=METHOD_NAME)
            raise ExtractionError(
                f"Hugging Face API returned status {response.status_code} for {model}: "
                f"{response.text[:500]}",
                method=METHOD_NAME,
            )

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Failed to parse NER response: {e}")
            logger.error(f"Response text: {response.text[:500]}")
            raise ExtractionError(f"Invalid JSON response from {model}: {e}", method=METHOD_NAME) from e

        if not isinstance(data, list):
            raise ExtractionError(
                f"Unexpected NER response from {model}: expected a list, got {type(data).__name__}",
                method=METHOD_NAME,
            )
        return [entity for entity in data if isinstance(entity, dict)]

    def classify_tokens(self, text: str, model: str) -> list[dict[str, Any]]:
        """
        Run a token-classification model over text.

        Args:
            text: Input text
            model: Model id, e.g. "dslim/bert-base-NER"

        Returns:
            Entities as ``{entity_group, score, word, start, end}`` dicts

        Raises:
            ExtractionError: If the request fails or the response is an error
        """
        self._enforce_rate_limit()
        payload = {"inputs": text, "parameters": {"aggregation_strategy": "simple"}}

        try:
            response = self.session.post(
                self.model_url(model),
                headers=self._get_headers(),
                json=payload,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            logger.warning(f"Hugging Face request to {model} timed out after {self.timeout}s")
            raise ExtractionError(f"Hugging Face request to {model} timed out: {e}", method=METHOD_NAME) from e
        except requests.RequestException as e:
            logger.error(f"Hugging Face request to {model} failed: {e}")
            raise ExtractionError(f"Failed to reach Hugging Face API: {e}", method=METHOD_NAME) from e

        logger.debug(f"Hugging Face request: {model} ({len(text)} chars) -> {response.status_code}")
        return self._handle_response(response, model)
