"""
Unit tests for the Hugging Face Inference API client.

HTTP calls are patched on the client's session.
"""

from unittest.mock import Mock, patch

import pytest
import requests

from stafind.enricher.huggingface_client import HuggingFaceInferenceClient, is_permission_error
from stafind.shared.errors import ExtractionError, InferencePermissionError


def _response(status_code, body=None, text=""):
    response = Mock()
    response.status_code = status_code
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    response.text = text
    return response


@pytest.fixture
def client():
    return HuggingFaceInferenceClient(api_key="hf_test", base_url="https://hf.test/models/")


class TestHuggingFaceInferenceClient:
    """Test request building and response handling."""

    def test_requires_api_key(self):
        with pytest.raises(ValueError, match="API key is required"):
            HuggingFaceInferenceClient(api_key="")

    def test_posts_text_with_bearer_token(self, client):
        """Test URL, headers and payload of a classification request."""
        entities = [{"entity_group": "MISC", "score": 0.9, "word": "Python", "start": 0, "end": 6}]
        with patch.object(client.session, "post", return_value=_response(200, entities)) as mock_post:
            result = client.classify_tokens("Python developer", "dslim/bert-base-NER")

        assert result == entities
        args, kwargs = mock_post.call_args
        assert args[0] == "https://hf.test/models/dslim/bert-base-NER"
        assert kwargs["headers"]["Authorization"] == "Bearer hf_test"
        assert kwargs["json"] == {
            "inputs": "Python developer",
            "parameters": {"aggregation_strategy": "simple"},
        }
        assert kwargs["timeout"] == 30.0

    def test_drops_non_dict_entities(self, client):
        with patch.object(client.session, "post", return_value=_response(200, [{"word": "Go"}, "junk"])):
            assert client.classify_tokens("Go", "m") == [{"word": "Go"}]

    def test_permission_error_is_typed(self, client):
        """Test that a missing inference permission raises InferencePermissionError."""
        body = {"error": "This authentication method does not have sufficient permissions"}
        with patch.object(client.session, "post", return_value=_response(403, body)):
            with pytest.raises(InferencePermissionError, match="Inference API permissions") as exc_info:
                client.classify_tokens("Python", "m")

        assert exc_info.value.method == "huggingface"

    def test_api_error_message_is_raised(self, client):
        with patch.object(client.session, "post", return_value=_response(400, {"error": "bad input"})):
            with pytest.raises(ExtractionError, match="bad input"):
                client.classify_tokens("Python", "m")

    def test_error_status_without_json(self, client):
        response = _response(503, ValueError("no json"), text="Service Unavailable")
        with patch.object(client.session, "post", return_value=response):
            with pytest.raises(ExtractionError, match="status 503"):
                client.classify_tokens("Python", "m")

    def test_non_list_body_is_rejected(self, client):
        with patch.object(client.session, "post", return_value=_response(200, {"unexpected": True})):
            with pytest.raises(ExtractionError, match="expected a list"):
                client.classify_tokens("Python", "m")

    def test_timeout_becomes_extraction_error(self, client):
        with patch.object(client.session, "post", side_effect=requests.Timeout("slow")):
            with pytest.raises(ExtractionError, match="timed out"):
                client.classify_tokens("Python", "m")

    def test_connection_error_becomes_extraction_error(self, client):
        with patch.object(client.session, "post", side_effect=requests.ConnectionError("refused")):
            with pytest.raises(ExtractionError, match="Failed to reach"):
                client.classify_tokens("Python", "m")

    def test_session_retries_transient_statuses(self, client):
        """Test that the mounted adapter retries 429 and 5xx."""
        retries = client.session.get_adapter("https://hf.test").max_retries

        assert retries.total == 2
        assert 429 in retries.status_forcelist
        assert 503 in retries.status_forcelist


class TestIsPermissionError:
    @pytest.mark.parametrize(
        "message,expected",
        [
            ("Token does not have sufficient permissions", True),
            ("Invalid authentication method", True),
            ("Model is loading", False),
        ],
    )
    def test_detects_permission_messages(self, message, expected):
        assert is_permission_error(message) is expected
