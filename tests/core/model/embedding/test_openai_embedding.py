from unittest.mock import Mock, patch

import pytest
import requests

from mcphub.core.model.embedding import OpenAIEmbedding


def _response(embeddings):
    response = Mock()
    response.raise_for_status.return_value = None
    response.json.return_value = {
        "data": [{"index": i, "embedding": e} for i, e in enumerate(embeddings)]
    }
    return response


class TestOpenAIEmbedding:
    """Test OpenAIEmbedding client."""

    def test_default_initialization(self):
        client = OpenAIEmbedding(api_key="test_key")

        assert client.model == "text-embedding-3-small"
        assert client.model_name == "text-embedding-3-small"
        assert client.dimension is None
        assert client.base_url == "https://api.openai.com/v1"

    def test_base_url_initialization(self):
        client = OpenAIEmbedding(api_key="test_key", base_url="https://custom.api.com/v1/")
        assert client.base_url == "https://custom.api.com/v1"

    def test_get_dimension(self):
        assert OpenAIEmbedding(api_key="k", dimension=512).get_dimension() == 512
        assert OpenAIEmbedding(api_key="k").get_dimension() == 1536
        assert OpenAIEmbedding(api_key="k", model="custom-model").get_dimension() is None

    def test_missing_api_key(self):
        client = OpenAIEmbedding()

        with pytest.raises(RuntimeError, match="OPENAI_API_KEY is required"):
            client.encode("Hello")

    @patch("requests.Session.post")
    def test_encode_single_text_success(self, mock_post):
        mock_post.return_value = _response([[0.1, 0.2, 0.3, 0.4]])

        client = OpenAIEmbedding(api_key="test_key", dimension=4, timeout=5.0)
        embedding = client.encode("Hello world")

        assert embedding == [0.1, 0.2, 0.3, 0.4]
        mock_post.assert_called_once()
        args, kwargs = mock_post.call_args
        assert args[0] == "https://api.openai.com/v1/embeddings"
        assert kwargs["json"] == {
            "model": "text-embedding-3-small",
            "input": ["Hello world"],
            "dimensions": 4,
        }
        assert kwargs["timeout"] == 5.0

    @patch("requests.Session.post")
    def test_encode_batch_keeps_response_order(self, mock_post):
        response = Mock()
        response.raise_for_status.return_value = None
        response.json.return_value = {
            "data": [
                {"index": 1, "embedding": [0.3, 0.4]},
                {"index": 0, "embedding": [0.1, 0.2]},
            ]
        }
        mock_post.return_value = response

        client = OpenAIEmbedding(api_key="test_key")
        embeddings = client.encode(["Hello", "World"])

        assert embeddings == [[0.1, 0.2], [0.3, 0.4]]
        assert "dimensions" not in mock_post.call_args[1]["json"]

    @patch("requests.Session.post")
    def test_long_input_is_truncated(self, mock_post):
        mock_post.return_value = _response([[0.5, 0.5]])

        client = OpenAIEmbedding(api_key="test_key", max_input_chars=10)
        client.encode("x" * 50)

        assert mock_post.call_args[1]["json"]["input"] == ["x" * 10]

    @patch("requests.Session.post")
    def test_embed_reports_model(self, mock_post):
        mock_post.return_value = _response([[1, 0]])

        result = OpenAIEmbedding(api_key="test_key").embed("Hello")

        assert result.vector == [1.0, 0.0]
        assert result.model == "text-embedding-3-small"
        assert result.dimensions == 2

    @patch("requests.Session.post")
    def test_encode_api_error_keeps_cause(self, mock_post):
        response = Mock()
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("500")
        mock_post.return_value = response

        client = OpenAIEmbedding(api_key="test_key")

        with pytest.raises(RuntimeError, match="OpenAI embedding failed") as exc_info:
            client.encode("Hello")
        assert isinstance(exc_info.value.__cause__, requests.exceptions.HTTPError)

    @patch("requests.Session.post")
    def test_encode_invalid_response(self, mock_post):
        response = Mock()
        response.raise_for_status.return_value = None
        response.json.return_value = {"invalid": "response"}
        mock_post.return_value = response

        with pytest.raises(RuntimeError, match="OpenAI embedding failed"):
            OpenAIEmbedding(api_key="test_key").encode("Hello")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
