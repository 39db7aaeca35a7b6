"""
Unit Tests for Embedding Client

Tests:
- HashingEmbedder determinism, normalization and similarity
- SentenceTransformerEmbedder (mocked SentenceTransformers)
"""

import sys
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from remediation_store.tools.embedding_client import (
    EmbeddingModelError,
    HashingEmbedder,
    SentenceTransformerEmbedder,
    tokenize,
)


def cosine(a, b):
    return float(np.dot(a, b) / (np.linalg.norm(a) * np.linalg.norm(b)))


class TestHashingEmbedder:
    """Tests for the feature-hashing embedder."""

    def test_tokenize(self):
        assert tokenize("Error: Undefined reference to `init_config`") == [
            "error", "undefined", "reference", "to", "init_config",
        ]

    def test_dimension(self):
        assert HashingEmbedder(dimension=32).vector_dimension == 32
        assert len(HashingEmbedder(dimension=32).embed("hello world")) == 32

    def test_invalid_dimension(self):
        with pytest.raises(ValueError):
            HashingEmbedder(dimension=0)

    def test_deterministic(self):
        embedder = HashingEmbedder()
        assert embedder.embed("null pointer dereference") == embedder.embed("null pointer dereference")

    def test_normalized(self):
        vector = HashingEmbedder().embed("connection refused on port 5432")
        assert float(np.linalg.norm(vector)) == pytest.approx(1.0, abs=1e-6)

    def test_empty_text_is_zero_vector(self):
        assert not any(HashingEmbedder().embed("!!!"))

    def test_shared_tokens_are_more_similar(self):
        embedder = HashingEmbedder()
        query = embedder.embed("database connection timeout")
        related = embedder.embed("timeout opening database connection pool")
        unrelated = embedder.embed("css flexbox alignment")
        assert cosine(query, related) > cosine(query, unrelated)

    def test_embed_batch(self):
        embedder = HashingEmbedder()
        batch = embedder.embed_batch(["a b", "c d"])
        assert batch == [embedder.embed("a b"), embedder.embed("c d")]


class TestSentenceTransformerEmbedder:
    """Tests for the lazily loaded sentence-transformers model."""

    def test_missing_package(self):
        embedder = SentenceTransformerEmbedder()
        with patch.dict(sys.modules, {"sentence_transformers": None}):
            with pytest.raises(EmbeddingModelError):
                embedder.embed("text")

    def test_loads_model_once(self):
        model = MagicMock()
        model.get_sentence_embedding_dimension.return_value = 3
        model.encode.return_value = np.array([[0.1, 0.2, 0.3]])
        module = MagicMock()
        module.SentenceTransformer.return_value = model

        with patch.dict(sys.modules, {"sentence_transformers": module}):
            embedder = SentenceTransformerEmbedder("tiny-model")
            assert embedder.vector_dimension == 3
            assert embedder.embed("text") == pytest.approx([0.1, 0.2, 0.3])
            embedder.embed("again")

        module.SentenceTransformer.assert_called_once_with("tiny-model")

    def test_empty_text_rejected(self):
        with pytest.raises(ValueError):
            SentenceTransformerEmbedder().embed("  ")

    def test_encode_failure(self):
        model = MagicMock()
        model.get_sentence_embedding_dimension.return_value = 3
        model.encode.side_effect = RuntimeError("CUDA out of memory")
        module = MagicMock()
        module.SentenceTransformer.return_value = model

        with patch.dict(sys.modules, {"sentence_transformers": module}):
            with pytest.raises(EmbeddingModelError):
                SentenceTransformerEmbedder().embed_batch(["text"])
