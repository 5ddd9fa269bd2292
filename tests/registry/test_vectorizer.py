"""
Unit tests for route_registry.vectorizer

Feature hashing is tested directly; the OpenAI provider is exercised with a
fake client so no network calls are made.
"""

from __future__ import annotations

from types import SimpleNamespace

import numpy as np
import pytest

from route_registry.config import Config
from route_registry.errors import EmbeddingError, UsageError
from route_registry.vectorizer import (
    HashingVectorizer,
    OpenAIVectorizer,
    create_vectorizer,
    l2_normalize,
    tokenize,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class _FakeEmbeddings:
    def __init__(self, fail_times: int = 0, short: bool = False):
        self.fail_times = fail_times
        self.short = short
        self.calls: list[dict] = []

    def create(self, model, input, dimensions):
        self.calls.append({"model": model, "input": list(input), "dimensions": dimensions})
        if self.fail_times > 0:
            self.fail_times -= 1
            raise RuntimeError("rate limited")
        items = input[:-1] if self.short else input
        return SimpleNamespace(data=[
            SimpleNamespace(embedding=[float(len(text))] + [1.0] * (dimensions - 1))
            for text in items
        ])


class _FakeClient:
    def __init__(self, **kwargs):
        self.embeddings = _FakeEmbeddings(**kwargs)


# ---------------------------------------------------------------------------
# Tokenizer / helpers
# ---------------------------------------------------------------------------

class TestTokenize:
    def test_camel_case_split(self):
        assert tokenize("onSubmitForm") == ["onsubmitform", "on", "submit", "form"]

    def test_snake_case_split(self):
        assert tokenize("create_post") == ["create_post", "create", "post"]

    def test_acronyms(self):
        assert tokenize("HTMLParser") == ["htmlparser", "html", "parser"]

    def test_punctuation_dropped(self):
        assert tokenize("Props: title (string)") == ["props", "title", "string"]


def test_l2_normalize_zero_vector():
    out = l2_normalize(np.zeros(4))
    assert np.array_equal(out, np.zeros(4))


# ---------------------------------------------------------------------------
# HashingVectorizer
# ---------------------------------------------------------------------------

class TestHashingVectorizer:
    def test_shape_and_norm(self):
        vec = HashingVectorizer(64).embed("Component: Button\nEvents: onClick")
        assert vec.shape == (64,)
        assert vec.dtype == np.float64
        assert np.linalg.norm(vec) == pytest.approx(1.0)

    def test_deterministic(self):
        a = HashingVectorizer(128).embed("submit the checkout form")
        b = HashingVectorizer(128).embed("submit the checkout form")
        assert np.allclose(a, b)

    def test_empty_text_is_zero_vector(self):
        vec = HashingVectorizer(32).embed("  ... ")
        assert not vec.any()

    def test_similar_texts_score_higher(self):
        v = HashingVectorizer(256)
        query = v.embed("password reset form")
        close = v.embed("Component: PasswordResetForm\nProps: email (string)")
        far = v.embed("Component: MapMarker\nProps: lat (number), lng (number)")
        assert float(query @ close) > float(query @ far)

    def test_ngram_mode(self):
        plain = HashingVectorizer(1024)
        ngram = HashingVectorizer(1024, ngram=3)
        assert plain.model_id != ngram.model_id
        assert "ngram3" in ngram.model_id
        assert not np.allclose(plain.embed("settings"), ngram.embed("settings"))
        # Shared trigrams give related spellings a positive similarity.
        assert float(ngram.embed("setting") @ ngram.embed("settings")) > 0.5

    def test_embed_batch_matches_embed(self):
        v = HashingVectorizer(64)
        batch = v.embed_batch(["a b", "c d"])
        assert np.allclose(batch[0], v.embed("a b"))
        assert np.allclose(batch[1], v.embed("c d"))

    def test_invalid_dimensions(self):
        with pytest.raises(UsageError):
            HashingVectorizer(0)
        with pytest.raises(UsageError):
            HashingVectorizer(8, ngram=-1)


# ---------------------------------------------------------------------------
# OpenAIVectorizer
# ---------------------------------------------------------------------------

class TestOpenAIVectorizer:
    def test_embed_with_client(self):
        client = _FakeClient()
        v = OpenAIVectorizer(dimensions=4, client=client)
        vec = v.embed("hello")
        assert vec.shape == (4,)
        assert np.linalg.norm(vec) == pytest.approx(1.0)
        call = client.embeddings.calls[0]
        assert call["model"] == "text-embedding-3-small"
        assert call["dimensions"] == 4

    def test_batching(self):
        client = _FakeClient()
        v = OpenAIVectorizer(dimensions=3, client=client, batch_size=2)
        vectors = v.embed_batch(["a", "bb", "ccc"])
        assert len(vectors) == 3
        assert [len(c["input"]) for c in client.embeddings.calls] == [2, 1]

    def test_retries_then_succeeds(self):
        client = _FakeClient(fail_times=2)
        v = OpenAIVectorizer(dimensions=3, client=client, max_retries=3, backoff=0)
        assert v.embed("x").shape == (3,)
        assert len(client.embeddings.calls) == 3

    def test_exhausted_retries(self):
        client = _FakeClient(fail_times=5)
        v = OpenAIVectorizer(dimensions=3, client=client, max_retries=2, backoff=0)
        with pytest.raises(EmbeddingError, match="after 2 attempts"):
            v.embed("x")

    def test_short_response(self):
        v = OpenAIVectorizer(dimensions=3, client=_FakeClient(short=True), backoff=0)
        with pytest.raises(EmbeddingError):
            v.embed_batch(["a", "b"])

    def test_missing_api_key(self):
        v = OpenAIVectorizer(dimensions=3, api_key="")
        with pytest.raises(EmbeddingError):
            v.embed("x")

    def test_model_id(self):
        v = OpenAIVectorizer(model="text-embedding-3-large", dimensions=512, client=_FakeClient())
        assert v.model_id == "openai-text-embedding-3-large-512"


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

class TestCreateVectorizer:
    @pytest.fixture(autouse=True)
    def _clean_env(self, monkeypatch):
        for key in ("ROUTE_REGISTRY_EMBEDDING_PROVIDER", "ROUTE_REGISTRY_EMBEDDING_DIMENSIONS"):
            monkeypatch.delenv(key, raising=False)

    def test_hashing(self):
        v = create_vectorizer(Config({"embedding_dimensions": 32}))
        assert isinstance(v, HashingVectorizer)
        assert v.dimensions == 32

    def test_ngram(self):
        v = create_vectorizer(Config({"embedding_provider": "ngram"}))
        assert "ngram" in v.model_id

    def test_openai(self):
        client = _FakeClient()
        v = create_vectorizer(Config({"embedding_provider": "openai"}), client=client)
        assert isinstance(v, OpenAIVectorizer)
        assert v.embed("x").shape == (256,)

    def test_unknown_provider(self):
        with pytest.raises(UsageError):
            create_vectorizer(Config({"embedding_provider": "word2vec"}))
