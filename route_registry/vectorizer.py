"""
Text → vector embedders for the registry vector store.

Two families are provided:

* :class:`HashingVectorizer`: local signed feature hashing (bag of words,
  optionally with character n-grams).  Deterministic across processes and
  platforms; needs no network or model files.
* :class:`OpenAIVectorizer`: calls the OpenAI Embeddings API
  (``text-embedding-3-small`` by default) in batches with retries.

All vectors are float64 numpy arrays, L2-normalised.  ``model_id`` encodes
the algorithm and dimensionality so a store can refuse to compare vectors
coming from different embedders.
"""

from __future__ import annotations

import hashlib
import logging
import re
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Sequence

import numpy as np

from .errors import EmbeddingError, UsageError

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_DIMENSIONS = 256
DEFAULT_NGRAM = 3
EMBED_MODEL = "text-embedding-3-small"
BATCH_SIZE = 100
MAX_RETRIES = 3

_WORD_RE = re.compile(r"[A-Za-z0-9_$]+")
_PART_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")


def l2_normalize(vec: np.ndarray) -> np.ndarray:
    """Return *vec* scaled to unit length (the zero vector stays zero)."""
    vec = np.asarray(vec, dtype=np.float64)
    norm = np.linalg.norm(vec)
    if norm == 0 or not np.isfinite(norm):
        return np.zeros_like(vec)
    return vec / norm


def tokenize(text: str) -> list[str]:
    """
    Lower-cased word tokens of *text*.

    Identifiers are also split on camelCase and snake_case boundaries, so
    ``onSubmitForm`` yields ``onsubmitform``, ``on``, ``submit``, ``form``.
    """
    tokens: list[str] = []
    for word in _WORD_RE.findall(text):
        tokens.append(word.lower())
        parts = _PART_RE.findall(word)
        if len(parts) > 1:
            tokens.extend(p.lower() for p in parts)
    return tokens


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------

class Vectorizer(ABC):
    """Maps text to a fixed-length vector."""

    @property
    @abstractmethod
    def dimensions(self) -> int:
        ...

    @property
    @abstractmethod
    def model_id(self) -> str:
        ...

    @abstractmethod
    def embed(self, text: str) -> np.ndarray:
        ...

    def embed_batch(self, texts: Sequence[str]) -> list[np.ndarray]:
        """Embed several texts; order of the result matches *texts*."""
        return [self.embed(t) for t in texts]


# ---------------------------------------------------------------------------
# Feature hashing
# ---------------------------------------------------------------------------

class HashingVectorizer(Vectorizer):
    """
    Signed feature hashing over word tokens.

    Parameters
    ----------
    dimensions:
        Length of the output vectors.
    ngram:
        When > 0, character n-grams of this length (taken from each token
        padded with ``^``/``$``) are hashed as extra features.
    """

    def __init__(self, dimensions: int = DEFAULT_DIMENSIONS, ngram: int = 0) -> None:
        if dimensions <= 0:
            raise UsageError(f"dimensions must be positive, got {dimensions}")
        if ngram < 0:
            raise UsageError(f"ngram must be >= 0, got {ngram}")
        self._dimensions = int(dimensions)
        self._ngram = int(ngram)

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_id(self) -> str:
        if self._ngram:
            return f"hashing-ngram{self._ngram}-{self._dimensions}"
        return f"hashing-{self._dimensions}"

    def _features(self, text: str) -> list[str]:
        tokens = tokenize(text)
        features = [f"w:{t}" for t in tokens]
        if self._ngram:
            n = self._ngram
            for tok in tokens:
                padded = f"^{tok}$"
                if len(padded) <= n:
                    features.append(f"c:{padded}")
                    continue
                features.extend(f"c:{padded[i:i + n]}" for i in range(len(padded) - n + 1))
        return features

    def embed(self, text: str) -> np.ndarray:
        vec = np.zeros(self._dimensions, dtype=np.float64)
        for feature in self._features(text):
            digest = hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest()
            h = int.from_bytes(digest, "little")
            sign = -1.0 if h >> 63 else 1.0
            vec[h % self._dimensions] += sign
        return l2_normalize(vec)


# ---------------------------------------------------------------------------
# OpenAI embeddings
# ---------------------------------------------------------------------------

def _get_openai_client(api_key: str = "", base_url: str = ""):
    """Return an openai.OpenAI client, raising EmbeddingError if unavailable."""
    try:
        import openai  # type: ignore
    except ImportError as exc:
        raise EmbeddingError(
            "openai package is required for the openai embedding provider. "
            "Install it with: pip install 'route_registry[semantic]'"
        ) from exc
    if not api_key:
        raise EmbeddingError("OPENAI_API_KEY environment variable is not set.")
    kwargs = {"api_key": api_key}
    if base_url:
        kwargs["base_url"] = base_url
    return openai.OpenAI(**kwargs)


class OpenAIVectorizer(Vectorizer):
    """
    Embeddings from the OpenAI API.

    Parameters
    ----------
    model:
        Embedding model name.
    dimensions:
        Requested output length (``text-embedding-3-*`` models can shorten
        their vectors).
    client:
        An ``openai.OpenAI``-compatible object.  Created lazily from
        *api_key* / *base_url* when omitted.
    backoff:
        Seconds to wait before the first retry; doubled on each attempt.
    """

    def __init__(
        self,
        model: str = EMBED_MODEL,
        dimensions: int = DEFAULT_DIMENSIONS,
        client=None,
        api_key: str = "",
        base_url: str = "",
        batch_size: int = BATCH_SIZE,
        max_retries: int = MAX_RETRIES,
        backoff: float = 2.0,
    ) -> None:
        if dimensions <= 0:
            raise UsageError(f"dimensions must be positive, got {dimensions}")
        self.model = model
        self._dimensions = int(dimensions)
        self._client = client
        self._api_key = api_key
        self._base_url = base_url
        self.batch_size = max(1, batch_size)
        self.max_retries = max(1, max_retries)
        self.backoff = backoff

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_id(self) -> str:
        return f"openai-{self.model}-{self._dimensions}"

    def _get_client(self):
        if self._client is None:
            self._client = _get_openai_client(self._api_key, self._base_url)
        return self._client

    def _embed_once(self, texts: list[str]) -> list[list[float]]:
        """
        Embed one batch, retrying with exponential back-off on failure.

        Raises
        ------
        EmbeddingError
            If all retries are exhausted or the response is malformed.
        """
        client = self._get_client()
        for attempt in range(1, self.max_retries + 1):
            try:
                response = client.embeddings.create(
                    model=self.model,
                    input=texts,
                    dimensions=self._dimensions,
                )
                data = [item.embedding for item in response.data]
                break
            except Exception as exc:
                if attempt < self.max_retries:
                    wait = self.backoff * 2 ** (attempt - 1)
                    logger.warning(
                        "Embedding API error (attempt %d/%d): %s, retrying in %.1fs",
                        attempt, self.max_retries, exc, wait,
                    )
                    time.sleep(wait)
                else:
                    raise EmbeddingError(
                        f"Embedding API failed after {self.max_retries} attempts: {exc}"
                    ) from exc
        if len(data) != len(texts):
            raise EmbeddingError(
                f"Embedding API returned {len(data)} vectors for {len(texts)} inputs"
            )
        return data

    def embed(self, text: str) -> np.ndarray:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> list[np.ndarray]:
        texts = list(texts)
        vectors: list[np.ndarray] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start:start + self.batch_size]
            for raw in self._embed_once(batch):
                vectors.append(l2_normalize(np.asarray(raw, dtype=np.float64)))
        return vectors


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_vectorizer(config: "Config", client=None) -> Vectorizer:
    """
    Build the vectorizer selected by ``config.EMBEDDING_PROVIDER``.

    Parameters
    ----------
    config:
        Loaded :class:`~route_registry.config.Config`.
    client:
        Optional OpenAI-compatible client for the ``openai`` provider.

    Raises
    ------
    UsageError
        For an unknown provider name.
    """
    provider = config.EMBEDDING_PROVIDER
    dims = config.EMBEDDING_DIMENSIONS
    if provider == "hashing":
        return HashingVectorizer(dims)
    if provider == "ngram":
        return HashingVectorizer(dims, ngram=DEFAULT_NGRAM)
    if provider == "openai":
        return OpenAIVectorizer(
            model=config.EMBEDDING_MODEL,
            dimensions=dims,
            client=client,
            api_key=config.OPENAI_API_KEY,
            base_url=config.OPENAI_BASE_URL,
        )
    raise UsageError(
        f"Unknown embedding provider {provider!r} (expected hashing, ngram or openai)"
    )
