"""Text embedding seam and the pinned fastembed implementation."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import numpy as np

from kube_recommender.config import EMBEDDING_CONFIG, EmbeddingConfig

if TYPE_CHECKING:
    from fastembed import TextEmbedding  # pyright: ignore[reportMissingTypeStubs]

logger = logging.getLogger(__name__)


@runtime_checkable
class Embedder(Protocol):
    """Turns texts into fixed-width vectors.

    Index time and query time must use the same embedder; ``model_version``
    is stored on every record so stale matches can be recognised.
    """

    @property
    def model_version(self) -> str: ...

    @property
    def dimensions(self) -> int: ...

    def embed(self, texts: list[str]) -> np.ndarray: ...


class FastEmbedEmbedder:
    """fastembed ``TextEmbedding`` with the pinned model, loaded on first use."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EMBEDDING_CONFIG
        self._model: TextEmbedding | None = None
        self._lock = threading.Lock()

    @property
    def model_version(self) -> str:
        return self._config.model_version

    @property
    def dimensions(self) -> int:
        return self._config.dimensions

    def _get_model(self) -> TextEmbedding:
        with self._lock:
            if self._model is None:
                from fastembed import TextEmbedding  # pyright: ignore[reportMissingTypeStubs]

                logger.info("Loading embedding model %s", self._config.model_name)
                self._model = TextEmbedding(
                    model_name=self._config.model_name,
                    cache_dir=self._config.cache_dir,
                )
            return self._model

    def embed(self, texts: list[str]) -> np.ndarray:
        """Embed *texts* into a ``(len(texts), dimensions)`` float32 array."""
        if not texts:
            return np.zeros((0, self.dimensions), dtype=np.float32)
        model = self._get_model()
        vectors = list(model.embed(texts))  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]
        return np.asarray(vectors, dtype=np.float32).reshape(len(texts), -1)
