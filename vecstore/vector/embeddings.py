"""
Embedding providers.
The store treats these as external collaborators: text in, fixed-length vector out.
"""

from abc import ABC, abstractmethod
import hashlib
import struct

from ..core.errors import InvalidArgumentError, ProviderError


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers.

    Implementations raise ProviderError on failure (network, quota, bad input).
    """

    @abstractmethod
    def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector for given text."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass

    @property
    def name(self) -> str:
        return type(self).__name__


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic hash-based embedding provider for testing purposes.

    This implementation uses a consistent hashing approach to generate
    reproducible embeddings from text, which is useful for testing
    without requiring external model dependencies. Identical text always
    maps to the identical vector; different text maps to an unrelated one.
    """

    def __init__(self, dimension: int = 384):
        if dimension <= 0:
            raise InvalidArgumentError(f"dimension must be positive, got {dimension}")
        self.dimension = dimension

    def embed_text(self, text: str) -> list[float]:
        """Generate deterministic embedding vector using hash function."""
        if not isinstance(text, str):
            raise ProviderError(f"text must be a string, got {type(text).__name__}")

        vector = []
        block = 0
        while len(vector) < self.dimension:
            # Each SHA-256 block yields eight 32-bit words
            digest = hashlib.sha256(f"{block}:{text}".encode("utf-8")).digest()
            for (value,) in struct.iter_unpack(">I", digest):
                # Map to [-1, 1] for cosine similarity
                vector.append((value / (2**32)) * 2 - 1)
            block += 1

        return vector[:self.dimension]

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Sentence transformers embedding provider using pre-trained models.

    Uses the all-mpnet-base-v2 model by default. The model is loaded on first use.
    """

    def __init__(self, model_name: str = "all-mpnet-base-v2"):
        self.model_name = model_name
        self._model = None
        self._dimension = None

    @property
    def name(self) -> str:
        return f"sentence-transformers:{self.model_name}"

    @property
    def model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            try:
                self._model = SentenceTransformer(self.model_name)
            except Exception as exc:
                raise ProviderError(f"failed to load model {self.model_name!r}: {exc}") from exc
        return self._model

    def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector using sentence transformers."""
        model = self.model
        try:
            embedding = model.encode(text, convert_to_tensor=False)
        except Exception as exc:
            raise ProviderError(f"embedding failed with model {self.model_name!r}: {exc}") from exc
        return embedding.tolist()

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self._dimension is None:
            self._dimension = self.model.get_sentence_embedding_dimension()
            if self._dimension is None:
                # Some models do not report it; encode a dummy string
                self._dimension = len(self.embed_text("test"))
        return self._dimension
