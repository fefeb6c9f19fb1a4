"""
Environment-driven configuration and factories for the vector store.
Values are read once at import; factories read the module constants so tests can patch them.
"""

import os
from typing import List, Optional


def _optional_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    return int(value) if value else None


def _optional_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    return float(value) if value else None


# Debug flag
DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Index configuration
VECTOR_PROVIDER = os.getenv("VECTOR_PROVIDER", "memory")  # memory|faiss
VECTOR_METRIC = os.getenv("VECTOR_METRIC", "cosine")  # cosine|dot|euclidean
VECTOR_DIMENSION = _optional_int("VECTOR_DIMENSION")  # unset = inferred from first record

# Embedding provider configuration
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "hash")  # hash|sentence-transformers
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "all-mpnet-base-v2")
EMBED_DIM = int(os.getenv("EMBED_DIM", "384"))
EMBED_TIMEOUT_SEC = _optional_float("EMBED_TIMEOUT_SEC")  # unset = no timeout

# Query defaults
DEFAULT_TOP_K = int(os.getenv("DEFAULT_TOP_K", "4"))

# Snapshot persistence (unset = purely in-memory store)
SNAPSHOT_PATH = os.getenv("SNAPSHOT_PATH")
SNAPSHOT_AUTOFLUSH = os.getenv("SNAPSHOT_AUTOFLUSH", "true").lower() == "true"

VALID_VECTOR_PROVIDERS = ["memory", "faiss"]
VALID_EMBED_PROVIDERS = ["hash", "sentence-transformers"]
VALID_METRICS = ["cosine", "dot", "euclidean"]

# Version string
VERSION = "1.0.0"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def get_index_factory():
    """Get the configured index class."""
    from ..core.errors import InvalidArgumentError

    if VECTOR_PROVIDER == "memory":
        from ..vector.index import InMemoryIndex
        return InMemoryIndex
    elif VECTOR_PROVIDER == "faiss":
        from ..vector.faiss_store import FaissIndex
        return FaissIndex
    raise InvalidArgumentError(f"Invalid VECTOR_PROVIDER: {VECTOR_PROVIDER}")


def get_vector_index():
    """Get a new, empty index of the configured backend and metric."""
    factory = get_index_factory()
    return factory(metric=VECTOR_METRIC, dimension=VECTOR_DIMENSION)


def get_embedding_provider():
    """Get configured embedding provider implementation."""
    from ..core.errors import InvalidArgumentError

    if EMBED_PROVIDER == "hash":
        from ..vector.embeddings import DeterministicHashEmbedding
        return DeterministicHashEmbedding(dimension=EMBED_DIM)
    elif EMBED_PROVIDER == "sentence-transformers":
        from ..vector.embeddings import SentenceTransformerEmbedding
        return SentenceTransformerEmbedding(EMBED_MODEL_NAME)
    raise InvalidArgumentError(f"Invalid EMBED_PROVIDER: {EMBED_PROVIDER}")


def get_vector_store(embedding_provider=None):
    """
    Build the configured store facade.

    Returns a PersistentVectorStore when SNAPSHOT_PATH is set, otherwise a
    purely in-memory VectorStore.
    """
    from ..vector.store import PersistentVectorStore, VectorStore

    provider = embedding_provider if embedding_provider is not None else get_embedding_provider()

    if SNAPSHOT_PATH:
        return PersistentVectorStore(
            provider,
            SNAPSHOT_PATH,
            metric=VECTOR_METRIC,
            index_factory=get_index_factory(),
            autoflush=SNAPSHOT_AUTOFLUSH,
            dimension=VECTOR_DIMENSION,
            default_top_k=DEFAULT_TOP_K,
            embedding_timeout=EMBED_TIMEOUT_SEC,
        )

    return VectorStore(
        provider,
        index=get_vector_index(),
        default_top_k=DEFAULT_TOP_K,
        embedding_timeout=EMBED_TIMEOUT_SEC,
    )


def validate_config() -> List[str]:
    """Validate configuration and return any issues."""
    issues = []

    if VECTOR_PROVIDER not in VALID_VECTOR_PROVIDERS:
        issues.append(f"Invalid VECTOR_PROVIDER: {VECTOR_PROVIDER}")

    if VECTOR_METRIC not in VALID_METRICS:
        issues.append(f"Invalid VECTOR_METRIC: {VECTOR_METRIC}")

    if VECTOR_DIMENSION is not None and VECTOR_DIMENSION < 1:
        issues.append("VECTOR_DIMENSION must be >= 1")

    if EMBED_PROVIDER not in VALID_EMBED_PROVIDERS:
        issues.append(f"Invalid EMBED_PROVIDER: {EMBED_PROVIDER}")

    if EMBED_DIM < 1:
        issues.append("EMBED_DIM must be >= 1")

    if EMBED_PROVIDER == "hash" and VECTOR_DIMENSION is not None and VECTOR_DIMENSION != EMBED_DIM:
        issues.append("VECTOR_DIMENSION must equal EMBED_DIM for the hash provider")

    if EMBED_TIMEOUT_SEC is not None and EMBED_TIMEOUT_SEC <= 0:
        issues.append("EMBED_TIMEOUT_SEC must be > 0")

    if DEFAULT_TOP_K < 1:
        issues.append("DEFAULT_TOP_K must be >= 1")

    return issues
