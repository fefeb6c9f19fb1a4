"""
In-process vector similarity engine.
"""

# Package initialization for vector module
from .index import DEFAULT_TOP_K, IVectorIndex, InMemoryIndex, IndexSnapshot
from .metrics import Metric, cosine_similarity, dot_product, euclidean_distance
from .types import VectorRecord, Document, QueryResult, DeleteResult
from .embeddings import IEmbeddingProvider, DeterministicHashEmbedding, SentenceTransformerEmbedding
from .store import VectorStore, PersistentVectorStore
from .faiss_store import FaissIndex

__all__ = [
    'DEFAULT_TOP_K',
    'IVectorIndex',
    'InMemoryIndex',
    'IndexSnapshot',
    'Metric',
    'cosine_similarity',
    'dot_product',
    'euclidean_distance',
    'VectorRecord',
    'Document',
    'QueryResult',
    'DeleteResult',
    'IEmbeddingProvider',
    'DeterministicHashEmbedding',
    'SentenceTransformerEmbedding',
    'VectorStore',
    'PersistentVectorStore',
    'FaissIndex',
]
