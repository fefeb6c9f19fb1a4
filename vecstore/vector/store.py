"""
VectorStore facade: text in, similar documents out.

The embedding provider is passed in explicitly. Every vector in a batch is
computed before the index is touched, so a provider failure or timeout never
leaves a batch half-applied.
"""

import threading
import uuid
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Any, Callable, Iterable, List, Mapping, Optional, Union

from ..core.errors import (
    DegenerateVectorError,
    DimensionMismatchError,
    EmbeddingTimeoutError,
    InvalidArgumentError,
    ProviderError,
)
from ..util.logging import logger
from . import codec
from .embeddings import IEmbeddingProvider
from .index import DEFAULT_TOP_K, IVectorIndex, InMemoryIndex, validate_k
from .metrics import Metric
from .types import DeleteResult, Document, QueryResult, VectorRecord, check_encodable

DocumentLike = Union[Document, Mapping[str, Any]]


class VectorStore:
    """
    Public contract for adding, deleting and searching documents.

    Args:
        embedding_provider: Collaborator turning text into vectors
        index: Backend holding the records (defaults to a cosine InMemoryIndex)
        default_top_k: k used when a search omits it
        embedding_timeout: Seconds allowed per provider call, None for no limit
    """

    def __init__(self, embedding_provider: IEmbeddingProvider, index: Optional[IVectorIndex] = None,
                 default_top_k: int = DEFAULT_TOP_K, embedding_timeout: Optional[float] = None):
        if embedding_provider is None:
            raise InvalidArgumentError("an embedding provider is required")
        if embedding_timeout is not None and embedding_timeout <= 0:
            raise InvalidArgumentError("embedding_timeout must be positive")
        self.embedding_provider = embedding_provider
        self._index = index if index is not None else InMemoryIndex()
        self.default_top_k = validate_k(default_top_k)
        self.embedding_timeout = embedding_timeout

    @property
    def index(self) -> IVectorIndex:
        return self._index

    def __len__(self) -> int:
        return len(self._index)

    def add(self, documents: Iterable[DocumentLike], timeout: Optional[float] = None) -> List[str]:
        """
        Embed and store documents; all or nothing.

        Args:
            documents: Document objects or mappings with content, metadata and optional id
            timeout: Per-call provider timeout overriding the store default

        Returns:
            Ids of the stored records, generated where a document had none

        Raises:
            ProviderError: the provider's own exception, with document_index and
                document_id set to the failing document; nothing is stored
            DimensionMismatchError, DegenerateVectorError: a provider vector the
                index rejects, named by its position in documents
        """
        docs = [self._coerce_document(doc) for doc in documents]
        if not docs:
            return []

        records = []
        for position, doc in enumerate(docs):
            try:
                embedding = self._embed(doc.content, timeout)
            except ProviderError as exc:
                exc.document_index = position
                exc.document_id = doc.id
                logger.log_vector_operation(
                    "add", doc.id or f"document[{position}]",
                    {"batch_size": len(docs), "error": str(exc)}, status="failed",
                )
                raise
            try:
                records.append(VectorRecord(
                    id=doc.id or str(uuid.uuid4()),
                    content=doc.content,
                    embedding=embedding,
                    metadata=doc.metadata,
                ))
            except InvalidArgumentError as exc:
                raise InvalidArgumentError(f"document {position}: {exc}") from exc

        try:
            self._write(lambda: self._index.upsert_many(records))
        except (DimensionMismatchError, DegenerateVectorError) as exc:
            position = exc.batch_position
            if position is None:
                raise
            if isinstance(exc, DimensionMismatchError):
                error = DimensionMismatchError(exc.expected, exc.actual, f"document {position}")
            else:
                error = DegenerateVectorError(f"document {position}: {exc}")
            error.batch_position = position
            raise error from exc
        return [record.id for record in records]

    def delete(self, ids: Iterable[str]) -> DeleteResult:
        """Delete by id. Missing ids are not an error; they show up in DeleteResult.missing."""
        if isinstance(ids, str):
            ids = [ids]
        unique_ids = set(ids)
        removed = self._write(lambda: self._index.delete(unique_ids))
        return DeleteResult(requested=len(unique_ids), removed=removed)

    def similarity_search(self, query: str, k: Optional[int] = None, threshold: Optional[float] = None,
                          timeout: Optional[float] = None) -> List[QueryResult]:
        """
        Return up to k stored documents most similar to query, best first.

        k defaults to default_top_k; threshold defaults to accepting every score.
        Scores equal to the threshold are kept.
        """
        if not isinstance(query, str) or not query.strip():
            raise InvalidArgumentError("query must be a non-empty string")
        check_encodable(query, "query")
        k = self.default_top_k if k is None else validate_k(k)
        vector = self._embed(query, timeout)
        return self._index.query(vector, k=k, threshold=threshold)

    def similarity_search_by_vector(self, vector, k: Optional[int] = None,
                                    threshold: Optional[float] = None) -> List[QueryResult]:
        k = self.default_top_k if k is None else validate_k(k)
        return self._index.query(vector, k=k, threshold=threshold)

    def save_snapshot(self, path: Union[str, Path]) -> Path:
        return codec.save_to_file(self._index, path)

    @classmethod
    def from_snapshot(cls, embedding_provider: IEmbeddingProvider, path: Union[str, Path],
                      index_factory=InMemoryIndex, **kwargs) -> "VectorStore":
        index = codec.load_from_file(path, index_factory=index_factory)
        return cls(embedding_provider, index=index, **kwargs)

    def close(self) -> None:
        """Release resources held by the store. Abandoned provider calls are not waited for."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _coerce_document(self, doc: DocumentLike) -> Document:
        if isinstance(doc, Document):
            return doc
        if isinstance(doc, Mapping):
            return Document.from_mapping(doc)
        raise InvalidArgumentError(f"expected Document or mapping, got {type(doc).__name__}")

    def _embed(self, text: str, timeout: Optional[float]) -> List[float]:
        """
        Call the provider, enforcing the timeout if one applies.

        Each timed call runs on its own worker thread, so a call abandoned after
        a timeout never delays the calls that follow it.
        """
        timeout = self.embedding_timeout if timeout is None else timeout
        if timeout is None:
            return self.embedding_provider.embed_text(text)
        if timeout <= 0:
            raise InvalidArgumentError("timeout must be positive")

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="vecstore-embed")
        try:
            future = executor.submit(self.embedding_provider.embed_text, text)
            try:
                return future.result(timeout=timeout)
            except FutureTimeoutError:
                logger.log_provider_call(self._provider_name(), status="failed", details={"timeout_sec": timeout})
                raise EmbeddingTimeoutError(f"embedding provider did not answer within {timeout}s") from None
        finally:
            executor.shutdown(wait=False)

    def _provider_name(self) -> str:
        return getattr(self.embedding_provider, "name", type(self.embedding_provider).__name__)

    def _write(self, mutate: Callable[[], Any]) -> Any:
        """Apply one index mutation. Subclasses wrap this to persist the result."""
        return mutate()


class PersistentVectorStore(VectorStore):
    """
    VectorStore backed by a snapshot file.

    Loads the snapshot at construction when the file exists. With autoflush the
    whole index is rewritten after every add or delete, and a write whose flush
    fails is rolled back so memory and file never diverge. Without autoflush
    call flush(); close() flushes any writes still pending. Writes and flushes
    are serialised so a later flush never writes older state.
    """

    def __init__(self, embedding_provider: IEmbeddingProvider, snapshot_path: Union[str, Path],
                 metric: Union[str, Metric] = Metric.COSINE, index_factory=InMemoryIndex,
                 autoflush: bool = True, dimension: Optional[int] = None, **kwargs):
        self.snapshot_path = Path(snapshot_path)
        self.autoflush = autoflush
        self._flush_lock = threading.RLock()
        self._dirty = False

        if self.snapshot_path.exists():
            index = codec.load_from_file(self.snapshot_path, index_factory=index_factory)
            if index.metric is not Metric.parse(metric):
                logger.warning(
                    f"Snapshot {self.snapshot_path} uses metric {index.metric.value}; "
                    f"ignoring configured {Metric.parse(metric).value}"
                )
        elif dimension is not None:
            index = index_factory(metric=metric, dimension=dimension)
        else:
            index = index_factory(metric=metric)

        super().__init__(embedding_provider, index=index, **kwargs)

    def flush(self) -> Path:
        with self._flush_lock:
            path = codec.save_to_file(self._index, self.snapshot_path)
            self._dirty = False
            return path

    def close(self) -> None:
        with self._flush_lock:
            if self._dirty:
                self.flush()
        super().close()

    def _write(self, mutate: Callable[[], Any]) -> Any:
        with self._flush_lock:
            if not self.autoflush:
                result = mutate()
                self._dirty = True
                return result

            before = self._index.snapshot()
            result = mutate()
            try:
                self.flush()
            except Exception:
                self._index.restore(before)
                logger.log_snapshot_operation("save", str(self.snapshot_path), len(before.records),
                                              status="failed", details={"rolled_back": True})
                raise
            return result
