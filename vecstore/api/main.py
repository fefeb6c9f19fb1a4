"""
HTTP API over the vector store facade.
"""

from fastapi import FastAPI, HTTPException, Depends
from typing import Optional

from .schemas import (
    AddDocumentsRequest,
    AddDocumentsResponse,
    DeleteRequest,
    DeleteResponse,
    SearchRequest,
    SearchHit,
    SearchResponse,
    HealthResponse,
)
from ..core.config import VERSION, debug_enabled, get_vector_store
from ..core.errors import (
    DegenerateVectorError,
    DimensionMismatchError,
    EmbeddingTimeoutError,
    InvalidArgumentError,
    ProviderError,
)
from ..util.logging import logger
from ..vector.store import VectorStore
from ..vector.types import Document

# Initialize the FastAPI application
app = FastAPI(
    title="vecstore API",
    version=VERSION,
    description="In-process vector similarity search",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None
)

_store: Optional[VectorStore] = None


def get_store() -> VectorStore:
    """Process-wide store built from configuration on first use."""
    global _store
    if _store is None:
        _store = get_vector_store()
    return _store


def _raise_http(exc: Exception):
    """Map engine and provider failures onto HTTP status codes."""
    if isinstance(exc, EmbeddingTimeoutError):
        raise HTTPException(status_code=504, detail=str(exc))
    if isinstance(exc, ProviderError):
        detail = {"error": str(exc)}
        if exc.document_index is not None:
            detail["document_index"] = exc.document_index
            detail["document_id"] = exc.document_id
        raise HTTPException(status_code=502, detail=detail)
    if isinstance(exc, (InvalidArgumentError, DimensionMismatchError, DegenerateVectorError)):
        raise HTTPException(status_code=400, detail=str(exc))
    raise exc


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint(store: VectorStore = Depends(get_store)):
    """Report index size and shape."""
    index = store.index
    return HealthResponse(
        status="healthy",
        version=VERSION,
        record_count=len(index),
        dimension=index.dimension,
        metric=index.metric.value,
        backend=type(index).__name__,
    )


@app.post("/documents", response_model=AddDocumentsResponse)
def add_documents_endpoint(req: AddDocumentsRequest, store: VectorStore = Depends(get_store)):
    """Embed and store a batch of documents; all or nothing."""
    try:
        documents = [Document(content=d.content, metadata=d.metadata, id=d.id) for d in req.documents]
        ids = store.add(documents)
    except (ProviderError, InvalidArgumentError, DimensionMismatchError, DegenerateVectorError) as exc:
        logger.warning(f"Add documents rejected: {exc}")
        _raise_http(exc)

    return AddDocumentsResponse(ids=ids, count=len(ids))


@app.post("/documents/delete", response_model=DeleteResponse)
def delete_documents_endpoint(req: DeleteRequest, store: VectorStore = Depends(get_store)):
    """Delete by id; unknown ids are reported, not rejected."""
    result = store.delete(req.ids)
    return DeleteResponse(requested=result.requested, removed=result.removed, success=result.success)


@app.post("/search", response_model=SearchResponse)
def search_endpoint(req: SearchRequest, store: VectorStore = Depends(get_store)):
    """Similarity search over stored documents."""
    try:
        results = store.similarity_search(req.query, k=req.k, threshold=req.threshold)
    except (ProviderError, InvalidArgumentError, DimensionMismatchError, DegenerateVectorError) as exc:
        logger.warning(f"Search rejected: {exc}")
        _raise_http(exc)

    hits = [SearchHit(**result.to_dict()) for result in results]
    return SearchResponse(query=req.query, results=hits, total=len(hits))
