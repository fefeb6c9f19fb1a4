"""
Request and response models for the vector store HTTP API.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Union

MetadataValue = Union[bool, int, float, str]


class DocumentIn(BaseModel):
    content: str
    metadata: Dict[str, MetadataValue] = Field(default_factory=dict)
    id: Optional[str] = None

    @field_validator('content')
    @classmethod
    def content_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('content cannot be empty')
        return v

    @field_validator('id')
    @classmethod
    def id_must_not_be_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError('id cannot be blank')
        return v


class AddDocumentsRequest(BaseModel):
    documents: List[DocumentIn]

    @field_validator('documents')
    @classmethod
    def documents_must_not_be_empty(cls, v):
        if not v:
            raise ValueError('documents cannot be empty')
        return v


class AddDocumentsResponse(BaseModel):
    ids: List[str]
    count: int


class DeleteRequest(BaseModel):
    ids: List[str]


class DeleteResponse(BaseModel):
    requested: int
    removed: int
    success: bool


class SearchRequest(BaseModel):
    query: str
    k: Optional[int] = None
    threshold: Optional[float] = None

    @field_validator('query')
    @classmethod
    def query_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('query cannot be empty')
        return v

    @field_validator('k')
    @classmethod
    def k_must_be_positive(cls, v):
        if v is not None and v <= 0:
            raise ValueError('k must be a positive integer')
        return v


class SearchHit(BaseModel):
    id: str
    content: str
    metadata: Dict[str, MetadataValue]
    score: float


class SearchResponse(BaseModel):
    query: str
    results: List[SearchHit]
    total: int


class HealthResponse(BaseModel):
    status: str
    version: str
    record_count: int
    dimension: Optional[int]
    metric: str
    backend: str
