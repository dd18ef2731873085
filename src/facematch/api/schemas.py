"""Pydantic request/response schemas for the FaceMatch API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class EncodeResponse(BaseModel):
    """Response for face enrollment."""

    success: bool = True
    user_id: int
    name: str
    embedding_length: int = Field(description="Dimension of the stored embedding (e.g. 512)")


class IdentityResponse(BaseModel):
    """A stored identity without its embedding values."""

    success: bool = True
    user_id: int
    name: str
    embedding_length: int


class CompareResponse(BaseModel):
    """Outcome of comparing two faces."""

    success: bool = True
    similarity: float = Field(ge=-1.0, le=1.0, description="Cosine similarity of the two embeddings")
    threshold: float
    match: bool


class VerifyResponse(CompareResponse):
    """Outcome of comparing an image against a stored identity."""

    user_id: int


class ErrorDetail(BaseModel):
    type: str
    message: str


class ErrorResponse(BaseModel):
    """Error envelope returned for every failed request."""

    success: bool = False
    error: ErrorDetail


class OperationStatsResponse(BaseModel):
    completed: int
    rejected: int
    failures: dict[str, int] = Field(description="Failed calls keyed by error type")


class HealthResponse(BaseModel):
    """Health check response."""

    model_config = ConfigDict(protected_namespaces=())

    status: str = "ok"
    model_state: str = Field(description="One of 'unloaded', 'loading', 'ready', 'failed'")
    model_inputs: list[str] = Field(default_factory=list, description="Input tensor names of the loaded model")
    model_outputs: list[str] = Field(default_factory=list, description="Output tensor names of the loaded model")
    concurrent_requests: int
    queue_depth: int
    operations: dict[str, OperationStatsResponse] = Field(default_factory=dict)


class ReadyResponse(BaseModel):
    """Readiness response, sent with 200 when ready and 503 otherwise."""

    model_config = ConfigDict(protected_namespaces=())

    model_state: str
