"""API route definitions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse

from facematch.api.schemas import (
    CompareResponse,
    EncodeResponse,
    ErrorResponse,
    HealthResponse,
    IdentityResponse,
    OperationStatsResponse,
    ReadyResponse,
    VerifyResponse,
)
from facematch.ml.model_manager import SessionState
from facematch.store.base import MAX_KEY_LENGTH, identity_key

if TYPE_CHECKING:
    from facematch.config import Settings
    from facematch.ml.inference import InferencePool
    from facematch.ml.model_manager import OnnxModelManager
    from facematch.service import FaceService

router = APIRouter(prefix="/api/v1")

_CORE_ERRORS: dict[int | str, dict[str, object]] = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: {"model": ErrorResponse},
    status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
}


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


def _get_model_manager(request: Request) -> OnnxModelManager:
    manager: OnnxModelManager = request.app.state.model_manager
    return manager


def _get_face_service(request: Request) -> FaceService:
    service: FaceService = request.app.state.face_service
    return service


async def _read_image(request: Request, upload: UploadFile) -> bytes:
    data = await upload.read()
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded image is empty")
    if len(data) > _get_settings(request).max_file_size:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Uploaded image exceeds the maximum file size",
        )
    return data


def _identity_not_found(identity_id: int) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {identity_id} not found")


@router.post(
    "/faces/encode",
    response_model=EncodeResponse,
    responses=_CORE_ERRORS,
    summary="Enroll a face under a name",
)
async def encode_face(
    request: Request,
    image: UploadFile,
    name: Annotated[str, Form(min_length=1, max_length=MAX_KEY_LENGTH)],
) -> EncodeResponse:
    """Embed the uploaded face and create or replace the identity for ``name``."""
    data = await _read_image(request, image)
    try:
        identity_key(name)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    service = _get_face_service(request)
    record = await _get_inference_pool(request).submit("enroll", service.enroll, name, data)
    return EncodeResponse(user_id=record.id, name=record.name, embedding_length=len(record.embedding))


@router.get(
    "/faces/{identity_id}",
    response_model=IdentityResponse,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
    summary="Fetch a stored identity",
)
def get_face(request: Request, identity_id: int) -> IdentityResponse:
    record = _get_face_service(request).get_identity(identity_id)
    if record is None:
        raise _identity_not_found(identity_id)
    return IdentityResponse(user_id=record.id, name=record.name, embedding_length=len(record.embedding))


@router.post(
    "/faces/{identity_id}/verify",
    response_model=VerifyResponse,
    responses={**_CORE_ERRORS, status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
    summary="Verify a face against a stored identity",
)
async def verify_face(request: Request, identity_id: int, image: UploadFile) -> VerifyResponse:
    data = await _read_image(request, image)
    service = _get_face_service(request)
    result = await _get_inference_pool(request).submit("verify", service.verify, identity_id, data)
    if result is None:
        raise _identity_not_found(identity_id)
    return VerifyResponse(
        user_id=result.identity.id,
        similarity=result.match.similarity,
        threshold=result.match.threshold,
        match=result.match.is_match,
    )


@router.post(
    "/faces/compare",
    response_model=CompareResponse,
    responses=_CORE_ERRORS,
    summary="Compare two face images",
)
async def compare_faces(request: Request, image_a: UploadFile, image_b: UploadFile) -> CompareResponse:
    data_a = await _read_image(request, image_a)
    data_b = await _read_image(request, image_b)
    service = _get_face_service(request)
    result = await _get_inference_pool(request).submit("compare", service.compare, data_a, data_b)
    return CompareResponse(similarity=result.similarity, threshold=result.threshold, match=result.is_match)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    pool = _get_inference_pool(request)
    manager = _get_model_manager(request)
    info = manager.model_info()
    return HealthResponse(
        status="ok",
        model_state=str(manager.state),
        model_inputs=info["inputs"],
        model_outputs=info["outputs"],
        concurrent_requests=pool.running,
        queue_depth=pool.waiting,
        operations={name: OperationStatsResponse.model_validate(stats) for name, stats in pool.stats().items()},
    )


@router.get(
    "/ready",
    response_model=ReadyResponse,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ReadyResponse}},
    summary="Readiness check",
)
async def ready(request: Request) -> JSONResponse:
    """Return 200 once the model session is loaded, 503 otherwise."""
    state = _get_model_manager(request).state
    code = status.HTTP_200_OK if state is SessionState.READY else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=code, content=ReadyResponse(model_state=str(state)).model_dump())
