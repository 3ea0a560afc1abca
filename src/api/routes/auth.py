"""
API key issuance.

Keys have the form ``tlx_<32 hex>`` and map to a random key id in the
store's token namespace.
"""

import logging
import secrets
import uuid

from fastapi import APIRouter, Depends, Request

from ...errors import ValidationFailed
from ..dependencies import authenticate, get_services
from ..limits import strict_limit
from ..schemas import (
    ApiKeyInfoResponse,
    ApiKeyResponse,
    ApiKeyValidateBody,
    ApiKeyValidateResponse,
    MessageResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth")


def generate_api_key() -> str:
    return f"tlx_{secrets.token_hex(16)}"


@router.post(
    "/api-key/generate",
    response_model=ApiKeyResponse,
    status_code=201,
    summary="Issue a new API key",
    dependencies=[Depends(strict_limit)],
)
async def generate(request: Request) -> ApiKeyResponse:
    services = get_services(request)
    api_key = generate_api_key()
    key_id = str(uuid.uuid4())
    ttl = services.config.auth.api_key_ttl

    await services.store.set_token(api_key, key_id, ttl)
    logger.info(f"New API key generated: {key_id}")

    return ApiKeyResponse(api_key=api_key, key_id=key_id, expires_in=ttl)


@router.post(
    "/api-key/validate",
    response_model=ApiKeyValidateResponse,
    summary="Check whether an API key is valid",
    dependencies=[Depends(strict_limit)],
)
async def validate(body: ApiKeyValidateBody, request: Request) -> ApiKeyValidateResponse:
    if not body.api_key:
        raise ValidationFailed("API key is required", ["apiKey is required"])

    key_id = await get_services(request).store.get_token(body.api_key)
    return ApiKeyValidateResponse(valid=bool(key_id), key_id=key_id)


@router.delete(
    "/api-key/revoke",
    response_model=MessageResponse,
    summary="Revoke the calling API key",
    dependencies=[Depends(authenticate), Depends(strict_limit)],
)
async def revoke(request: Request, identity: str = Depends(authenticate)) -> MessageResponse:
    await get_services(request).store.delete_token(request.state.api_key)
    logger.info(f"API key revoked: {identity}")
    return MessageResponse(message="API key revoked successfully")


@router.get(
    "/api-key/info",
    response_model=ApiKeyInfoResponse,
    summary="Describe the calling API key",
    dependencies=[Depends(authenticate)],
)
async def info(request: Request, identity: str = Depends(authenticate)) -> ApiKeyInfoResponse:
    return ApiKeyInfoResponse(key_id=identity, api_key=f"{request.state.api_key[:10]}...")
