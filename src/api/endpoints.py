import random
from typing import Optional

from fastapi import APIRouter, Header
from fastapi.responses import StreamingResponse

from src.core.client import DeepSeekClient
from src.core.config import config
from src.core.constants import Constants
from src.core.credentials import split_tokens
from src.core.exceptions import RequestInvalidError
from src.core.logging import logger
from src.models.openai import ChatCompletionRequest, TokenCheckRequest

router = APIRouter()

deepseek_client = DeepSeekClient(
    base_url=config.deepseek_base_url,
    timeout=config.request_timeout,
    completion_timeout=config.completion_timeout,
    max_retries=config.max_retry_count,
    retry_delay=config.retry_delay_seconds,
    access_token_ttl=config.access_token_ttl,
    credential_cache_max_size=config.credential_cache_max_size,
    fallback_message=config.fallback_message,
    custom_headers=config.get_custom_headers(),
)


def select_refresh_token(authorization: Optional[str]) -> str:
    tokens = split_tokens(authorization)
    if not tokens:
        raise RequestInvalidError("Params headers.authorization invalid")
    return random.choice(tokens)


@router.post("/v1/chat/completions")
async def create_chat_completion(
    request: ChatCompletionRequest,
    authorization: Optional[str] = Header(default=None),
):
    refresh_token = select_refresh_token(authorization)
    logger.debug(
        "Processing chat request: model=%s, stream=%s, messages=%d",
        request.model,
        request.stream,
        len(request.messages),
    )

    if request.stream:
        stream = await deepseek_client.create_chat_completion_stream(
            request.model, request.messages, refresh_token
        )
        return StreamingResponse(
            stream,
            media_type=Constants.EVENT_STREAM_MEDIA_TYPE,
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
            },
        )

    return await deepseek_client.create_chat_completion(
        request.model, request.messages, refresh_token
    )


@router.get("/v1/models")
async def list_models():
    return {
        "data": [
            {"id": model, "object": "model", "owned_by": "deepseek-free-api"}
            for model in config.available_models
        ]
    }


@router.post("/token/check")
async def check_token(request: TokenCheckRequest):
    live = await deepseek_client.get_token_live_status(request.token)
    return {"live": live}


@router.get("/health")
async def health_check():
    return {"status": "healthy"}


@router.get("/")
async def root():
    return {
        "message": "DeepSeek Chat Proxy v1.0.0",
        "status": "running",
        "config": {
            "deepseek_base_url": config.deepseek_base_url,
            "default_model": config.default_model,
            "available_models": config.available_models,
            "max_retry_count": config.max_retry_count,
            "retry_delay_seconds": config.retry_delay_seconds,
            "cached_credentials": len(deepseek_client.credentials),
        },
        "endpoints": {
            "chat_completions": "/v1/chat/completions",
            "models": "/v1/models",
            "token_check": "/token/check",
            "health": "/health",
        },
    }
