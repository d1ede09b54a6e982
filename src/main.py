import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.api.endpoints import deepseek_client, router as api_router
from src.core.config import config
from src.core.exceptions import APIException, ErrorCodes
from src.core.logging import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await deepseek_client.aclose()


app = FastAPI(title="DeepSeek Chat Proxy", version="1.0.0", lifespan=lifespan)
app.include_router(api_router)


@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    logger.error("API exception (%s %s): [%d] %s", request.method, request.url.path, exc.errcode, exc.errmsg)
    return JSONResponse(status_code=exc.http_status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    code, message = ErrorCodes.SYSTEM_REQUEST_VALIDATION_ERROR
    logger.warning("Request validation failed (%s): %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=400,
        content={"code": code, "message": message, "data": None},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    code, message = ErrorCodes.SYSTEM_ERROR
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"code": code, "message": f"{message}: {exc}", "data": None},
    )


def main():
    if len(sys.argv) > 1 and sys.argv[1] == "--help":
        print("DeepSeek Chat Proxy v1.0.0")
        print("")
        print("Usage: deepseek-proxy [--env-file PATH | --env NAME]")
        print("")
        print("Environment variables:")
        print("  DEEPSEEK_BASE_URL - Upstream base URL (default: https://chat.deepseek.com)")
        print("  HOST - Server host (default: 0.0.0.0)")
        print("  PORT - Server port (default: 8000)")
        print("  LOG_LEVEL - Logging level (default: INFO)")
        print("  MAX_RETRY_COUNT - Upstream attempts per request (default: 3)")
        print("  RETRY_DELAY_SECONDS - Delay between attempts (default: 5)")
        print("  ACCESS_TOKEN_TTL - Access token lifetime in seconds (default: 3600)")
        print("  CREDENTIAL_CACHE_MAX_SIZE - Cached refresh tokens, 0 = unbounded (default: 0)")
        sys.exit(0)

    print("DeepSeek Chat Proxy v1.0.0")
    print(f"   Upstream: {config.deepseek_base_url}")
    print(f"   Models: {', '.join(config.available_models)}")
    print(f"   Server: {config.host}:{config.port}")
    print("")

    log_level = config.log_level.split()[0].lower()
    if log_level not in ["debug", "info", "warning", "error", "critical"]:
        log_level = "info"

    uvicorn.run(
        "src.main:app",
        host=config.host,
        port=config.port,
        log_level=log_level,
        reload=False,
    )


if __name__ == "__main__":
    main()
