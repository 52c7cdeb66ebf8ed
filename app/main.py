import time
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

# Load environment variables from .env file before anything else
load_dotenv()

from app.core.config import settings
from app.core.logging import setup_logging, request_id_ctx
from app.core.db import init_models
from app.api.router import api_router
from app.api.deps import build_scheduling
from app.platform.provider_registry import registry

setup_logging()
app = FastAPI(title=settings.APP_NAME)
logger = logging.getLogger(__name__)

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id", "-")
    token = request_id_ctx.set(rid)
    try:
        return await call_next(request)
    finally:
        request_id_ctx.reset(token)

@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    response = await call_next(request)

    process_time = (time.time() - start_time) * 1000
    formatted_process_time = f"{process_time:.2f}ms"

    logger.info(
        f"Request: {request.method} {request.url.path} - Response: {response.status_code} - Time: {formatted_process_time}"
    )

    return response

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.critical(f"Unhandled exception for request {request.method} {request.url.path}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"message": "An internal server error occurred."},
    )

@app.on_event("startup")
async def on_startup():
    if settings.STORE_PROVIDER == "sql":
        await init_models()
    # tests install their own container before the app is started
    if getattr(app.state, "scheduling", None) is None:
        app.state.scheduling = build_scheduling()
    logger.info(f"Scheduling core ready (store={settings.STORE_PROVIDER}, bus={settings.EVENT_BUS_PROVIDER})")

@app.on_event("shutdown")
async def on_shutdown():
    sched = getattr(app.state, "scheduling", None)
    if sched is not None:
        await sched.shutdown()
    await registry.close()


app.include_router(api_router, prefix=settings.API_PREFIX)

if __name__ == "__main__":
    import os
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
