import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

import gateway.integrations.slack.listeners  # noqa: F401  registers built-in listeners
from gateway.integrations.slack.dispatcher import slack
from gateway.integrations.slack.exceptions import InvalidRequest, Unauthorized
from gateway.integrations.slack.router import router as slack_router
from gateway.settings import app_settings

logging.getLogger("gateway").setLevel(app_settings.log_level.upper())


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await slack.store.aclose()


app = FastAPI(lifespan=lifespan)


@app.exception_handler(Unauthorized)
async def unauthorized_handler(_request: Request, exc: Unauthorized):
    return JSONResponse(status_code=401, content={"error": "unauthorized"})


@app.exception_handler(InvalidRequest)
async def invalid_request_handler(_request: Request, exc: InvalidRequest):
    return JSONResponse(status_code=400, content={"error": "invalid_request", "detail": str(exc)})


@app.get("/health")
async def health():
    return {"status": "ok"}


app.include_router(slack_router)
