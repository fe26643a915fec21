# chatdesk/api/main.py
from __future__ import annotations

import os

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chatdesk.api.routes.chat import router as chat_router
from chatdesk.config import is_truthy


def _parse_csv_list(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


_DEFAULT_CORS_ORIGINS = [
    "http://127.0.0.1:3000",
    "http://localhost:3000",
    "http://127.0.0.1:3001",
    "http://localhost:3001",
]

cors_origins = _parse_csv_list(os.getenv("CHATDESK_CORS_ORIGINS")) or _DEFAULT_CORS_ORIGINS
cors_allow_credentials = is_truthy(os.getenv("CHATDESK_CORS_ALLOW_CREDENTIALS"))

app = FastAPI(title="chatdesk")
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_allow_credentials,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


app.include_router(chat_router, prefix="/api")
