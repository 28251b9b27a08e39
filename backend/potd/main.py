"""FastAPI application entrypoint."""

import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from potd.ai.gemini import LastGoodEndpointCache
from potd.db import create_db_and_tables
from potd.routers.grade import router as grade_router
from potd.routers.graders import router as graders_router
from potd.routers.leaderboard import router as leaderboard_router
from potd.routers.questions import router as questions_router
from potd.routers.submissions import router as submissions_router
from potd.settings import settings

app = FastAPI(title=settings.app_name, version="0.1.0")
app.state.endpoint_cache = LastGoodEndpointCache()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=False,
    allow_methods=["POST", "GET", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(grade_router, prefix="/api")
app.include_router(questions_router, prefix="/api")
app.include_router(graders_router, prefix="/api")
app.include_router(submissions_router, prefix="/api")
app.include_router(leaderboard_router, prefix="/api")


@app.on_event("startup")
def on_startup() -> None:
    create_db_and_tables()


@app.get("/health", tags=["meta"])
def health() -> dict[str, bool]:
    gemini_api_key = os.getenv("GEMINI_API_KEY", "")
    return {"ok": True, "gemini_configured": bool(gemini_api_key.strip())}


@app.options("/{path:path}", include_in_schema=False)
async def preflight(path: str) -> Response:
    del path
    return Response(status_code=204)
