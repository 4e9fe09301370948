import asyncio
import random
import time
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from socialclaw.db.database import get_db
from socialclaw.db.models import UserModel
from socialclaw.db.repositories import set_benchmark_score
from socialclaw.services.cli import run_command

from .config import Settings
from .dependencies import get_api_user, get_app_settings
from .schemas import CliRequest, CliResponse, PingResponse, VerifyRequest, VerifyResponse

api_router = APIRouter(prefix="/api", tags=["api"])


@api_router.get("/ping", summary="Ping", description="Latency probe with a small artificial delay", response_model=PingResponse)
async def ping(settings: Settings = Depends(get_app_settings)) -> PingResponse:
    started = time.perf_counter()
    if settings.PING_MAX_JITTER_MS > 0:
        await asyncio.sleep(random.uniform(0, settings.PING_MAX_JITTER_MS) / 1000)
    latency_ms = round((time.perf_counter() - started) * 1000, 2)
    return PingResponse(status="ok", latency_ms=latency_ms, server_time=datetime.utcnow())


@api_router.post("/verify", summary="Verify", description="Store the caller's benchmark score", response_model=VerifyResponse)
def verify(payload: VerifyRequest, user: UserModel = Depends(get_api_user), db: Session = Depends(get_db)) -> VerifyResponse:
    user = set_benchmark_score(db, user, payload.score)
    return VerifyResponse(ok=True, user_id=user.id, benchmark_score=user.benchmark_score)


@api_router.post("/cli", summary="Terminal command", description="Run one fake-terminal command", response_model=CliResponse)
def cli(payload: CliRequest, user: UserModel = Depends(get_api_user), db: Session = Depends(get_db)) -> CliResponse:
    result = run_command(db, user, payload.command)
    return CliResponse(output=result.output, clear=result.clear)
