from datetime import datetime

from pydantic import BaseModel, Field


class PingResponse(BaseModel):
    status: str = Field(..., description="Service status")
    latency_ms: float = Field(..., description="Time spent answering, artificial delay included")
    server_time: datetime = Field(..., description="Server time (UTC)")


class VerifyRequest(BaseModel):
    score: int = Field(..., ge=0, le=100, description="Benchmark score computed by the client")


class VerifyResponse(BaseModel):
    ok: bool = True
    user_id: int
    benchmark_score: int


class CliRequest(BaseModel):
    command: str = Field("", max_length=500, description="Command line typed in the terminal")


class CliResponse(BaseModel):
    output: str
    clear: bool = False
