"""
NoteVault Backend — Store Result & Health Schemas
===================================================

What:  Pydantic models for the normalized shapes the persistence layer returns.
Why:   Both store backends must hand collaborators the same result shape, no
       matter what their driver natively produces.
Who:   RunResult is returned by StoreHandle.run(); HealthResponse by GET /health.
"""

from typing import Optional

from pydantic import BaseModel, Field


class RunResult(BaseModel):
    """
    Normalized outcome of a mutating statement.

    insert_id is None when the statement did not insert a row (or the
    backend could not report one).
    """
    rows_affected: int = Field(default=0, description="Number of rows changed")
    insert_id: Optional[int] = Field(default=None, description="Rowid of the last inserted row")

    model_config = {"frozen": True}


class HealthResponse(BaseModel):
    """
    What:  Aggregate health of the service and its stores.

    Status levels:
        healthy:    primary answers, remote ready or disabled
        degraded:   primary answers, remote pending or unavailable
        unhealthy:  primary does not answer (HTTP 503)
    """
    status: str = Field(description="healthy, degraded or unhealthy")
    version: str = Field(description="Backend version")
    primary: str = Field(description="connected or disconnected")
    remote: str = Field(description="disabled, pending, ready or unavailable")
    uptime_seconds: float = Field(description="Seconds since the service started")
