"""Probe response bodies."""

from __future__ import annotations

from pydantic import Field
from sqlmodel import SQLModel


class HealthStatusResponse(SQLModel):
    """Body returned by the liveness and readiness probes."""

    ok: bool = Field(description="True when the probe passed.", examples=[True])
