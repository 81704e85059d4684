"""Pydantic response models for the Terminus API.

The dashboard snapshot itself lives in ``terminus.core.dashboard``.
"""

from __future__ import annotations

from typing import List

from pydantic import BaseModel


# ── Health ───────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str = "healthy"
    timestamp: str
    service: str = "railway-terminus"
    version: str


# ── Debug ────────────────────────────────────────────────────────

class DiagnosticLine(BaseModel):
    type: str
    message: str


class DebugResponse(BaseModel):
    success: bool
    message: str
    logs: List[DiagnosticLine]
    timestamp: str
