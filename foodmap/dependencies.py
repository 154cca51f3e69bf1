from __future__ import annotations

from fastapi import HTTPException, Request

from .search.orchestrator import SearchOrchestrator


def get_orchestrator(request: Request) -> SearchOrchestrator:
    """Return the engine built at startup; 503 until it exists."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Search engine is not ready")
    return orchestrator
