"""Control API routes."""

from typing import Any

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException

from ...app import Application


class StatusResponse(BaseModel):
    """Response model for status."""

    status: str


class RealtimeStatusResponse(BaseModel):
    connected: bool
    open_channels: int


# Global SIM instance (will be set by main app)
_sim_instance: Any = None


def set_sim_instance(sim: Any) -> None:
    """Set the global SIM instance."""
    global _sim_instance
    _sim_instance = sim


def get_sim_instance() -> Any:
    """Get the global SIM instance."""
    return _sim_instance


def create_control_router(app: Application) -> APIRouter:
    """Create control router."""
    router = APIRouter(prefix="/api/control", tags=["control"])

    @router.post("/reset", response_model=StatusResponse)
    async def reset_system() -> dict:
        """Reset system data between test runs."""
        await app.reset()
        return {"status": "ok"}

    @router.post("/sim/start", response_model=StatusResponse)
    async def start_sim() -> dict:
        """Start SIM simulation."""
        if not _sim_instance:
            raise HTTPException(status_code=404, detail="SIM not configured")
        await _sim_instance.start()
        return {"status": "ok"}

    @router.post("/sim/stop", response_model=StatusResponse)
    async def stop_sim() -> dict:
        """Stop SIM simulation."""
        if not _sim_instance:
            raise HTTPException(status_code=404, detail="SIM not configured")
        await _sim_instance.stop()
        return {"status": "ok"}

    @router.get("/realtime", response_model=RealtimeStatusResponse)
    async def realtime_status() -> dict:
        transport = app.transport
        return {"connected": transport.connected, "open_channels": transport.open_channels}

    @router.post("/realtime/disconnect", response_model=RealtimeStatusResponse)
    async def disconnect_realtime() -> dict:
        """Drop the change feed; attached subscribers see a channel error."""
        transport = app.transport
        await transport.disconnect("disconnected via control API")
        return {"connected": transport.connected, "open_channels": transport.open_channels}

    @router.post("/realtime/reconnect", response_model=RealtimeStatusResponse)
    async def reconnect_realtime() -> dict:
        transport = app.transport
        transport.reconnect()
        return {"connected": transport.connected, "open_channels": transport.open_channels}

    return router
