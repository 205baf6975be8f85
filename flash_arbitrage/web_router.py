"""
HTTP control surface for the scanner.

REST endpoints to start/stop scanning and read opportunities and execution
records, plus a WebSocket relaying broadcaster events.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from .exceptions import ConfigurationError
from .service import ArbitrageService
from .utils import get_logger
from .version import get_version

logger = get_logger(__name__)


# ============================================================================
# Pydantic Models
# ============================================================================


class PairOverride(BaseModel):
    token_in: str
    token_out: str


class ScanStartRequest(BaseModel):
    """Optional per-session overrides of the configured scan parameters."""

    min_profit_percent: Optional[float] = Field(default=None, ge=0)
    min_net_profit_percent: Optional[float] = None
    min_net_profit_usd: Optional[float] = Field(default=None, ge=0)
    max_gas_price_gwei: Optional[float] = Field(default=None, gt=0)
    scan_interval_seconds: Optional[float] = Field(default=None, gt=0)
    loan_amount: Optional[float] = Field(default=None, gt=0)
    venues: Optional[List[str]] = None
    token_pairs: Optional[List[PairOverride]] = None

    def overrides(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class TelegramToggle(BaseModel):
    enabled: bool


# ============================================================================
# WebSocket relay
# ============================================================================


class WebSocketHub:
    """Tracks connected clients and relays broadcaster events to them."""

    def __init__(self):
        self.clients: List[WebSocket] = []

    async def broadcast_ws(self, message: Dict[str, Any]) -> None:
        disconnected = []
        for client in self.clients:
            try:
                await client.send_json(message)
            except Exception:
                disconnected.append(client)
        for client in disconnected:
            if client in self.clients:
                self.clients.remove(client)


# ============================================================================
# Dependencies
# ============================================================================


def get_service(request: Request) -> ArbitrageService:
    return request.app.state.service


async def _status(service: ArbitrageService) -> Dict[str, Any]:
    scanner = service.scanner
    config = scanner.config
    get_bot_status = getattr(service.storage, "get_bot_status", None)
    bot_status = await get_bot_status() if get_bot_status else {}
    return {
        "running": scanner.is_running(),
        "phase": scanner.phase.value,
        "cycles": scanner.cycle_count,
        "inflight_executions": scanner.inflight_count,
        "active_opportunities": len(scanner.registry),
        "mode": "simulation" if service.settings.use_simulation else "real",
        "network": service.settings.network_mode,
        "config": config.to_dict() if config else None,
        "bot_status": bot_status,
        "version": get_version(),
    }


# ============================================================================
# API Endpoints
# ============================================================================

router = APIRouter(prefix="/api/scanner", tags=["Scanner"])


@router.post("/start")
async def start_scanner(
    body: Optional[ScanStartRequest] = None,
    service: ArbitrageService = Depends(get_service),
):
    """Start scanning with optional overrides."""
    overrides = body.overrides() if body else {}
    try:
        config = await service.scanner.start_scanning(overrides or None)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
    return {"status": "started", "config": config.to_dict()}


@router.post("/stop")
async def stop_scanner(service: ArbitrageService = Depends(get_service)):
    await service.scanner.stop_scanning()
    return {"status": "stopped", "inflight_executions": service.scanner.inflight_count}


@router.get("/status")
async def scanner_status(service: ArbitrageService = Depends(get_service)):
    return await _status(service)


@router.get("/opportunities")
async def list_opportunities(service: ArbitrageService = Depends(get_service)):
    return [o.to_dict() for o in service.scanner.get_opportunities()]


@router.get("/executions")
async def list_executions(limit: int = 50, service: ArbitrageService = Depends(get_service)):
    records = await service.storage.list_execution_records(limit=limit)
    return [r.to_dict() for r in records]


@router.get("/activity")
async def list_activity(
    limit: int = 100,
    category: Optional[str] = None,
    service: ArbitrageService = Depends(get_service),
):
    recent = getattr(service.storage, "recent_activity", None)
    if recent is None:
        return []
    return [e.to_dict() for e in recent(limit=limit, category=category)]


@router.post("/telegram")
async def toggle_telegram(toggle: TelegramToggle, service: ArbitrageService = Depends(get_service)):
    set_enabled = getattr(service.notifier, "set_enabled", None)
    if set_enabled is None:
        raise HTTPException(status_code=404, detail="Telegram notifier not configured")
    set_enabled(toggle.enabled)
    return {"telegram_enabled": toggle.enabled}


@router.websocket("/ws")
async def scanner_websocket(websocket: WebSocket):
    """Relays opportunityFound, tradeExecuted and scanCycleCompleted events."""
    hub: WebSocketHub = websocket.app.state.ws_hub
    service: ArbitrageService = websocket.app.state.service
    await websocket.accept()
    hub.clients.append(websocket)
    logger.info(f"Scanner WS client connected. Total: {len(hub.clients)}")

    try:
        await websocket.send_json({"type": "status", "data": await _status(service)})
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        if websocket in hub.clients:
            hub.clients.remove(websocket)
        logger.info(f"Scanner WS client disconnected. Total: {len(hub.clients)}")


def create_app(service: ArbitrageService) -> FastAPI:
    """FastAPI application exposing the scanner router."""
    app = FastAPI(title="Flash Arbitrage Scanner", version=get_version())
    hub = WebSocketHub()
    app.state.service = service
    app.state.ws_hub = hub
    service.events.subscribe(hub.broadcast_ws)
    app.include_router(router)

    @app.get("/api/health")
    async def health_check():
        return {"status": "ok", "version": get_version()}

    @app.on_event("shutdown")
    async def shutdown():
        await service.close()

    return app
