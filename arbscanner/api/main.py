from fastapi import Body, FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import Any, Dict, List, Optional
import asyncio
import json
import logging
import time

from ..config.settings import ScannerConfig, DEFAULT_CONFIG
from ..core.engine import ArbitrageScanner
from ..core.exceptions import OpportunityNotFound
from ..services.activity_log import DEFAULT_ACTIVITY_LIMIT

MIN_CLIENT_ID_LENGTH = 5

logger = logging.getLogger(__name__)

class ExecuteRequest(BaseModel):
    id: Optional[int] = None

def _now_ms() -> int:
    return int(time.time() * 1000)

class WebSocketChannel:
    """Push channel bound to one client's websocket."""

    def __init__(self, websocket: WebSocket, client_id: str):
        self.websocket = websocket
        self.client_id = client_id
        self._send_lock = asyncio.Lock()

    async def send(self, event_type: str, data: Any) -> None:
        async with self._send_lock:
            await self.websocket.send_json({
                "type": event_type,
                "data": data,
                "timestamp": _now_ms()
            })

def create_app(
    config: Optional[ScannerConfig] = None,
    scanner: Optional[ArbitrageScanner] = None
) -> FastAPI:
    """Build the API around a scanner instance."""
    config = config or DEFAULT_CONFIG
    scanner = scanner or ArbitrageScanner(config)

    app = FastAPI(title="Arbitrage Scanner API")
    app.state.scanner = scanner

    # Enable CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("shutdown")
    async def shutdown_event():
        """Stop sessions and release HTTP sessions on shutdown."""
        await scanner.close()

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket, clientId: Optional[str] = None):
        await websocket.accept()
        if not clientId or len(clientId) < MIN_CLIENT_ID_LENGTH:
            logger.warning(f"Invalid clientId: {clientId}")
            await websocket.close(code=1008, reason="Invalid client ID")
            return

        client_id = clientId
        channel = WebSocketChannel(websocket, client_id)
        logger.info(f"WebSocket client connected with ID: {client_id}")
        await websocket.send_json({
            "type": "connection_established",
            "clientId": client_id,
            "timestamp": _now_ms()
        })

        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    message = json.loads(raw)
                    message_type = message.get("type")
                except (ValueError, AttributeError):
                    await channel.send("error", {"message": "Invalid message format"})
                    continue

                if message_type == "ping":
                    await websocket.send_json({
                        "type": "pong",
                        "clientId": client_id,
                        "timestamp": _now_ms()
                    })
                elif message_type == "startArbitrageScanner":
                    await scanner.sessions.start_session(client_id, channel)
                elif message_type == "stopArbitrageScanner":
                    await scanner.sessions.stop_session(client_id, channel)
                else:
                    logger.debug(f"Ignoring message type {message_type} from {client_id}")
        except WebSocketDisconnect:
            logger.info(f"WebSocket client {client_id} disconnected")
        finally:
            await scanner.sessions.stop_session(client_id, notify=False)

    # Arbitrage Endpoints

    @app.get("/api/arbitrage/opportunities")
    async def get_opportunities(limit: int = Query(50, ge=1)) -> List[Dict]:
        """Opportunities joined with their asset, most recent first."""
        opportunities = await scanner.sessions.enriched_opportunities(limit)
        return [o.to_message() for o in opportunities]

    @app.post("/api/arbitrage/execute")
    async def execute_opportunity(request: ExecuteRequest):
        """Mark an opportunity executed through the execution collaborator."""
        if request.id is None:
            raise HTTPException(status_code=400, detail="Opportunity ID is required")
        try:
            opportunity = await scanner.execution.execute(request.id)
        except OpportunityNotFound as e:
            raise HTTPException(status_code=404, detail=e.message)
        return opportunity.model_dump(mode="json")

    @app.get("/api/arbitrage/settings")
    async def get_settings():
        settings = await scanner.settings_manager.get_arbitrage_settings()
        return settings.model_dump(mode="json")

    @app.post("/api/arbitrage/settings")
    async def update_settings(payload: Dict = Body(...)):
        """Partially update arbitrage settings; applies to sessions started afterwards."""
        try:
            settings = await scanner.settings_manager.update_arbitrage_settings(payload)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        await scanner.activity_log.add("Arbitrage settings updated")
        return settings.model_dump(mode="json")

    @app.get("/api/quote")
    async def get_quote(
        inputMint: str,
        outputMint: str,
        amount: int = Query(..., gt=0),
        slippageBps: int = Query(50, ge=0, le=10000)
    ):
        """Single quote through the cache and venue rotation."""
        cached = await scanner.tester.get_quote(
            inputMint,
            outputMint,
            amount,
            slippage_bps=slippageBps
        )
        if cached is None:
            raise HTTPException(status_code=404, detail="No quote available")
        return cached.quote.model_dump(mode="json")

    # Asset and system endpoints

    @app.get("/api/assets")
    async def get_assets():
        return [a.model_dump(mode="json") for a in await scanner.asset_db.list_all()]

    @app.get("/api/activity")
    async def get_activity(limit: int = Query(DEFAULT_ACTIVITY_LIMIT, ge=1)):
        return [entry.to_dict() for entry in await scanner.activity_log.list(limit)]

    @app.get("/api/status")
    async def get_status():
        status = await scanner.check_status()
        if scanner.metrics:
            status["metrics"] = scanner.metrics.get_current_metrics()
        return status

    return app
