"""FastAPI server broadcasting change notifications (live-reload style)."""

import json
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from ..models import LogLevel, WatchOptions, WatcherError
from ..watchers import Watcher, load_options_from_yaml

logger = logging.getLogger(__name__)


# -------------------------------------------------------------------------
# Request/Response Models
# -------------------------------------------------------------------------

class WatchResponse(BaseModel):
    """Watch status response."""
    sources: list[str]
    exclude: list[str]
    use_polling: bool
    watching: bool
    notifications: int
    clients: int


class LogLevelRequest(BaseModel):
    """Request to change the watcher's log level."""
    level: LogLevel


# -------------------------------------------------------------------------
# WebSocket Connection Manager
# -------------------------------------------------------------------------

class ConnectionManager:
    """Manages WebSocket connections for real-time updates."""

    def __init__(self):
        self.active_connections: list[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.info(f"WebSocket connected. Total connections: {len(self.active_connections)}")

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
        logger.info(f"WebSocket disconnected. Total connections: {len(self.active_connections)}")

    async def broadcast(self, message: dict):
        """Broadcast a message to all connected clients."""
        if not self.active_connections:
            return

        message_json = json.dumps(message, default=str)

        for connection in self.active_connections.copy():
            try:
                await connection.send_text(message_json)
            except Exception as e:
                logger.warning(f"Error sending WebSocket message: {e}")
                self.disconnect(connection)


# -------------------------------------------------------------------------
# App Factory
# -------------------------------------------------------------------------

def _load_options() -> WatchOptions:
    config_path = Path(os.environ.get("CHANGEWATCH_CONFIG", "config/changewatch.yaml"))
    return load_options_from_yaml(config_path)


def create_app(options: Optional[WatchOptions] = None, watcher: Optional[Watcher] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        options: Watch options; read from CHANGEWATCH_CONFIG when omitted
        watcher: Pre-built watcher (takes precedence over options)
    """
    manager = ConnectionManager()
    if watcher is None:
        watcher = Watcher(options if options is not None else _load_options())

    async def on_change(path: str) -> None:
        await manager.broadcast({"event": "change", "path": path})

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting changewatch server...")
        watcher.watch(on_change)

        yield

        logger.info("Shutting down changewatch server...")
        if watcher.subscription is not None:
            await watcher.subscription.close()
        logger.info("changewatch server stopped")

    app = FastAPI(
        title="changewatch",
        description="File change notifications over WebSocket",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.watcher = watcher
    app.state.connections = manager

    @app.get("/health")
    async def health():
        return {"status": "ok", "watching": watcher.is_watching}

    @app.get("/api/watch", response_model=WatchResponse)
    async def get_watch():
        """Get the resolved watch configuration and counters."""
        return WatchResponse(
            sources=list(watcher.config.sources),
            exclude=list(watcher.config.exclude),
            use_polling=watcher.config.use_polling,
            watching=watcher.is_watching,
            notifications=watcher.notifications,
            clients=len(manager.active_connections),
        )

    @app.put("/api/log-level")
    async def set_log_level(request: LogLevelRequest):
        """Change the watcher's diagnostic verbosity."""
        try:
            watcher.set_log_level(request.level)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"level": request.level.value}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """WebSocket endpoint streaming change notifications."""
        await manager.connect(websocket)
        try:
            while True:
                data = await websocket.receive_text()
                logger.debug(f"Received WebSocket message: {data}")
        except WebSocketDisconnect:
            manager.disconnect(websocket)

    return app


# -------------------------------------------------------------------------
# Main Entry Point
# -------------------------------------------------------------------------

def main():
    """Run the notification server."""
    import argparse

    parser = argparse.ArgumentParser(description="changewatch notification server")
    parser.add_argument("--config", help="YAML watch configuration (default: $CHANGEWATCH_CONFIG)")
    parser.add_argument("--source", action="append", help="Path to watch (repeatable)")
    parser.add_argument("--exclude", action="append", help="Glob pattern to exclude (repeatable)")
    parser.add_argument("--polling", action="store_true", help="Poll instead of native events")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--log-level", default="info", help="Log level")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        if args.source:
            options = WatchOptions(source=args.source, exclude=args.exclude, use_polling=args.polling)
        elif args.config:
            options = load_options_from_yaml(Path(args.config))
        else:
            options = _load_options()

        watcher = Watcher(options)
        if args.log_level.lower() in {level.value for level in LogLevel}:
            watcher.set_log_level(args.log_level)
    except WatcherError as e:
        parser.error(str(e))

    uvicorn.run(create_app(watcher=watcher), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
