"""FastAPI host process: owns the store connection and the client hub."""
from __future__ import annotations

import sys
from pathlib import Path
from contextlib import asynccontextmanager
from datetime import datetime

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from scopedsql.config import configure_logging, get_store_config
from scopedsql.db.database import Database
from scopedsql.db.sql import get_sql
from scopedsql.lifecycle import register_shutdown
from scopedsql.services.notifier import ClientHub


hub = ClientHub()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store on startup; close it on shutdown."""
    cfg = get_store_config()
    configure_logging(cfg.log_level)

    sql = get_sql()
    sql.set_db_connection(Database(path=cfg.db_path))
    sql.notifier = hub
    close_once = register_shutdown(sql.close)

    yield

    close_once()


app = FastAPI(
    title="scoped-sqlite",
    description="SQLite data access with implicit transactions",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/status")
async def get_status():
    """Report store and client state."""
    sql = get_sql()
    return {
        "status": "ok",
        "timestamp": datetime.now().isoformat(),
        "db": sql.get_value("SELECT 1") if sql.is_connected else None,
        "clients": hub.client_count,
    }


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    """Keep a client registered for post-commit pings until it disconnects."""
    await hub.connect(ws)
    try:
        while True:
            await ws.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(ws)
