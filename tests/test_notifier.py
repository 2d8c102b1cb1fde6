"""Tests for the websocket client hub and the host server.

Websockets are replaced by ``AsyncMock`` objects for the hub tests; the
server tests drive the real FastAPI app through ``TestClient``.
"""

from __future__ import annotations

import asyncio
import time
import unittest
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from scopedsql.db.sql import get_sql
from scopedsql.services.notifier import PING_MESSAGE, ClientHub


def _socket():
    ws = AsyncMock()
    ws.accept = AsyncMock()
    ws.send_json = AsyncMock()
    return ws


class TestClientHub(unittest.TestCase):
    def test_notify_without_clients_is_noop(self):
        ClientHub().notify_all_clients()

    def test_ping_sent_from_event_loop(self):
        hub = ClientHub()
        ws = _socket()

        async def main():
            await hub.connect(ws)
            hub.notify_all_clients()
            await asyncio.sleep(0.01)

        asyncio.run(main())
        ws.accept.assert_awaited_once()
        ws.send_json.assert_awaited_once_with(PING_MESSAGE)

    def test_ping_sent_from_worker_thread(self):
        hub = ClientHub()
        ws = _socket()

        async def main():
            await hub.connect(ws)
            await asyncio.to_thread(hub.notify_all_clients)
            await asyncio.sleep(0.01)

        asyncio.run(main())
        ws.send_json.assert_awaited_once_with(PING_MESSAGE)

    def test_failed_client_is_dropped(self):
        hub = ClientHub()
        good, bad = _socket(), _socket()
        bad.send_json.side_effect = RuntimeError("connection reset")

        async def main():
            await hub.connect(good)
            await hub.connect(bad)
            hub.notify_all_clients()
            await asyncio.sleep(0.01)

        with self.assertLogs("scopedsql.services.notifier", level="WARNING"):
            asyncio.run(main())
        self.assertEqual(hub.client_count, 1)
        good.send_json.assert_awaited_once_with(PING_MESSAGE)


# ===========================================================================
# Host server
# ===========================================================================

@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SCOPEDSQL_DB_PATH", str(tmp_path / "server.db"))
    from server.app import app
    with TestClient(app) as c:
        yield c


def test_status_reports_database(client):
    resp = client.get("/api/status")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["db"] == 1


def test_commit_pings_connected_client(client):
    from server.app import hub

    sql = get_sql()
    sql.execute_script("CREATE TABLE options (name TEXT PRIMARY KEY, value TEXT)")

    with client.websocket_connect("/ws") as ws:
        deadline = time.monotonic() + 2
        while hub.client_count == 0 and time.monotonic() < deadline:
            time.sleep(0.01)

        sql.transactional(sql.upsert, "options", "name", {"name": "theme", "value": "dark"})
        assert ws.receive_json() == PING_MESSAGE

    assert sql.get_value("SELECT value FROM options WHERE name = 'theme'") == "dark"
