# solana_alert_bot_bundle/alert_bot/database.py
from __future__ import annotations

import aiosqlite
import asyncio
import json
import logging
import os
import time
import traceback
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from solana_alert_bot_bundle.common.constants import db_path

from .models import Alert
from .utils_exec import custom_json_encoder

logger = logging.getLogger("AlertBot")


# ------------------------------------------------------------------
# Shared aiosqlite connection: lazy singleton + async context manager
# ------------------------------------------------------------------
_aiosqlite_conn: Optional[aiosqlite.Connection] = None
_aiosqlite_lock = asyncio.Lock()
_configured_db_path: Optional[str] = None


def configure_db_path(path: Optional[str]) -> None:
    """Point the shared connection at ``path`` (takes effect on next connect)."""
    global _configured_db_path
    _configured_db_path = path


def _resolve_db_path() -> str:
    raw = _configured_db_path or os.getenv("ALERT_DB_PATH") or str(db_path())
    if raw == ":memory:":
        return raw
    p = os.path.abspath(os.path.expanduser(os.path.expandvars(str(raw))))
    os.makedirs(os.path.dirname(p), exist_ok=True)
    return p


async def _ensure_shared_conn(dbp: Optional[str] = None) -> aiosqlite.Connection:
    """
    Ensure a single shared aiosqlite.Connection exists for the process.
    Lazily creates the connection (and bootstraps schema) on first use.
    """
    global _aiosqlite_conn
    async with _aiosqlite_lock:
        if _aiosqlite_conn is None:
            path = dbp or _resolve_db_path()
            conn = await aiosqlite.connect(path)
            await conn.execute("PRAGMA journal_mode=WAL;")
            await conn.execute("PRAGMA busy_timeout=30000;")
            await conn.execute("PRAGMA synchronous=NORMAL;")
            conn.row_factory = aiosqlite.Row
            await _ensure_core_schema(conn)
            await conn.commit()
            _aiosqlite_conn = conn
            logger.debug("Shared DB connection opened at %s", path)
        return _aiosqlite_conn


@asynccontextmanager
async def _connect(dbp: Optional[str] = None):
    """
    Yield the shared connection. Does NOT close it on exit; call
    close_shared_db() at shutdown.
    """
    conn = await _ensure_shared_conn(dbp)
    yield conn


async def close_shared_db() -> None:
    """Close the shared aiosqlite connection. Safe to call multiple times."""
    global _aiosqlite_conn
    async with _aiosqlite_lock:
        if _aiosqlite_conn is not None:
            try:
                await _aiosqlite_conn.close()
            except (aiosqlite.Error, ValueError):
                logger.debug("close_shared_db: error closing connection", exc_info=True)
            _aiosqlite_conn = None


async def init_db(dbp: Optional[str] = None) -> None:
    await _ensure_shared_conn(dbp)


async def _ensure_core_schema(db: aiosqlite.Connection) -> None:
    await db.executescript("""
        CREATE TABLE IF NOT EXISTS alerts (
            mint TEXT PRIMARY KEY,
            id TEXT NOT NULL,
            symbol TEXT,
            composite_score INTEGER NOT NULL DEFAULT 0,
            is_valid INTEGER NOT NULL DEFAULT 0,
            tier_reached INTEGER NOT NULL DEFAULT 1,
            data TEXT NOT NULL,
            timestamp INTEGER NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_alerts_timestamp ON alerts(timestamp);
        CREATE INDEX IF NOT EXISTS idx_alerts_score ON alerts(composite_score);

        CREATE TABLE IF NOT EXISTS kv_state (
            key TEXT PRIMARY KEY,
            value TEXT,
            updated_at INTEGER NOT NULL
        );

        CREATE TABLE IF NOT EXISTS sent_alerts (
            mint TEXT NOT NULL,
            channel TEXT NOT NULL,
            timestamp INTEGER NOT NULL,
            PRIMARY KEY (mint, channel)
        );
    """)


# =========================
# Alerts
# =========================
async def upsert_alert(alert: Alert) -> None:
    """Insert or replace the alert for ``alert.token.mint`` (latest validation wins)."""
    blob = json.dumps(alert.as_dict(), default=custom_json_encoder)
    async with _connect() as db:
        await db.execute("""
            INSERT INTO alerts (mint, id, symbol, composite_score, is_valid, tier_reached, data, timestamp)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(mint) DO UPDATE SET
                id=excluded.id,
                symbol=excluded.symbol,
                composite_score=excluded.composite_score,
                is_valid=excluded.is_valid,
                tier_reached=excluded.tier_reached,
                data=excluded.data,
                timestamp=excluded.timestamp;
        """, (
            alert.token.mint,
            alert.id,
            alert.token.symbol,
            int(alert.composite_score),
            1 if alert.is_valid else 0,
            int(alert.tier_reached),
            blob,
            int(time.time()),
        ))
        await db.commit()
    logger.debug("Upserted alert %s (%s)", alert.token.symbol, alert.token.mint)


async def get_alert(mint: str) -> Optional[Dict[str, Any]]:
    async with _connect() as db:
        async with db.execute("SELECT data FROM alerts WHERE mint = ?;", (mint,)) as cur:
            row = await cur.fetchone()
    return json.loads(row["data"]) if row else None


async def list_alerts(limit: int = 50, min_score: int = 0) -> List[Dict[str, Any]]:
    try:
        async with _connect() as db:
            async with db.execute(
                "SELECT data FROM alerts WHERE composite_score >= ? ORDER BY timestamp DESC LIMIT ?;",
                (int(min_score), int(limit)),
            ) as cur:
                rows = await cur.fetchall()
        return [json.loads(r["data"]) for r in rows]
    except (aiosqlite.Error, ValueError) as e:
        logger.error("Failed to list alerts: %s\n%s", e, traceback.format_exc())
        return []


async def prune_old_alerts(max_age_hours: float = 168) -> int:
    cutoff = int(time.time()) - int(max_age_hours * 3600)
    try:
        async with _connect() as db:
            before = db.total_changes
            await db.execute("DELETE FROM alerts WHERE timestamp < ?;", (cutoff,))
            await db.execute("DELETE FROM sent_alerts WHERE timestamp < ?;", (cutoff,))
            await db.commit()
            deleted = db.total_changes - before
        logger.info("Pruned %d old alert rows older than %.1f hours", deleted, max_age_hours)
        return deleted
    except aiosqlite.Error as e:
        logger.error("Failed to prune old alerts: %s\n%s", e, traceback.format_exc())
        return 0


# =========================
# Rolling key/value state
# =========================
async def get_state(key: str) -> Any:
    async with _connect() as db:
        async with db.execute("SELECT value FROM kv_state WHERE key = ?;", (key,)) as cur:
            row = await cur.fetchone()
    if not row or row["value"] is None:
        return None
    return json.loads(row["value"])


async def set_state(key: str, value: Any) -> None:
    async with _connect() as db:
        await db.execute("""
            INSERT INTO kv_state (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at;
        """, (key, json.dumps(value, default=custom_json_encoder), int(time.time())))
        await db.commit()


# =========================
# Delivery dedup
# =========================
async def was_recently_sent(mint: str, channel: str, within_hours: float = 24) -> bool:
    cutoff = int(time.time()) - int(within_hours * 3600)
    async with _connect() as db:
        async with db.execute(
            "SELECT 1 FROM sent_alerts WHERE mint = ? AND channel = ? AND timestamp >= ?;",
            (mint, channel, cutoff),
        ) as cur:
            return (await cur.fetchone()) is not None


async def mark_sent(mint: str, channel: str) -> None:
    async with _connect() as db:
        await db.execute("""
            INSERT INTO sent_alerts (mint, channel, timestamp) VALUES (?, ?, ?)
            ON CONFLICT(mint, channel) DO UPDATE SET timestamp=excluded.timestamp;
        """, (mint, channel, int(time.time())))
        await db.commit()


class AlertStore:
    """Storage collaborator handed to the validator and the assembler."""

    async def upsert_alert(self, alert: Alert) -> None:
        await upsert_alert(alert)

    async def get_state(self, key: str) -> Any:
        return await get_state(key)

    async def set_state(self, key: str, value: Any) -> None:
        await set_state(key, value)

    async def was_recently_sent(self, mint: str, channel: str, within_hours: float = 24) -> bool:
        return await was_recently_sent(mint, channel, within_hours)

    async def mark_sent(self, mint: str, channel: str) -> None:
        await mark_sent(mint, channel)


__all__ = [
    "AlertStore",
    "configure_db_path",
    "init_db",
    "close_shared_db",
    "upsert_alert",
    "get_alert",
    "list_alerts",
    "prune_old_alerts",
    "get_state",
    "set_state",
    "was_recently_sent",
    "mark_sent",
]
