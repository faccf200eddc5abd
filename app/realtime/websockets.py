from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Optional
import asyncio
import logging

import socketio
from fastapi import HTTPException
from pydantic import ValidationError

from app.core.config import settings
from app.schemas.leaderboard import LiveErrorTick, ScopeKey
from app.services.leaderboard import leaderboard_service
from app.utils.events import LEADERBOARD_REBUILT, event_bus

logger = logging.getLogger(__name__)


@dataclass
class Subscription:
    scope_key: ScopeKey
    limit: int
    task: Optional[asyncio.Task] = None
    # one-off push started by a rebuild event
    event_task: Optional[asyncio.Task] = None
    pushing: bool = False


@dataclass
class ConnectionState:
    alive: bool = True
    subscription: Optional[Subscription] = None


class LeaderboardFanout:
    """Pushes the current leaderboard page to every live subscriber.

    Each connection holds at most one subscription with its own push task,
    so a slow or dead client never delays the others. A push that is still
    running when the next tick or rebuild event arrives makes that trigger a
    no-op: there is never more than one page in flight per subscriber.
    """

    def __init__(self, sio_server: socketio.AsyncServer, page_provider=leaderboard_service):
        self.sio = sio_server
        self.pages = page_provider
        self.connections: Dict[str, ConnectionState] = {}
        self._probe_task: Optional[asyncio.Task] = None

    def connect(self, sid: str) -> None:
        self.connections[sid] = ConnectionState()

    async def disconnect(self, sid: str) -> None:
        self.unsubscribe(sid)
        self.connections.pop(sid, None)

    async def subscribe(self, sid: str, data: Optional[dict]) -> Optional[Subscription]:
        if not isinstance(data, dict):
            data = {}
        try:
            scope_key = ScopeKey(
                scope=data.get("scope") or "global",
                period=data.get("period") or "all",
                quiz_id=data.get("quiz_id"),
                scope_ref=(data.get("batch_key") or "").strip() or None,
            )
        except ValidationError as e:
            messages = "; ".join(err["msg"] for err in e.errors())
            await self.sio.emit("error", {"type": "error", "message": f"Invalid leaderboard scope: {messages}"}, room=sid)
            return None

        connection = self.connections.setdefault(sid, ConnectionState())
        self.unsubscribe(sid)

        subscription = Subscription(scope_key=scope_key, limit=leaderboard_service.clamp_limit(data.get("limit")))
        connection.subscription = subscription
        subscription.task = asyncio.create_task(self._push_forever(sid, subscription))

        logger.info(f"Client {sid} subscribed to {scope_key}")
        await self.sio.emit("subscribed", {
            "scope": scope_key.scope.value,
            "period": scope_key.period.value,
            "status": "success"
        }, room=sid)
        return subscription

    def unsubscribe(self, sid: str) -> None:
        connection = self.connections.get(sid)
        if not connection or not connection.subscription:
            return
        for task in (connection.subscription.task, connection.subscription.event_task):
            if task is not None and not task.done():
                task.cancel()
        logger.info(f"Client {sid} unsubscribed from {connection.subscription.scope_key}")
        connection.subscription = None

    def mark_alive(self, sid: str) -> None:
        connection = self.connections.get(sid)
        if connection:
            connection.alive = True

    async def _push_forever(self, sid: str, subscription: Subscription) -> None:
        # first push happens immediately on subscribe
        while True:
            await self.push(sid, subscription)
            await asyncio.sleep(settings.LIVE_PUSH_INTERVAL_SECONDS)

    async def push(self, sid: str, subscription: Subscription) -> bool:
        if subscription.pushing:
            return False
        subscription.pushing = True
        try:
            page = await self.pages.get_page(subscription.scope_key, subscription.limit)
            await self.sio.emit("leaderboard", {"type": "leaderboard", **page}, room=sid)
            return True
        except asyncio.CancelledError:
            raise
        except Exception as e:
            message = e.detail if isinstance(e, HTTPException) else "Failed to load leaderboard"
            logger.error(f"Live push to {sid} for {subscription.scope_key} failed: {e!r}")
            tick = LiveErrorTick(
                scope=subscription.scope_key.scope,
                period=subscription.scope_key.period,
                message=message,
            )
            try:
                await self.sio.emit("error", tick.model_dump(mode="json"), room=sid)
            except Exception as emit_error:
                logger.warning(f"Could not deliver error tick to {sid}: {emit_error}")
            return False
        finally:
            subscription.pushing = False

    def push_matching(self, scope_keys: Iterable[ScopeKey]) -> int:
        """Start an immediate push for every subscriber of one of ``scope_keys``."""
        wanted = {key.scope_id for key in scope_keys}
        started = 0
        for sid, connection in list(self.connections.items()):
            subscription = connection.subscription
            if not subscription or subscription.scope_key.scope_id not in wanted:
                continue
            pending = subscription.event_task is not None and not subscription.event_task.done()
            if not subscription.pushing and not pending:
                subscription.event_task = asyncio.create_task(self.push(sid, subscription))
                started += 1
        return started

    async def on_leaderboard_rebuilt(self, data: dict) -> None:
        self.push_matching(data.get("scope_keys", []))

    async def probe_liveness(self) -> int:
        """Drop connections that did not answer the previous ping, then ping the rest."""
        dropped = 0
        for sid, connection in list(self.connections.items()):
            if not connection.alive:
                logger.warning(f"Client {sid} missed a liveness ping, disconnecting")
                await self.disconnect(sid)
                try:
                    await self.sio.disconnect(sid)
                except Exception as e:
                    logger.warning(f"Disconnecting {sid} failed: {e}")
                dropped += 1
                continue
            connection.alive = False
            try:
                await self.sio.emit("ping", {"timestamp": datetime.utcnow().isoformat()}, room=sid)
            except Exception as e:
                logger.warning(f"Ping to {sid} failed: {e}")
        return dropped

    async def _probe_forever(self) -> None:
        while True:
            await asyncio.sleep(settings.LIVE_PING_INTERVAL_SECONDS)
            try:
                await self.probe_liveness()
            except Exception as e:
                logger.error(f"Unhandled error in liveness probe: {e}")

    def start(self) -> None:
        event_bus.subscribe(LEADERBOARD_REBUILT, self.on_leaderboard_rebuilt)
        if self._probe_task is None or self._probe_task.done():
            self._probe_task = asyncio.create_task(self._probe_forever())

    async def stop(self) -> None:
        event_bus.unsubscribe(LEADERBOARD_REBUILT, self.on_leaderboard_rebuilt)
        if self._probe_task is not None:
            self._probe_task.cancel()
            self._probe_task = None
        for sid in list(self.connections):
            await self.disconnect(sid)


live_fanout: Optional[LeaderboardFanout] = None


def register_websocket_events(sio_server: socketio.AsyncServer) -> LeaderboardFanout:
    global live_fanout
    fanout = LeaderboardFanout(sio_server)
    live_fanout = fanout

    @sio_server.event
    async def connect(sid, environ, auth=None):
        fanout.connect(sid)
        logger.info(f"Client {sid} connected")
        await sio_server.emit('connected', {
            'status': 'success',
            'message': 'Connected successfully'
        }, room=sid)
        return True

    @sio_server.event
    async def disconnect(sid, *args):
        await fanout.disconnect(sid)
        logger.info(f"Client {sid} disconnected")

    @sio_server.on('subscribe')
    async def handle_subscribe(sid, data):
        fanout.mark_alive(sid)
        await fanout.subscribe(sid, data)

    @sio_server.on('unsubscribe')
    async def handle_unsubscribe(sid, data=None):
        fanout.mark_alive(sid)
        fanout.unsubscribe(sid)
        await sio_server.emit('unsubscribed', {'status': 'success'}, room=sid)

    @sio_server.on('pong')
    async def handle_pong(sid, data=None):
        fanout.mark_alive(sid)

    return fanout
