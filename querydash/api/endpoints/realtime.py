import asyncio
import logging
from typing import Any, Dict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from querydash.core.broadcast.errors import AuthError, QueryError
from querydash.core.broadcast.orchestrator import QueryOrchestrator
from querydash.core.broadcast.registry import (
    Subscriber,
    SubscriptionRegistry,
    dashboard_topic,
)
from querydash.core.security import Principal, extract_bearer_token, verify_token
from querydash.core.services import orchestrator_dep, registry_dep

router = APIRouter(tags=["Realtime"])

logger = logging.getLogger(__name__)

# Close code for a refused handshake (4000-4999 is application defined)
WS_CLOSE_UNAUTHORIZED = 4401


async def pump_events(
    websocket: WebSocket, subscriber: Subscriber, registry: SubscriptionRegistry
):
    """Single writer for the connection: drain the outbox in order."""
    while True:
        event = await subscriber.next_event()
        try:
            await websocket.send_json(event)
        except Exception as error:
            # A dead socket must stop collecting broadcasts straight away
            logger.debug("Send to %s failed: %s", subscriber.connection_id, error)
            registry.leave_all(subscriber.connection_id)
            return


def _dashboard_id(message: Dict[str, Any]) -> str:
    dashboard_id = message.get("dashboardId")
    if dashboard_id is None or str(dashboard_id).strip() == "":
        raise ValueError("dashboardId is required")
    return str(dashboard_id).strip()


async def handle_message(
    message: Any,
    principal: Principal,
    subscriber: Subscriber,
    registry: SubscriptionRegistry,
    orchestrator: QueryOrchestrator,
):
    connection_id = subscriber.connection_id
    if not isinstance(message, dict):
        registry.send(connection_id, {"type": "query-error", "error": "Malformed message"})
        return

    kind = message.get("type")
    query_id = message.get("queryId")
    try:
        if kind == "subscribe-dashboard":
            dashboard_id = _dashboard_id(message)
            registry.join(connection_id, dashboard_topic(dashboard_id))
            registry.send(connection_id, {"type": "subscribed", "dashboardId": dashboard_id})

        elif kind == "unsubscribe-dashboard":
            dashboard_id = _dashboard_id(message)
            registry.leave(connection_id, dashboard_topic(dashboard_id))
            registry.send(connection_id, {"type": "unsubscribed", "dashboardId": dashboard_id})

        elif kind == "execute-query":
            dashboard_id = _dashboard_id(message)
            envelope = await orchestrator.execute_query(
                principal,
                dashboard_id,
                message.get("naturalLanguage") or "",
                query_id=str(query_id) if query_id else None,
            )
            # Direct reply; subscribers of the topic already got the broadcast copy
            registry.send(connection_id, envelope.to_event())

        else:
            registry.send(
                connection_id, {"type": "query-error", "error": f"Unknown message type: {kind}"}
            )
    except ValueError as error:
        registry.send(
            connection_id, {"type": "query-error", "queryId": query_id, "error": str(error)}
        )
    except QueryError as error:
        # Errors go back to the originating connection only, never broadcast
        registry.send(
            connection_id, {"type": "query-error", "queryId": query_id, "error": error.message}
        )


async def process_messages(
    inbox: asyncio.Queue,
    principal: Principal,
    subscriber: Subscriber,
    registry: SubscriptionRegistry,
    orchestrator: QueryOrchestrator,
):
    """Handle one connection's messages one at a time, in arrival order."""
    while True:
        message = await inbox.get()
        try:
            await handle_message(message, principal, subscriber, registry, orchestrator)
        except Exception:
            logger.exception("Failed to handle message on %s", subscriber.connection_id)


@router.websocket("/ws")
async def realtime_channel(
    websocket: WebSocket,
    registry: registry_dep,
    orchestrator: orchestrator_dep,
):
    token = extract_bearer_token(websocket.headers.get("authorization"))
    token = token or websocket.query_params.get("token")
    try:
        principal = verify_token(token)
    except AuthError as error:
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED, reason=error.message)
        return

    await websocket.accept()
    subscriber = registry.connect()
    inbox: asyncio.Queue = asyncio.Queue()
    sender = asyncio.create_task(pump_events(websocket, subscriber, registry))
    worker = asyncio.create_task(
        process_messages(inbox, principal, subscriber, registry, orchestrator)
    )
    logger.info("Connection %s authenticated as user %s", subscriber.connection_id, principal.id)

    # The receive loop never waits on a query, so a disconnect is seen at once
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                message = None
            inbox.put_nowait(message)
    except WebSocketDisconnect:
        pass
    except Exception as error:
        logger.warning("Realtime connection %s error: %s", subscriber.connection_id, error)
    finally:
        # Memberships go first, before any in-flight work is torn down
        registry.leave_all(subscriber.connection_id)
        worker.cancel()
        sender.cancel()
        await asyncio.gather(worker, sender, return_exceptions=True)
