# dictation_room/api/websockets.py
import asyncio
import logging
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from starlette.websockets import WebSocketState

from dictation_room.api import deps
from dictation_room.core import security
from dictation_room.core.exceptions import RoomError
from dictation_room.models.room import Room
from dictation_room.services import room_stats
from dictation_room.services.room_service import RoomService
from dictation_room.stores.base import Unsubscribe

logger = logging.getLogger("dictation_room.api.websockets")  # Logger for this module
router = APIRouter()


class RoomEvent:
    def __init__(self, event_type: str, payload: Dict[str, Any]):
        self.type = event_type
        self.payload = payload

    def to_dict(self): # For sending over WebSocket
        return {"type": self.type, "payload": self.payload}


def room_state_event(room: Room) -> RoomEvent:
    return RoomEvent(
        "room_state",
        {
            "room": room.model_dump(mode="json"),
            "stats": room_stats.round_stats(room).model_dump(mode="json"),
        },
    )


def error_event(message: str, code: str) -> RoomEvent:
    return RoomEvent("error", {"message": message, "code": code})


class RoomConnectionManager:
    def __init__(self):
        # room_id -> participant_id -> WebSocket
        self.active_connections: Dict[str, Dict[str, WebSocket]] = {}
        # One store subscription per room with at least one connection
        self.room_subscriptions: Dict[str, Unsubscribe] = {}

    async def connect(self, websocket: WebSocket, room_id: str, participant_id: str, service: RoomService):
        await websocket.accept()
        connections = self.active_connections.setdefault(room_id, {})
        if participant_id in connections:
            logger.info(f"Participant {participant_id} reconnected to room {room_id}, closing old connection.")
            try:
                await connections[participant_id].close(code=status.WS_1001_GOING_AWAY, reason="New connection established")
            except Exception as e:
                logger.exception(f"Error closing old websocket for {participant_id}: {e}")
        connections[participant_id] = websocket

        if room_id not in self.room_subscriptions:
            async def on_room_change(room: Optional[Room]):
                if room is None:
                    await self.broadcast_to_room(room_id, RoomEvent("room_closed", {"room_id": room_id}).to_dict())
                    await self.close_room(room_id, reason="Room closed")
                else:
                    await self.close_departed(room_id, room)
                    await self.broadcast_to_room(room_id, room_state_event(room).to_dict())

            self.room_subscriptions[room_id] = service.subscribe(room_id, on_room_change)
        logger.info(f"Participant {participant_id} connected to room {room_id}. Connections: {list(connections.keys())}")

    def disconnect(self, room_id: str, participant_id: str, websocket: Optional[WebSocket] = None):
        connections = self.active_connections.get(room_id)
        if not connections or participant_id not in connections:
            return
        if websocket is not None and connections[participant_id] is not websocket:
            return # Already replaced by a newer connection
        del connections[participant_id]
        logger.info(f"Participant {participant_id} removed from active connections for room {room_id}")
        if not connections:
            del self.active_connections[room_id]
            unsubscribe = self.room_subscriptions.pop(room_id, None)
            if unsubscribe:
                unsubscribe()
            logger.info(f"Room {room_id} has no connections left; subscription released.")

    async def broadcast_to_room(self, room_id: str, message: dict):
        connections = self.active_connections.get(room_id, {})
        tasks = [
            self._send_json_safe(connection, message, participant_id, room_id)
            for participant_id, connection in list(connections.items())
        ]
        if tasks:
            logger.debug(f"Broadcasting {message.get('type')} to room {room_id} ({len(tasks)} connections)")
            await asyncio.gather(*tasks)

    async def send_to_participant(self, room_id: str, participant_id: str, message: dict):
        connection = self.active_connections.get(room_id, {}).get(participant_id)
        if connection is not None:
            await self._send_json_safe(connection, message, participant_id, room_id)

    async def _send_json_safe(self, connection: WebSocket, message: dict, participant_id: str, room_id: str):
        try:
            if connection.client_state == WebSocketState.CONNECTED:
                await connection.send_json(message)
            else:
                logger.warning(f"WS for P:{participant_id} R:{room_id} was already closed before sending {message.get('type')}.")
                self.disconnect(room_id, participant_id, connection)
        except Exception as e:
            logger.exception(f"Error sending message to {participant_id} in room {room_id}: {e}. Disconnecting.")
            self.disconnect(room_id, participant_id, connection)

    async def _close_safe(self, connection: WebSocket, participant_id: str, room_id: str, reason: str):
        try:
            if connection.application_state == WebSocketState.CONNECTED:
                await connection.close(code=status.WS_1000_NORMAL_CLOSURE, reason=reason)
        except Exception as e:
            logger.exception(f"Error closing websocket for {participant_id} in room {room_id}: {e}")
        finally:
            self.disconnect(room_id, participant_id, connection)

    async def close_departed(self, room_id: str, room: Room):
        """Closes sockets of participants no longer in the room (left or removed by the host)."""
        for participant_id, connection in list(self.active_connections.get(room_id, {}).items()):
            if participant_id in room.participants:
                continue
            logger.info(f"P:{participant_id} is no longer in R:{room_id}; closing WS.")
            await self._send_json_safe(
                connection,
                RoomEvent("participant_removed", {"room_id": room_id, "participant_id": participant_id}).to_dict(),
                participant_id,
                room_id,
            )
            await self._close_safe(connection, participant_id, room_id, reason="No longer in room")

    async def close_room(self, room_id: str, reason: str):
        for participant_id, connection in list(self.active_connections.get(room_id, {}).items()):
            await self._close_safe(connection, participant_id, room_id, reason=reason)

    def clear(self):
        for unsubscribe in self.room_subscriptions.values():
            unsubscribe()
        self.room_subscriptions.clear()
        self.active_connections.clear()


room_manager = RoomConnectionManager()


async def _handle_action(service: RoomService, room_id: str, participant_id: str, data: Any) -> Optional[RoomEvent]:
    """Applies one client action. Returns an event for the acting participant, if any."""
    if not isinstance(data, dict):
        return error_event("Messages must be JSON objects.", "bad_request")
    action_type = data.get("action_type")
    payload = data.get("payload") or {}
    if not isinstance(payload, dict):
        return error_event("'payload' must be an object.", "bad_request")

    if action_type == "typing":
        await service.update_typing_status(room_id, participant_id, bool(payload.get("is_typing")))
        return None
    if action_type == "submit":
        answer = payload.get("answer")
        if not isinstance(answer, str):
            return error_event("Submit needs a string 'answer'.", "bad_request")
        result = await service.submit(room_id, participant_id, answer)
        return RoomEvent("submission_result", result.model_dump(mode="json"))
    return error_event(f"Unknown action '{action_type}'.", "unknown_action")


@router.websocket("/ws/rooms/{room_id}")
async def room_websocket_endpoint(
    websocket: WebSocket,
    room_id: str,
    token: str = Query(..., description="Participant JWT for authentication"),
    service: RoomService = Depends(deps.get_room_service),
):
    room_id = deps.normalize_room_id(room_id)
    try:
        participant_id = security.verify_backend_token(token)["sub"]
    except HTTPException as auth_exc:
        logger.warning(f"WS Auth failed for R:{room_id}: {auth_exc.detail}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Authentication failed")
        return

    try:
        room = await service.get_room(room_id)
    except RoomError as e:
        logger.info(f"WS connection to R:{room_id} refused: {e.message}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
        return

    if participant_id not in room.participants:
        logger.warning(f"P:{participant_id} is not a member of R:{room_id}. Closing WS.")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Join the room before connecting")
        return

    await room_manager.connect(websocket, room_id, participant_id, service)
    try:
        await room_manager.send_to_participant(room_id, participant_id, room_state_event(room).to_dict())

        while websocket.application_state == WebSocketState.CONNECTED: # Closed by the manager when the room goes away
            try:
                data = await websocket.receive_json()
            except ValueError: # Not JSON
                await room_manager.send_to_participant(
                    room_id, participant_id, error_event("Messages must be JSON.", "bad_request").to_dict()
                )
                continue
            try:
                reply = await _handle_action(service, room_id, participant_id, data)
            except RoomError as e:
                reply = error_event(e.message, e.code)
            if reply is not None:
                await room_manager.send_to_participant(room_id, participant_id, reply.to_dict())
    except WebSocketDisconnect:
        logger.info(f"WS Disconnected: P:{participant_id} R:{room_id}.")
    finally:
        room_manager.disconnect(room_id, participant_id, websocket)
