# services/realtime.py
"""
Gerenciador de conexões WebSocket com salas.

Cada conexão recebe um id próprio e pode entrar em salas
(ex.: "user_7", "processo_12", "process_12", "general").
Mensagens trafegam como JSON no formato {"event": ..., "data": ...}.
"""

import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional, Set

from fastapi import WebSocket

from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Mantém as conexões ativas deste processo e a associação conexão <-> salas.

    Uso:
        connection_id = await manager.connect(websocket, user)
        manager.join(connection_id, "general")
        await manager.emit_to_room("general", "new_message", {...})
        manager.disconnect(connection_id)
    """

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}
        self.connection_users: Dict[str, Dict[str, Any]] = {}
        self.rooms: Dict[str, Set[str]] = {}

    async def connect(self, websocket: WebSocket, user: Dict[str, Any]) -> str:
        """Aceita a conexão e registra o usuário. Retorna o id da conexão."""
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self.active_connections[connection_id] = websocket
        self.connection_users[connection_id] = {
            **user,
            "connected_at": now_utc().isoformat(),
        }
        self.join(connection_id, f"user_{user['id']}")
        logger.info(f"Usuário {user['id']} conectado via WebSocket ({connection_id[:8]})")
        return connection_id

    def disconnect(self, connection_id: str) -> List[str]:
        """Remove a conexão de todas as salas. Retorna as salas que ela ocupava."""
        salas = self.leave_all(connection_id)
        self.active_connections.pop(connection_id, None)
        user = self.connection_users.pop(connection_id, None)
        if user:
            logger.info(f"Usuário {user['id']} desconectado do WebSocket ({connection_id[:8]})")
        return salas

    # ==========================================
    # Salas
    # ==========================================

    def join(self, connection_id: str, room: str):
        self.rooms.setdefault(room, set()).add(connection_id)

    def leave(self, connection_id: str, room: str):
        membros = self.rooms.get(room)
        if not membros:
            return
        membros.discard(connection_id)
        if not membros:
            del self.rooms[room]

    def leave_all(self, connection_id: str) -> List[str]:
        salas = [room for room, membros in self.rooms.items() if connection_id in membros]
        for room in salas:
            self.leave(connection_id, room)
        return salas

    def rooms_of(self, connection_id: str) -> List[str]:
        return [room for room, membros in self.rooms.items() if connection_id in membros]

    def room_user_ids(self, room: str) -> Set[int]:
        """Usuários com ao menos uma conexão na sala."""
        return {
            self.connection_users[cid]["id"]
            for cid in self.rooms.get(room, set())
            if cid in self.connection_users
        }

    def user_for(self, connection_id: str) -> Optional[Dict[str, Any]]:
        return self.connection_users.get(connection_id)

    # ==========================================
    # Presença
    # ==========================================

    def online_user_ids(self) -> Set[int]:
        return {user["id"] for user in self.connection_users.values()}

    def is_online(self, user_id: int) -> bool:
        return user_id in self.online_user_ids()

    def online_users(self) -> List[Dict[str, Any]]:
        """Usuários conectados, um registro por usuário (primeira conexão)."""
        vistos: Dict[int, Dict[str, Any]] = {}
        for user in self.connection_users.values():
            vistos.setdefault(user["id"], {
                "userId": user["id"],
                "nome": user.get("nome"),
                "role": user.get("role"),
                "connectedAt": user.get("connected_at"),
            })
        return list(vistos.values())

    # ==========================================
    # Envio
    # ==========================================

    async def send(self, connection_id: str, event: str, data: Any) -> bool:
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            return False
        try:
            await websocket.send_json({"event": event, "data": data})
            return True
        except Exception as e:
            logger.error(f"Erro ao enviar '{event}' para conexão {connection_id[:8]}: {e}")
            self.disconnect(connection_id)
            return False

    async def emit_to_room(self, room: str, event: str, data: Any, exclude: Optional[str] = None) -> int:
        """Envia o evento a todas as conexões da sala (exceto `exclude`). Retorna quantas receberam."""
        enviados = 0
        for connection_id in list(self.rooms.get(room, set())):
            if connection_id == exclude:
                continue
            if await self.send(connection_id, event, data):
                enviados += 1
        return enviados

    async def emit_to_user(self, user_id: int, event: str, data: Any) -> int:
        return await self.emit_to_room(f"user_{user_id}", event, data)

    async def emit_to_users(self, user_ids: Iterable[int], event: str, data: Any) -> int:
        total = 0
        for user_id in set(user_ids):
            total += await self.emit_to_user(user_id, event, data)
        return total


manager = ConnectionManager()
