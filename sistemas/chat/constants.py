# sistemas/chat/constants.py
"""
Constantes do módulo de Chat
"""

SALA_GERAL = "general"
PREFIXO_PROCESSO = "process_"
PREFIXO_PRIVADA = "user_"
PREFIXO_PERSONALIZADA = "room"

# Salas de chat no gerenciador de conexões ficam sob este prefixo,
# separadas das salas de notificação (user_{id}, processo_{id})
PREFIXO_CONEXAO = "chat:"

MAX_MENSAGENS_SALA = 1000
LIMITE_MENSAGENS_PADRAO = 50
LIMITE_BUSCA_PADRAO = 20
TAMANHO_MINIMO_BUSCA = 2
TAMANHO_PREVIA = 50
MAX_MEMBROS_PADRAO = 100

CHAVE_INDICE_SALAS = "chat_rooms_index"


class TipoSala:
    CUSTOM = "custom"
    PROCESS = "process"
    PRIVATE = "private"
    GENERAL = "general"

    TODOS = (CUSTOM, PROCESS, PRIVATE, GENERAL)


class TipoMensagem:
    TEXT = "text"
    FILE = "file"
    SYSTEM = "system"

    TODOS = (TEXT, FILE, SYSTEM)


def chave_sala(room_id: str) -> str:
    return f"chat_room:{room_id}"


def chave_mensagem(message_id: str) -> str:
    return f"chat_message:{message_id}"


def chave_mensagens_sala(room_id: str) -> str:
    return f"chat_room_messages:{room_id}"


def sala_conexao(room_id: str) -> str:
    return f"{PREFIXO_CONEXAO}{room_id}"
