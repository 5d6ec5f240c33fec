# sistemas/notificacoes/constants.py
"""
Templates e preferências padrão de notificação
"""


class Prioridade:
    BAIXA = "low"
    MEDIA = "medium"
    ALTA = "high"


NOTIFICATION_TEMPLATES = {
    "NEW_PROCESS": {
        "title": "Novo Processo Criado",
        "message": "Um novo processo foi criado: {processNumber}",
        "icon": "process",
        "priority": Prioridade.MEDIA,
    },
    "PROCESS_UPDATE": {
        "title": "Processo Atualizado",
        "message": "O processo {processNumber} foi atualizado",
        "icon": "update",
        "priority": Prioridade.MEDIA,
    },
    "APPOINTMENT_REMINDER": {
        "title": "Lembrete de Agendamento",
        "message": "Você tem um agendamento em {time}",
        "icon": "calendar",
        "priority": Prioridade.ALTA,
    },
    "APPOINTMENT_CREATED": {
        "title": "Agendamento Criado",
        "message": "Novo agendamento criado para {date}",
        "icon": "calendar",
        "priority": Prioridade.MEDIA,
    },
    "DOCUMENT_UPLOADED": {
        "title": "Documento Enviado",
        "message": "Novo documento adicionado ao processo {processNumber}",
        "icon": "document",
        "priority": Prioridade.BAIXA,
    },
    "SYSTEM_MAINTENANCE": {
        "title": "Manutenção do Sistema",
        "message": "O sistema entrará em manutenção em {time}",
        "icon": "maintenance",
        "priority": Prioridade.ALTA,
    },
    "USER_CREATED": {
        "title": "Novo Usuário",
        "message": "Um novo usuário foi criado: {userName}",
        "icon": "user",
        "priority": Prioridade.BAIXA,
    },
    "CHAT_MESSAGE": {
        "title": "Nova Mensagem",
        "message": "{senderName} enviou uma mensagem em {roomName}",
        "icon": "chat",
        "priority": Prioridade.BAIXA,
    },
}

DEFAULT_NOTIFICATION_SETTINGS = {
    "emailEnabled": True,
    "realTimeEnabled": True,
    "emailTypes": ["APPOINTMENT_REMINDER", "PROCESS_UPDATE", "SYSTEM_MAINTENANCE"],
    "realTimeTypes": ["NEW_PROCESS", "PROCESS_UPDATE", "APPOINTMENT_REMINDER", "DOCUMENT_UPLOADED"],
}
