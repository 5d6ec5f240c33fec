# sistemas/notificacoes/router.py
"""
Router de notificações do usuário
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException

from auth.dependencies import get_current_active_user
from auth.models import User
from sistemas.notificacoes.schemas import (
    EnviarNotificacaoRequest, NotificacaoTesteRequest, NotificationSettings
)
from sistemas.notificacoes.services import (
    get_all_notifications, get_unread_notifications, mark_notification_as_read,
    mark_all_notifications_as_read, create_notification_from_template,
    get_notification_templates, get_user_notification_settings,
    save_user_notification_settings, send_realtime_notification, generate_id
)
from sistemas.permissoes.dependencies import authorize

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["Notificações"])


@router.get("")
async def listar_notificacoes(current_user: User = Depends(get_current_active_user)):
    notifications = await get_all_notifications(current_user.id)
    return {
        "notifications": notifications,
        "count": len(notifications),
        "unread": sum(1 for n in notifications if not n.get("read")),
    }


@router.get("/unread")
async def listar_nao_lidas(current_user: User = Depends(get_current_active_user)):
    notifications = await get_unread_notifications(current_user.id)
    return {"notifications": notifications, "count": len(notifications)}


@router.patch("/read-all")
async def marcar_todas_lidas(current_user: User = Depends(get_current_active_user)):
    if not await mark_all_notifications_as_read(current_user.id):
        raise HTTPException(status_code=500, detail="Erro ao marcar notificações como lidas")
    return {"message": "Todas as notificações marcadas como lidas"}


@router.patch("/{notification_id}/read")
async def marcar_lida(
    notification_id: str,
    current_user: User = Depends(get_current_active_user)
):
    if not await mark_notification_as_read(current_user.id, notification_id):
        raise HTTPException(status_code=404, detail="Notificação não encontrada")
    return {"message": "Notificação marcada como lida"}


@router.post("/send")
async def enviar_notificacao(
    dados: EnviarNotificacaoRequest,
    current_user: User = Depends(authorize("system", "configure"))
):
    """Envia uma notificação a partir de um template (Admin)"""
    if not dados.userId or not dados.templateKey:
        raise HTTPException(status_code=400, detail="userId e templateKey são obrigatórios")

    enviado = await create_notification_from_template(
        dados.templateKey, dados.userId, dados.variables, dados.email
    )
    if not enviado:
        raise HTTPException(status_code=400, detail="Template de notificação não encontrado")
    return {"message": "Notificação enviada com sucesso"}


@router.get("/templates")
async def listar_templates(current_user: User = Depends(authorize("system", "configure"))):
    return {"templates": get_notification_templates()}


@router.get("/settings", response_model=NotificationSettings)
async def obter_configuracoes(current_user: User = Depends(get_current_active_user)):
    return await get_user_notification_settings(current_user.id)


@router.put("/settings")
async def atualizar_configuracoes(
    settings: Dict[str, Any] = Body(...),
    current_user: User = Depends(get_current_active_user)
):
    if not isinstance(settings.get("emailEnabled"), bool) or not isinstance(settings.get("realTimeEnabled"), bool):
        raise HTTPException(status_code=400, detail="emailEnabled e realTimeEnabled devem ser booleanos")
    for campo in ("emailTypes", "realTimeTypes"):
        valor = settings.get(campo)
        if valor is not None and not (isinstance(valor, list) and all(isinstance(t, str) for t in valor)):
            raise HTTPException(status_code=400, detail=f"{campo} deve ser uma lista de tipos")

    permitidos = {k: v for k, v in settings.items() if k in ("emailEnabled", "realTimeEnabled", "emailTypes", "realTimeTypes")}
    await save_user_notification_settings(current_user.id, permitidos)
    return {"message": "Configurações atualizadas com sucesso"}


@router.post("/test")
async def notificacao_teste(
    dados: NotificacaoTesteRequest,
    current_user: User = Depends(authorize("system", "configure"))
):
    if not dados.userId or not dados.message:
        raise HTTPException(status_code=400, detail="userId e message são obrigatórios")

    await send_realtime_notification(dados.userId, {
        "id": generate_id("test"),
        "title": "Notificação de Teste",
        "message": dados.message,
        "icon": "test",
        "priority": "medium",
        "type": "TEST",
    })
    return {"message": "Notificação de teste enviada com sucesso"}
