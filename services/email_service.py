# services/email_service.py
"""
Envio de e-mails via SMTP (aiosmtplib).

Sem SMTP_USER configurado o envio é ignorado com warning e retorna False.
"""

import logging
import re
from email.message import EmailMessage

import aiosmtplib

from config import SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS, SMTP_FROM_NAME

logger = logging.getLogger(__name__)


def html_to_text(html: str) -> str:
    """Versão texto do corpo HTML (tags removidas)."""
    return re.sub(r"<[^>]*>", "", html).strip()


async def send_email(to: str, subject: str, html: str) -> bool:
    """
    Envia um e-mail HTML com alternativa em texto.

    Returns:
        True se enviado; False se SMTP não configurado ou em caso de erro
    """
    if not SMTP_USER:
        logger.warning("SMTP não configurado (SMTP_USER vazio); e-mail não enviado")
        return False

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = f'"{SMTP_FROM_NAME}" <{SMTP_USER}>'
    msg["To"] = to
    msg.set_content(html_to_text(html))
    msg.add_alternative(html, subtype="html")

    try:
        await aiosmtplib.send(
            msg,
            hostname=SMTP_HOST,
            port=SMTP_PORT,
            username=SMTP_USER,
            password=SMTP_PASS,
            start_tls=SMTP_PORT == 587,
            use_tls=SMTP_PORT == 465,
        )
    except (aiosmtplib.SMTPException, OSError) as e:
        logger.error(f"Erro ao enviar e-mail para {to}: {e}")
        return False

    logger.info(f"E-mail enviado para {to}: {subject}")
    return True
