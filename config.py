# config.py
# -*- coding: utf-8 -*-
"""
Configurações centralizadas do Portal NPJ
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Carrega variáveis de ambiente (apenas se existir .env)
load_dotenv()

# ==================================================
# AMBIENTE
# ==================================================
ENV = os.getenv("ENV", "development")
IS_PRODUCTION = ENV == "production"
IS_TEST = ENV == "test"

# ==================================================
# CONFIGURAÇÕES DO BANCO DE DADOS
# ==================================================
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./npj.db")

# Alguns provedores usam postgres:// mas SQLAlchemy precisa de postgresql://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# ==================================================
# CONFIGURAÇÕES DE AUTENTICAÇÃO JWT
# ==================================================
# ATENÇÃO: Em produção, SEMPRE defina SECRET_KEY via variável de ambiente
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings
    warnings.warn("SECRET_KEY não definida! Usando chave temporária. DEFINA EM PRODUÇÃO!", RuntimeWarning)
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"

ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "480"))  # 8 horas

# Credenciais do admin inicial (DEVEM ser definidas via variáveis de ambiente em produção)
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@npj.ufmt.br")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")
if not ADMIN_PASSWORD:
    import warnings
    warnings.warn("ADMIN_PASSWORD não definida! Usando senha padrão insegura.", RuntimeWarning)
    ADMIN_PASSWORD = "admin"

DEFAULT_USER_PASSWORD = os.getenv("DEFAULT_USER_PASSWORD", "mudar123")  # Senha padrão para novos usuários

# ==================================================
# CONFIGURAÇÕES DO REDIS
# ==================================================
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
REDIS_MAX_CONNECTIONS = int(os.getenv("REDIS_MAX_CONNECTIONS", "20"))

# TTLs (segundos)
CACHE_DEFAULT_TTL = 3600
CACHE_PROCESSES_TTL = 300       # 5 min
CACHE_USER_TTL = 1800           # 30 min
CACHE_DASHBOARD_TTL = 600       # 10 min
CACHE_PERMISSIONS_TTL = 3600    # 1 h
NOTIFICATIONS_TTL = 86400       # 24 h
NOTIFICATION_SETTINGS_TTL = 86400
CHAT_TTL = 30 * 24 * 3600       # 30 dias

# Limites
MAX_NOTIFICATIONS_PER_USER = 50
MAX_MESSAGES_PER_ROOM = 1000
NOTIFICATIONS_RETENTION_DAYS = 30

# ==================================================
# CONFIGURAÇÕES DE E-MAIL (SMTP)
# ==================================================
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASS = os.getenv("SMTP_PASS", "")
SMTP_FROM_NAME = os.getenv("SMTP_FROM_NAME", "NPJ UFMT")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# ==================================================
# CORS
# ==================================================
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

# ==================================================
# TAREFAS PERIÓDICAS
# ==================================================
SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "false" if IS_TEST else "true").lower() == "true"

# ==================================================
# ARQUIVOS
# ==================================================
BASE_DIR = Path(__file__).resolve().parent
LOG_DIR = BASE_DIR / "logs"
