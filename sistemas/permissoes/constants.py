# sistemas/permissoes/constants.py
"""
Tabela estática de permissões por módulo e papel
"""

from auth.models import Role


# módulo -> papel -> ações
PERMISSIONS = {
    "processes": {
        Role.ADMIN: ["create", "read", "update", "delete", "assign", "archive", "export"],
        Role.PROFESSOR: ["create", "read", "update", "assign", "export"],
        Role.ALUNO: ["read"],
    },
    "users": {
        Role.ADMIN: ["create", "read", "update", "delete", "activate", "deactivate"],
        Role.PROFESSOR: ["read"],
        Role.ALUNO: ["read_own"],
    },
    "appointments": {
        Role.ADMIN: ["create", "read", "update", "delete", "reschedule"],
        Role.PROFESSOR: ["create", "read", "update", "delete", "reschedule"],
        Role.ALUNO: ["create", "read_own", "update_own", "delete_own"],
    },
    "files": {
        Role.ADMIN: ["upload", "download", "delete", "version"],
        Role.PROFESSOR: ["upload", "download", "delete", "version"],
        Role.ALUNO: ["upload", "download"],
    },
    "analytics": {
        Role.ADMIN: ["view_all", "export", "configure"],
        Role.PROFESSOR: ["view_own", "export_own"],
        Role.ALUNO: ["view_basic"],
    },
    "system": {
        Role.ADMIN: ["configure", "backup", "logs", "maintenance"],
        Role.PROFESSOR: [],
        Role.ALUNO: [],
    },
}

# Papel -> papéis subordinados (herda as ações deles)
ROLE_HIERARCHY = {
    Role.ADMIN: [Role.PROFESSOR, Role.ALUNO],
    Role.PROFESSOR: [Role.ALUNO],
    Role.ALUNO: [],
}

OWN_SUFFIX = "_own"

# Campos redigidos no log de ações autorizadas
SENSITIVE_FIELDS = ("password", "senha", "token", "authorization", "auth")
