# sistemas/permissoes/exceptions.py
"""
Exceções específicas do módulo de permissões
"""


class PermissoesError(Exception):
    """Erro base do módulo"""
    pass


class GrupoNaoEncontradoError(PermissoesError):
    """Grupo não existe"""
    pass


class UsuarioNaoEncontradoError(PermissoesError):
    """Usuário não existe"""
    pass


class PermissoesInvalidasError(PermissoesError):
    """Estrutura de permissões com módulos ou ações desconhecidos"""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))
