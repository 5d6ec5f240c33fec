# sistemas/processos/exceptions.py
"""
Exceções específicas do módulo de Processos
"""


class ProcessoError(Exception):
    """Erro base do módulo"""
    pass


class ProcessoNaoEncontradoError(ProcessoError):
    pass


class AcessoNegadoError(ProcessoError):
    """Usuário não criou, não é responsável nem está associado ao processo"""
    pass


class NumeroDuplicadoError(ProcessoError):
    pass


class ReferenciaInvalidaError(ProcessoError):
    """Usuário ou item de tabela auxiliar informado não existe"""
    pass


class UsuarioJaAssociadoError(ProcessoError):
    pass


class AssociacaoNaoEncontradaError(ProcessoError):
    pass
