# sistemas/agendamentos/exceptions.py
"""
Exceções específicas do módulo de Agendamentos
"""


class AgendamentoError(Exception):
    """Erro base do módulo"""
    pass


class AgendamentoNaoEncontradoError(AgendamentoError):
    pass


class AcessoNegadoError(AgendamentoError):
    pass


class ReferenciaInvalidaError(AgendamentoError):
    """Usuário ou processo informado não existe"""
    pass


class ConflitoHorarioError(AgendamentoError):
    """Já existe agendamento do usuário no intervalo"""

    def __init__(self, conflitos):
        self.conflitos = conflitos
        super().__init__(f"{len(conflitos)} conflito(s) de horário")
