# sistemas/chat/exceptions.py
"""
Exceções específicas do módulo de Chat
"""


class ChatError(Exception):
    """Erro base do módulo"""
    pass


class SalaNaoEncontradaError(ChatError):
    pass


class AcessoSalaNegadoError(ChatError):
    pass


class MensagemNaoEncontradaError(ChatError):
    pass


class MensagemInvalidaError(ChatError):
    """Sala ou texto ausente, ou texto vazio depois de sanitizado"""
    pass


class NaoMembroError(ChatError):
    """Remetente não entrou na sala"""
    pass


class MembroJaExisteError(ChatError):
    pass


class MembroNaoEncontradoError(ChatError):
    pass


class SalaCheiaError(ChatError):
    pass
