# sistemas/tabelas_auxiliares/exceptions.py
"""
Exceções do módulo de tabelas auxiliares
"""


class TabelaAuxiliarError(Exception):
    """Erro base do módulo"""
    pass


class TabelaNaoEncontradaError(TabelaAuxiliarError):
    pass


class ItemNaoEncontradoError(TabelaAuxiliarError):
    pass


class NomeDuplicadoError(TabelaAuxiliarError):
    pass


class ItemEmUsoError(TabelaAuxiliarError):
    """Item referenciado por algum processo"""
    pass
