# sistemas/processos/constants.py
"""
Constantes do módulo de Processos
"""


class StatusProcesso:
    ABERTO = "Aberto"
    EM_ANDAMENTO = "Em andamento"
    AGUARDANDO_AUDIENCIA = "Aguardando audiência"
    AGUARDANDO_SENTENCA = "Aguardando sentença"
    SUSPENSO = "Suspenso"
    ARQUIVADO = "Arquivado"
    FINALIZADO = "Finalizado"

    TODOS = (
        ABERTO, EM_ANDAMENTO, AGUARDANDO_AUDIENCIA, AGUARDANDO_SENTENCA,
        SUSPENSO, ARQUIVADO, FINALIZADO,
    )

    # Processos fora destes status contam como ativos
    INATIVOS = (ARQUIVADO, FINALIZADO, SUSPENSO)

    # Preenchem data_encerramento
    ENCERRAMENTO = (FINALIZADO, ARQUIVADO)


class SistemaProcesso:
    FISICO = "Físico"
    PEA = "PEA"
    PJE = "PJE"

    TODOS = (FISICO, PEA, PJE)


class TipoAtualizacao:
    CRIACAO = "criacao"
    ALTERACAO = "alteracao"
    STATUS = "status"
    ANOTACAO = "anotacao"
    USUARIO = "usuario"


PAGE_SIZE_PADRAO = 20
PAGE_SIZE_MAXIMO = 100

# Campos comparados para registrar o histórico de alterações
CAMPOS_RASTREADOS = (
    "numero_processo", "descricao", "status", "tipo_processo", "sistema",
    "num_processo_sei", "assistido", "contato_assistido", "observacoes",
    "idusuario_responsavel", "materia_assunto_id", "fase_id", "diligencia_id",
    "local_tramitacao_id", "data_encerramento",
)
