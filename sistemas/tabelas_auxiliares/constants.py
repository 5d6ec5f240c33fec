# sistemas/tabelas_auxiliares/constants.py
"""
Registro das tabelas auxiliares e valores iniciais
"""

from sistemas.tabelas_auxiliares.models import MateriaAssunto, Fase, Diligencia, LocalTramitacao

# nome da tabela na URL -> (modelo, coluna de Processo que referencia a tabela)
TABELAS = {
    "materia_assunto": (MateriaAssunto, "materia_assunto_id"),
    "fase": (Fase, "fase_id"),
    "diligencia": (Diligencia, "diligencia_id"),
    "local_tramitacao": (LocalTramitacao, "local_tramitacao_id"),
}

VALORES_INICIAIS = {
    "fase": ["Inicial", "Instrução", "Sentença"],
    "diligencia": ["Citação", "Intimação", "Perícia"],
    "materia_assunto": ["Direito Civil", "Direito Trabalhista", "Direito Penal"],
    "local_tramitacao": ["TJ-MT", "Vara Cível Cuiabá", "Vara Trabalhista Várzea Grande"],
}
