# tests/test_agendamentos.py
"""
Testes do módulo de Agendamentos: conflitos, recorrência, sugestão de
horários, exportação .ics e regras de acesso.

Datas sem fuso nos payloads são horário de Cuiabá (UTC-4).
4 de março de 2030 é uma segunda-feira.
"""

from datetime import datetime, timedelta

import pytest

from sistemas.agendamentos.constants import StatusAgendamento, Frequencia
from sistemas.agendamentos.models import Agendamento
from sistemas.agendamentos.services_calendario import (
    intervalos_sobrepoem, calcular_score, sugerir_horarios, calcular_ocorrencias,
    gerar_regra_recorrencia, verificar_conflitos,
)
from utils.timezone import UTC


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=UTC)


async def _agendar(client, headers, **dados):
    payload = {"titulo": "Atendimento", "data_evento": "2030-03-04T10:00:00", **dados}
    return await client.post("/api/agendamentos", json=payload, headers=headers)


# ==================================================
# TESTES: regras de calendário (puras)
# ==================================================


class TestIntervalos:

    def test_sobreposicao(self):
        assert intervalos_sobrepoem(utc(2030, 3, 4, 14), utc(2030, 3, 4, 15), utc(2030, 3, 4, 14, 30), utc(2030, 3, 4, 15, 30))

    def test_encostar_nao_e_conflito(self):
        assert not intervalos_sobrepoem(utc(2030, 3, 4, 14), utc(2030, 3, 4, 15), utc(2030, 3, 4, 15), utc(2030, 3, 4, 16))


class TestScore:

    def test_mesmo_horario(self):
        assert calcular_score(utc(2030, 3, 4, 14), utc(2030, 3, 4, 14)) == 100

    def test_distancia_em_horas_inteiras(self):
        assert calcular_score(utc(2030, 3, 4, 17, 59), utc(2030, 3, 4, 14)) == 94

    def test_tarde_com_preferencia_pela_manha(self):
        # 18h UTC = 14h em Cuiabá
        assert calcular_score(utc(2030, 3, 4, 18), utc(2030, 3, 4, 18), preferir_manha=True) == 80

    def test_fim_de_semana(self):
        assert calcular_score(utc(2030, 3, 2, 14), utc(2030, 3, 2, 14)) == 70

    def test_minimo_zero(self):
        assert calcular_score(utc(2030, 3, 9, 14), utc(2030, 3, 4, 14)) == 0


class TestRecorrencia:

    def test_regra_semanal_com_fim(self):
        assert gerar_regra_recorrencia(Frequencia.SEMANAL, utc(2030, 4, 1, 3, 59)) == "RRULE:FREQ=WEEKLY;UNTIL=20300401T035900Z"

    def test_regra_sem_fim(self):
        assert gerar_regra_recorrencia(Frequencia.DIARIA) == "RRULE:FREQ=DAILY"

    def test_frequencia_desconhecida(self):
        assert gerar_regra_recorrencia("anual") is None
        assert calcular_ocorrencias(utc(2030, 3, 4, 14), "anual") == []

    def test_ocorrencias_nao_incluem_a_primeira(self):
        datas = calcular_ocorrencias(utc(2030, 3, 4, 14), Frequencia.DIARIA, maximo=3)
        assert datas == [utc(2030, 3, 5, 14), utc(2030, 3, 6, 14), utc(2030, 3, 7, 14)]

    def test_fim_inclusivo(self):
        datas = calcular_ocorrencias(utc(2030, 3, 4, 14), Frequencia.SEMANAL, utc(2030, 3, 18, 14))
        assert datas == [utc(2030, 3, 11, 14), utc(2030, 3, 18, 14)]

    def test_mensal_no_fim_do_mes(self):
        datas = calcular_ocorrencias(utc(2030, 1, 31, 14), Frequencia.MENSAL, maximo=2)
        assert datas == [utc(2030, 2, 28, 14), utc(2030, 3, 31, 14)]

    def test_limite_de_ocorrencias(self):
        assert len(calcular_ocorrencias(utc(2030, 3, 4, 14), Frequencia.DIARIA)) == 52


# ==================================================
# TESTES: conflitos e sugestões (banco)
# ==================================================


def _gravar(db, usuario, inicio, duracao=60, status=StatusAgendamento.AGENDADO):
    agendamento = Agendamento(
        criado_por=usuario.id,
        usuario_id=usuario.id,
        titulo="Ocupado",
        data_evento=inicio,
        duracao_minutos=duracao,
        status=status,
    )
    db.add(agendamento)
    db.commit()
    return agendamento


class TestConflitos:

    def test_detecta_sobreposicao(self, db, professor):
        existente = _gravar(db, professor, utc(2030, 3, 4, 14))

        resultado = verificar_conflitos(db, professor.id, utc(2030, 3, 4, 14, 30), 60)

        assert resultado["hasConflicts"] is True
        assert resultado["conflicts"][0]["id"] == existente.id

    def test_cancelado_nao_conflita(self, db, professor):
        _gravar(db, professor, utc(2030, 3, 4, 14), status=StatusAgendamento.CANCELADO)
        assert verificar_conflitos(db, professor.id, utc(2030, 3, 4, 14), 60)["hasConflicts"] is False

    def test_evento_longo_anterior(self, db, professor):
        """Um evento que começou horas antes ainda ocupa o intervalo."""
        _gravar(db, professor, utc(2030, 3, 4, 10), duracao=300)
        assert verificar_conflitos(db, professor.id, utc(2030, 3, 4, 14), 30)["hasConflicts"] is True

    def test_excluir_id(self, db, professor):
        existente = _gravar(db, professor, utc(2030, 3, 4, 14))
        assert verificar_conflitos(db, professor.id, utc(2030, 3, 4, 14), 60, excluir_id=existente.id)["hasConflicts"] is False

    def test_outro_usuario_nao_conflita(self, db, professor, aluno):
        _gravar(db, aluno, utc(2030, 3, 4, 14))
        assert verificar_conflitos(db, professor.id, utc(2030, 3, 4, 14), 60)["hasConflicts"] is False


class TestSugestoes:

    def test_pula_horario_ocupado(self, db, professor):
        # 8h-9h em Cuiabá ocupado
        _gravar(db, professor, utc(2030, 3, 4, 12))

        sugestoes = sugerir_horarios(
            db, professor.id, utc(2030, 3, 4, 12),
            dias_verificacao=1, max_sugestoes=3, agora=utc(2030, 1, 1),
        )

        assert [s["data_evento"] for s in sugestoes] == [utc(2030, 3, 4, 13), utc(2030, 3, 4, 14), utc(2030, 3, 4, 15)]
        assert [s["score"] for s in sugestoes] == [98, 96, 94]

    def test_ignora_horarios_passados(self, db, professor):
        sugestoes = sugerir_horarios(
            db, professor.id, utc(2030, 3, 4, 12),
            dias_verificacao=1, max_sugestoes=1, agora=utc(2030, 3, 4, 14, 30),
        )
        # 11h em Cuiabá
        assert sugestoes[0]["data_evento"] == utc(2030, 3, 4, 15)

    def test_pula_fim_de_semana(self, db, professor):
        sugestoes = sugerir_horarios(
            db, professor.id, utc(2030, 3, 2, 12),
            dias_verificacao=3, pular_fins_de_semana=True, max_sugestoes=1, agora=utc(2030, 1, 1),
        )
        assert sugestoes[0]["data_evento"] == utc(2030, 3, 4, 12)

    def test_ordenadas_por_score(self, db, professor):
        sugestoes = sugerir_horarios(
            db, professor.id, utc(2030, 3, 4, 16),
            dias_verificacao=1, max_sugestoes=4, agora=utc(2030, 1, 1),
        )
        scores = [s["score"] for s in sugestoes]
        assert scores == sorted(scores, reverse=True)


# ==================================================
# TESTES: endpoints
# ==================================================


class TestCriacaoAgendamento:

    @pytest.mark.asyncio
    async def test_cria_em_horario_local(self, client, professor, headers_de):
        response = await _agendar(client, headers_de(professor), tipo_evento="audiencia")

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == StatusAgendamento.AGENDADO
        assert body["usuario_id"] == professor.id
        assert body["ocorrencias_criadas"] == 0
        assert body["data_evento"].startswith("2030-03-04T14:00:00")

    @pytest.mark.asyncio
    async def test_conflito_retorna_409(self, client, professor, headers_de):
        await _agendar(client, headers_de(professor))

        response = await _agendar(client, headers_de(professor), data_evento="2030-03-04T10:30:00")

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["message"] == "Conflito de horário com outro agendamento"
        assert len(detail["conflicts"]) == 1

    @pytest.mark.asyncio
    async def test_horarios_encostados(self, client, professor, headers_de):
        await _agendar(client, headers_de(professor))

        response = await _agendar(client, headers_de(professor), data_evento="2030-03-04T11:00:00")
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_ignorar_conflitos(self, client, professor, headers_de):
        await _agendar(client, headers_de(professor))

        response = await _agendar(client, headers_de(professor), ignorar_conflitos=True)
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_recorrencia_semanal(self, client, professor, headers_de, db):
        response = await _agendar(
            client, headers_de(professor),
            recorrente=True, frequencia="semanal", fim_recorrencia="2030-04-01T23:59:00",
        )

        assert response.status_code == 201
        body = response.json()
        assert body["ocorrencias_criadas"] == 4
        assert db.query(Agendamento).filter(Agendamento.agendamento_pai_id == body["id"]).count() == 4

    @pytest.mark.asyncio
    async def test_recorrente_sem_frequencia(self, client, professor, headers_de):
        response = await _agendar(client, headers_de(professor), recorrente=True)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_processo_inexistente(self, client, professor, headers_de):
        response = await _agendar(client, headers_de(professor), processo_id=999)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_cria_lembretes(self, client, professor, headers_de):
        agendamento = (await _agendar(client, headers_de(professor))).json()

        response = await client.get(f"/api/agendamentos/{agendamento['id']}/lembretes", headers=headers_de(professor))

        assert response.status_code == 200
        assert [l["minutes_before"] for l in response.json()] == [1440, 60, 15]

    @pytest.mark.asyncio
    async def test_notifica_responsavel(self, client, professor, aluno, headers_de):
        await _agendar(client, headers_de(professor), usuario_id=aluno.id)

        response = await client.get("/api/notifications", headers=headers_de(aluno))
        assert response.json()["notifications"][0]["type"] == "APPOINTMENT_CREATED"


class TestAcessoAluno:

    @pytest.mark.asyncio
    async def test_aluno_agenda_para_si(self, client, aluno, headers_de):
        response = await _agendar(client, headers_de(aluno))

        assert response.status_code == 201
        assert response.json()["usuario_id"] == aluno.id

    @pytest.mark.asyncio
    async def test_aluno_nao_agenda_para_outro(self, client, aluno, professor, headers_de):
        response = await _agendar(client, headers_de(aluno), usuario_id=professor.id)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_aluno_lista_apenas_os_seus(self, client, aluno, professor, headers_de):
        await _agendar(client, headers_de(professor))
        meu = (await _agendar(client, headers_de(professor), usuario_id=aluno.id)).json()

        response = await client.get("/api/agendamentos", headers=headers_de(aluno))

        assert [a["id"] for a in response.json()] == [meu["id"]]

    @pytest.mark.asyncio
    async def test_aluno_nao_ve_agendamento_alheio(self, client, aluno, professor, headers_de):
        alheio = (await _agendar(client, headers_de(professor))).json()

        response = await client.get(f"/api/agendamentos/{alheio['id']}", headers=headers_de(aluno))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_professor_lista_todos(self, client, aluno, professor, headers_de):
        await _agendar(client, headers_de(professor))
        await _agendar(client, headers_de(aluno))

        response = await client.get("/api/agendamentos", headers=headers_de(professor))
        assert len(response.json()) == 2


class TestAlteracaoAgendamento:

    @pytest.mark.asyncio
    async def test_mudar_data_remarca(self, client, professor, headers_de):
        agendamento = (await _agendar(client, headers_de(professor))).json()

        response = await client.put(
            f"/api/agendamentos/{agendamento['id']}",
            json={"data_evento": "2030-03-05T15:00:00"},
            headers=headers_de(professor),
        )

        assert response.status_code == 200
        assert response.json()["status"] == StatusAgendamento.REMARCADO
        assert response.json()["data_evento"].startswith("2030-03-05T19:00:00")

        lembretes = (await client.get(
            f"/api/agendamentos/{agendamento['id']}/lembretes", headers=headers_de(professor)
        )).json()
        assert len(lembretes) == 3
        assert lembretes[-1]["scheduled_for"].startswith("2030-03-05T18:45:00")

    @pytest.mark.asyncio
    async def test_remarcar_para_horario_ocupado(self, client, professor, headers_de):
        await _agendar(client, headers_de(professor), data_evento="2030-03-05T15:00:00")
        agendamento = (await _agendar(client, headers_de(professor))).json()

        response = await client.put(
            f"/api/agendamentos/{agendamento['id']}",
            json={"data_evento": "2030-03-05T15:30:00"},
            headers=headers_de(professor),
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_cancelar_remove_lembretes_pendentes(self, client, professor, headers_de):
        agendamento = (await _agendar(client, headers_de(professor))).json()

        response = await client.patch(
            f"/api/agendamentos/{agendamento['id']}/status",
            json={"status": StatusAgendamento.CANCELADO},
            headers=headers_de(professor),
        )

        assert response.json()["status"] == StatusAgendamento.CANCELADO
        lembretes = (await client.get(
            f"/api/agendamentos/{agendamento['id']}/lembretes", headers=headers_de(professor)
        )).json()
        assert lembretes == []

    @pytest.mark.asyncio
    async def test_remover_serie(self, client, professor, headers_de, db):
        agendamento = (await _agendar(
            client, headers_de(professor),
            recorrente=True, frequencia="diaria", fim_recorrencia="2030-03-07T10:00:00",
        )).json()
        assert agendamento["ocorrencias_criadas"] == 3

        response = await client.delete(
            f"/api/agendamentos/{agendamento['id']}", params={"serie": "true"}, headers=headers_de(professor)
        )

        assert response.status_code == 200
        assert response.json()["removidos"] == 4
        assert db.query(Agendamento).count() == 0

    @pytest.mark.asyncio
    async def test_remover_apenas_o_pai(self, client, professor, headers_de, db):
        agendamento = (await _agendar(
            client, headers_de(professor),
            recorrente=True, frequencia="diaria", fim_recorrencia="2030-03-06T10:00:00",
        )).json()

        response = await client.delete(f"/api/agendamentos/{agendamento['id']}", headers=headers_de(professor))

        assert response.json()["removidos"] == 1
        restantes = db.query(Agendamento).all()
        assert len(restantes) == 2
        assert all(a.agendamento_pai_id is None for a in restantes)


class TestConflitosESugestoesRouter:

    @pytest.mark.asyncio
    async def test_checar_conflitos(self, client, professor, headers_de):
        await _agendar(client, headers_de(professor))

        response = await client.post(
            "/api/agendamentos/conflitos",
            json={"data_evento": "2030-03-04T10:15:00", "duracao_minutos": 30},
            headers=headers_de(professor),
        )

        assert response.status_code == 200
        assert response.json()["hasConflicts"] is True

    @pytest.mark.asyncio
    async def test_sugestoes_horario_invalido(self, client, professor, headers_de):
        response = await client.post(
            "/api/agendamentos/sugestoes",
            json={"data_evento": "2030-03-04T10:00:00", "horario_inicio": 14, "horario_fim": 14},
            headers=headers_de(professor),
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_sugestoes(self, client, professor, headers_de):
        response = await client.post(
            "/api/agendamentos/sugestoes",
            json={"data_evento": "2030-03-04T10:00:00", "max_sugestoes": 3},
            headers=headers_de(professor),
        )

        assert response.status_code == 200
        sugestoes = response.json()["suggestions"]
        assert len(sugestoes) == 3
        assert sugestoes[0]["score"] == 100


class TestExportacaoIcs:

    @pytest.mark.asyncio
    async def test_ics(self, client, professor, headers_de):
        agendamento = (await _agendar(
            client, headers_de(professor),
            titulo="Audiência, sala 2", local="Fórum de Cuiabá", duracao_minutos=90,
        )).json()

        response = await client.get(f"/api/agendamentos/{agendamento['id']}/ics", headers=headers_de(professor))

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/calendar")
        ics = response.text
        assert ics.startswith("BEGIN:VCALENDAR\r\n")
        assert "DTSTART:20300304T140000Z" in ics
        assert "DTEND:20300304T153000Z" in ics
        assert "SUMMARY:Audiência\\, sala 2" in ics
        assert "STATUS:TENTATIVE" in ics

    @pytest.mark.asyncio
    async def test_ics_recorrente(self, client, professor, headers_de):
        agendamento = (await _agendar(
            client, headers_de(professor), recorrente=True, frequencia="semanal",
            fim_recorrencia="2030-03-18T10:00:00",
        )).json()

        response = await client.get(f"/api/agendamentos/{agendamento['id']}/ics", headers=headers_de(professor))

        assert "RRULE:FREQ=WEEKLY;UNTIL=20300318T140000Z" in response.text
