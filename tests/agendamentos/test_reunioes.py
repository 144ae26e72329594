"""Ciclo de vida de reuniões e manutenção de regras/bloqueios."""

import contextlib
import random
from datetime import date, time

import pytest
from django.core import mail
from django.test import override_settings

from agendamentos.disponibilidade import DisponibilidadeService
from agendamentos.models import STATUS_ATIVOS, DisponibilidadeVendedor, ResultadoReuniao, Reuniao
from agendamentos.services import ReuniaoService, SchedulingService
from shared import exceptions as exc
from shared.janelas import JanelaHorario, formatar_horario

pytestmark = pytest.mark.django_db

DIA = date(2025, 4, 1)


@pytest.fixture
def reuniao(tenant, vendedor, cliente):
    return ReuniaoService.agendar(
        tenant=tenant,
        vendedor=vendedor,
        cliente=cliente,
        data=DIA,
        hora_inicio="09:00",
        hora_fim="10:00",
        titulo="Apresentação do buffet",
    )


def test_agendar_cria_reuniao_agendada(reuniao, vendedor):
    assert reuniao.status == "AGENDADA"
    assert reuniao.vendedor == vendedor
    assert reuniao.hora_inicio == time(9, 0)
    assert reuniao.hora_fim == time(10, 0)
    assert not reuniao.mutuamente_confirmada
    assert list(reuniao.historico.values_list("tipo_evento", flat=True)) == ["CRIACAO"]


def test_agendar_sobreposto_rejeita_sem_gravar(reuniao, tenant, vendedor, outro_cliente):
    with pytest.raises(exc.ConflitoAgendaError) as ei:
        SchedulingService.agendar_reuniao(
            tenant=tenant,
            vendedor=vendedor,
            cliente=outro_cliente,
            data=DIA,
            hora_inicio="09:30",
            hora_fim="10:30",
        )
    assert ei.value.codigo == exc.MEETING_CONFLICT
    assert ei.value.entidade_conflitante == {"tipo": "reuniao", "id": reuniao.pk}
    assert Reuniao.objects.count() == 1


def test_agendar_janela_invalida(tenant, vendedor, cliente):
    with pytest.raises(exc.JanelaInvalidaError):
        ReuniaoService.agendar(
            tenant=tenant, vendedor=vendedor, cliente=cliente, data=DIA, hora_inicio="10:00", hora_fim="09:00"
        )
    assert not Reuniao.objects.exists()


def test_agendar_em_bloqueio(tenant, vendedor, cliente):
    DisponibilidadeService.criar_bloqueio(tenant=tenant, vendedor=vendedor, data_inicio=DIA, tipo="ferias")
    with pytest.raises(exc.ConflitoAgendaError) as ei:
        ReuniaoService.agendar(
            tenant=tenant, vendedor=vendedor, cliente=cliente, data=DIA, hora_inicio="15:00", hora_fim="16:00"
        )
    assert ei.value.codigo == exc.BLOCKED_PERIOD


def test_confirmacao_mutua(reuniao):
    reuniao = ReuniaoService.confirmar(reuniao, tipo="cliente")
    assert reuniao.confirmada_cliente is True
    assert reuniao.status == "AGENDADA"
    reuniao = ReuniaoService.confirmar(reuniao, tipo="vendedor")
    assert reuniao.status == "CONFIRMADA"
    assert reuniao.mutuamente_confirmada


def test_confirmacao_ambos_de_uma_vez(reuniao):
    reuniao = SchedulingService.confirmar_reuniao(reuniao, tipo="ambos")
    assert reuniao.status == "CONFIRMADA"


def test_confirmacao_tipo_invalido(reuniao):
    with pytest.raises(exc.TransicaoInvalidaError):
        ReuniaoService.confirmar(reuniao, tipo="gerente")


def test_reagendar_sobrepondo_a_propria_janela(reuniao):
    reuniao = ReuniaoService.reagendar(reuniao, nova_data=DIA, novo_inicio="09:30", novo_fim="10:30", motivo="atraso")
    assert reuniao.status == "REAGENDADA"
    assert reuniao.hora_inicio == time(9, 30)
    assert reuniao.hora_fim == time(10, 30)
    evento = reuniao.historico.filter(tipo_evento="REAGENDAMENTO").get()
    assert evento.diff["horario_de"] == "09:00-10:00"
    assert evento.diff["horario_para"] == "09:30-10:30"
    assert evento.motivo == "atraso"


def test_reagendar_zera_confirmacoes(reuniao):
    ReuniaoService.confirmar(reuniao, tipo="ambos")
    reuniao = ReuniaoService.reagendar(reuniao, nova_data=date(2025, 4, 2), novo_inicio="14:00", novo_fim="15:00")
    assert reuniao.status == "REAGENDADA"
    assert reuniao.data == date(2025, 4, 2)
    assert not reuniao.confirmada_cliente
    assert not reuniao.confirmada_vendedor


def test_reagendar_com_conflito_nao_altera(reuniao, tenant, vendedor, outro_cliente):
    outra = ReuniaoService.agendar(
        tenant=tenant, vendedor=vendedor, cliente=outro_cliente, data=DIA, hora_inicio="11:00", hora_fim="12:00"
    )
    with pytest.raises(exc.ConflitoAgendaError) as ei:
        SchedulingService.reagendar_reuniao(reuniao, nova_data=DIA, novo_inicio="10:30", novo_fim="11:30")
    assert ei.value.entidade_conflitante == {"tipo": "reuniao", "id": outra.pk}
    reuniao.refresh_from_db()
    assert reuniao.status == "AGENDADA"
    assert reuniao.hora_inicio == time(9, 0)


def test_cancelar_registra_motivo_e_horario(reuniao, relogio):
    reuniao = ReuniaoService.cancelar(reuniao, motivo="cliente desistiu", relogio=relogio)
    assert reuniao.status == "CANCELADA"
    assert reuniao.motivo_cancelamento == "cliente desistiu"
    assert reuniao.cancelada_em == relogio.agora
    assert Reuniao.objects.filter(pk=reuniao.pk).exists()


def test_concluir_anexa_resultado(reuniao):
    reuniao = SchedulingService.concluir_reuniao(
        reuniao, resultado="PROPOSTA_ENVIADA", valor_estimado_negocio="25000.00", proximos_passos="enviar contrato"
    )
    assert reuniao.status == "CONCLUIDA"
    resultado = ResultadoReuniao.objects.get(reuniao=reuniao)
    assert resultado.resultado == "PROPOSTA_ENVIADA"
    assert resultado.proximos_passos == "enviar contrato"


def test_concluir_resultado_invalido(reuniao):
    with pytest.raises(exc.TransicaoInvalidaError):
        ReuniaoService.concluir(reuniao, resultado="TALVEZ")


@pytest.mark.parametrize("terminal", ["cancelar", "concluir"])
def test_estados_terminais_rejeitam_transicoes(reuniao, terminal):
    if terminal == "cancelar":
        ReuniaoService.cancelar(reuniao, motivo="x")
    else:
        ReuniaoService.concluir(reuniao, resultado="SUCESSO")
    with pytest.raises(exc.TransicaoInvalidaError):
        ReuniaoService.confirmar(reuniao, tipo="cliente")
    with pytest.raises(exc.TransicaoInvalidaError):
        ReuniaoService.reagendar(reuniao, nova_data=DIA, novo_inicio="14:00", novo_fim="15:00")
    with pytest.raises(exc.TransicaoInvalidaError):
        ReuniaoService.cancelar(reuniao, motivo="de novo")
    with pytest.raises(exc.TransicaoInvalidaError):
        ReuniaoService.concluir(reuniao, resultado="SUCESSO")


def test_notifica_vendedor_e_cliente_apos_commit(tenant, vendedor, cliente, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        ReuniaoService.agendar(
            tenant=tenant, vendedor=vendedor, cliente=cliente, data=DIA, hora_inicio="09:00", hora_fim="10:00"
        )
    assert len(mail.outbox) == 1
    assert mail.outbox[0].subject == "Reunião agendada"
    assert sorted(mail.outbox[0].to) == sorted([vendedor.email, cliente.email])


def test_conflito_nao_notifica(reuniao, tenant, vendedor, cliente, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True) as callbacks, pytest.raises(exc.ConflitoAgendaError):
        ReuniaoService.agendar(
            tenant=tenant, vendedor=vendedor, cliente=cliente, data=DIA, hora_inicio="09:00", hora_fim="10:00"
        )
    assert callbacks == []
    assert mail.outbox == []


@override_settings(NOTIFICACOES_DISPATCHER="shared.notificacoes.DispatcherInexistente")
def test_falha_de_notificacao_nao_desfaz_operacao(tenant, vendedor, cliente, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        reuniao = ReuniaoService.agendar(
            tenant=tenant, vendedor=vendedor, cliente=cliente, data=DIA, hora_inicio="09:00", hora_fim="10:00"
        )
    assert Reuniao.objects.filter(pk=reuniao.pk, status="AGENDADA").exists()


@override_settings(ENABLE_NOTIFICATIONS=False)
def test_notificacoes_desligadas(tenant, vendedor, cliente, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        ReuniaoService.agendar(
            tenant=tenant, vendedor=vendedor, cliente=cliente, data=DIA, hora_inicio="09:00", hora_fim="10:00"
        )
    assert callbacks == []


# Regras e bloqueios ---------------------------------------------------------


def test_regra_sobreposta_rejeitada(tenant, vendedor):
    regra = DisponibilidadeService.criar_regra(
        tenant=tenant, vendedor=vendedor, dia_semana=1, hora_inicio="08:00", hora_fim="12:00"
    )
    with pytest.raises(exc.ConflitoAgendaError) as ei:
        DisponibilidadeService.criar_regra(
            tenant=tenant, vendedor=vendedor, dia_semana=1, hora_inicio="11:00", hora_fim="14:00"
        )
    assert ei.value.codigo == exc.AVAILABILITY_OVERLAP
    assert ei.value.entidade_conflitante == {"tipo": "disponibilidade", "id": regra.pk}
    # adjacente, outro dia ou outra cidade são aceitos
    DisponibilidadeService.criar_regra(tenant=tenant, vendedor=vendedor, dia_semana=1, hora_inicio="12:00", hora_fim="14:00")
    DisponibilidadeService.criar_regra(tenant=tenant, vendedor=vendedor, dia_semana=2, hora_inicio="08:00", hora_fim="12:00")
    DisponibilidadeService.criar_regra(
        tenant=tenant, vendedor=vendedor, dia_semana=1, hora_inicio="08:00", hora_fim="12:00", cidade="Jundiaí"
    )
    assert DisponibilidadeVendedor.objects.filter(vendedor=vendedor).count() == 4


def test_regra_invalida(tenant, vendedor):
    with pytest.raises(exc.JanelaInvalidaError):
        DisponibilidadeService.criar_regra(tenant=tenant, vendedor=vendedor, dia_semana=7, hora_inicio="08:00", hora_fim="12:00")
    with pytest.raises(exc.JanelaInvalidaError):
        DisponibilidadeService.criar_regra(tenant=tenant, vendedor=vendedor, dia_semana=1, hora_inicio="12:00", hora_fim="08:00")


def test_regra_desativada_libera_horario(tenant, vendedor):
    regra = DisponibilidadeService.criar_regra(
        tenant=tenant, vendedor=vendedor, dia_semana=1, hora_inicio="08:00", hora_fim="12:00"
    )
    DisponibilidadeService.desativar_regra(regra)
    assert DisponibilidadeService.regras_do_dia(vendedor.pk, 1) == []
    DisponibilidadeService.criar_regra(tenant=tenant, vendedor=vendedor, dia_semana=1, hora_inicio="09:00", hora_fim="10:00")


def test_cache_de_regras_invalidado_por_signal(tenant, vendedor):
    assert DisponibilidadeService.regras_do_dia(vendedor.pk, 1) == []
    DisponibilidadeVendedor.objects.create(
        tenant=tenant, vendedor=vendedor, dia_semana=1, hora_inicio=time(8), hora_fim=time(12)
    )
    regras = DisponibilidadeService.regras_do_dia(vendedor.pk, 1)
    assert [(r.janela.inicio, r.janela.fim) for r in regras] == [(480, 720)]


def test_bloqueio_sobreposto_rejeitado(tenant, vendedor):
    ferias = DisponibilidadeService.criar_bloqueio(
        tenant=tenant, vendedor=vendedor, data_inicio=date(2025, 7, 1), data_fim=date(2025, 7, 15), tipo="ferias"
    )
    with pytest.raises(exc.ConflitoAgendaError) as ei:
        DisponibilidadeService.criar_bloqueio(
            tenant=tenant, vendedor=vendedor, data_inicio=date(2025, 7, 10), hora_inicio="09:00", hora_fim="10:00"
        )
    assert ei.value.codigo == exc.BLOCK_OVERLAP
    assert ei.value.entidade_conflitante["id"] == ferias.pk
    DisponibilidadeService.criar_bloqueio(tenant=tenant, vendedor=vendedor, data_inicio=date(2025, 7, 16))


def test_bloqueios_parciais_no_mesmo_dia(tenant, vendedor):
    DisponibilidadeService.criar_bloqueio(
        tenant=tenant, vendedor=vendedor, data_inicio=DIA, hora_inicio="09:00", hora_fim="10:00"
    )
    DisponibilidadeService.criar_bloqueio(
        tenant=tenant, vendedor=vendedor, data_inicio=DIA, hora_inicio="10:00", hora_fim="11:00"
    )
    with pytest.raises(exc.ConflitoAgendaError):
        DisponibilidadeService.criar_bloqueio(
            tenant=tenant, vendedor=vendedor, data_inicio=DIA, hora_inicio="10:30", hora_fim="12:00"
        )


def test_bloqueio_datas_ou_horas_invalidas(tenant, vendedor):
    with pytest.raises(exc.JanelaInvalidaError):
        DisponibilidadeService.criar_bloqueio(
            tenant=tenant, vendedor=vendedor, data_inicio=date(2025, 7, 10), data_fim=date(2025, 7, 1)
        )
    with pytest.raises(exc.JanelaInvalidaError):
        DisponibilidadeService.criar_bloqueio(tenant=tenant, vendedor=vendedor, data_inicio=DIA, hora_inicio="09:00")


def test_sequencia_de_agendamentos_nunca_sobrepoe(tenant, vendedor, cliente):
    gerador = random.Random(20250401)
    aceitas, rejeitadas = 0, 0
    for _ in range(60):
        inicio = 8 * 60 + 30 * gerador.randrange(0, 18)
        fim = inicio + 30 * gerador.randrange(1, 5)
        try:
            reuniao = SchedulingService.agendar_reuniao(
                tenant=tenant,
                vendedor=vendedor,
                cliente=cliente,
                data=DIA,
                hora_inicio=formatar_horario(inicio),
                hora_fim=formatar_horario(fim),
            )
        except exc.ConflitoAgendaError as erro:
            assert erro.codigo == exc.MEETING_CONFLICT
            rejeitadas += 1
            continue
        aceitas += 1
        # mistura transições para liberar e reocupar horários
        sorteio = gerador.random()
        if sorteio < 0.2:
            SchedulingService.cancelar_reuniao(reuniao, motivo="troca")
        elif sorteio < 0.35:
            novo = 8 * 60 + 30 * gerador.randrange(0, 18)
            with contextlib.suppress(exc.ConflitoAgendaError):
                SchedulingService.reagendar_reuniao(
                    reuniao, nova_data=DIA, novo_inicio=formatar_horario(novo), novo_fim=formatar_horario(novo + 60)
                )

    assert aceitas > 0
    assert rejeitadas > 0
    ativas = [
        JanelaHorario.de_horarios(DIA, r.hora_inicio, r.hora_fim)
        for r in Reuniao.objects.filter(vendedor=vendedor, data=DIA, status__in=STATUS_ATIVOS)
    ]
    for i, a in enumerate(ativas):
        for b in ativas[i + 1 :]:
            assert not a.sobrepoe(b), f"{a} sobrepõe {b}"
