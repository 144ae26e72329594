"""Fila de espera: ordenação, posição, promoção e estratégias de pontuação."""

from datetime import date, timedelta

import pytest
from django.core import mail
from django.test import override_settings

from reservas.fila import FilaEsperaService, PontuacaoInformada, PontuacaoPorCriterios
from reservas.models import EntradaFilaEspera, ReservaTemporaria
from reservas.services import ReservaTemporariaService
from shared import exceptions as exc

pytestmark = pytest.mark.django_db

SABADO = date(2025, 6, 14)


def _enfileirar(tenant, espaco, cliente, relogio, pontuacao=None, inicio="18:00", fim="23:00", **kwargs):
    return FilaEsperaService.enfileirar(
        tenant=tenant,
        espaco=espaco,
        cliente=cliente,
        data_inicio=SABADO,
        hora_inicio=inicio,
        hora_fim=fim,
        pontuacao=pontuacao,
        relogio=relogio,
        **kwargs,
    )


@pytest.fixture
def fila(tenant, espaco, clientes_factory, relogio):
    """Quatro interessados com pontuações 5, 9, 9 e 3, enfileirados em sequência."""
    entradas = []
    for pontos in (5, 9, 9, 3):
        relogio.avancar(minutes=1)
        entradas.append(_enfileirar(tenant, espaco, clientes_factory(), relogio, pontos))
    return entradas


def test_posicoes_por_pontuacao_e_chegada(fila):
    cinco, nove_a, nove_b, tres = fila
    assert FilaEsperaService.posicao(nove_a.pk) == 1
    assert FilaEsperaService.posicao(nove_b.pk) == 2
    assert FilaEsperaService.posicao(cinco.pk) == 3
    assert FilaEsperaService.posicao(tres.pk) == 4


def test_candidatos_na_ordem_da_fila(fila, espaco):
    cinco, nove_a, nove_b, tres = fila
    primeiro = fila[0]
    ordem = FilaEsperaService.candidatos(
        espaco.pk, SABADO, SABADO, primeiro.hora_inicio, primeiro.hora_fim
    )
    assert [e.pk for e in ordem] == [nove_a.pk, nove_b.pk, cinco.pk, tres.pk]


def test_empate_desfeito_pelo_id(tenant, espaco, clientes_factory, relogio):
    a = _enfileirar(tenant, espaco, clientes_factory(), relogio, 4)
    b = _enfileirar(tenant, espaco, clientes_factory(), relogio, 4)
    assert FilaEsperaService.posicao(a.pk) == 1
    assert FilaEsperaService.posicao(b.pk) == 2


def test_promover_proximo_escolhe_o_primeiro_nove(fila, espaco, relogio):
    _, nove_a, nove_b, _ = fila
    reserva = FilaEsperaService.promover_proximo(espaco, SABADO, "18:00", "23:00", relogio=relogio)
    assert reserva is not None
    assert reserva.cliente_id == nove_a.cliente_id
    assert reserva.origem_fila_id == nove_a.pk
    assert reserva.status == "ATIVA"
    nove_a.refresh_from_db()
    assert nove_a.status == "PROMOVIDO"
    # o próximo da fila sobe
    assert FilaEsperaService.posicao(nove_b.pk) == 1


def test_promover_sem_candidatos(espaco, relogio):
    assert FilaEsperaService.promover_proximo(espaco, SABADO, "18:00", "23:00", relogio=relogio) is None
    assert not ReservaTemporaria.objects.exists()


def test_promover_ignora_periodos_sem_sobreposicao(tenant, espaco, cliente, relogio):
    _enfileirar(tenant, espaco, cliente, relogio, 10, inicio="08:00", fim="12:00")
    assert FilaEsperaService.promover_proximo(espaco, SABADO, "18:00", "23:00", relogio=relogio) is None


def test_promocao_pula_candidato_ainda_disputado(tenant, espaco, clientes_factory, relogio):
    dono_manha, dono_noite, grande, pequeno = (clientes_factory() for _ in range(4))
    manha = ReservaTemporariaService.criar_reserva(
        tenant=tenant, espaco=espaco, cliente=dono_manha, data_inicio=SABADO,
        hora_inicio="10:00", hora_fim="14:00", ttl_minutos=60, relogio=relogio,
    )
    ReservaTemporariaService.criar_reserva(
        tenant=tenant, espaco=espaco, cliente=dono_noite, data_inicio=SABADO,
        hora_inicio="18:00", hora_fim="23:00", ttl_minutos=600, relogio=relogio,
    )
    # "grande" sobrepõe as duas reservas; "pequeno" só a da manhã
    entrada_grande = _enfileirar(tenant, espaco, grande, relogio, 9, inicio="12:00", fim="20:00")
    entrada_pequena = _enfileirar(tenant, espaco, pequeno, relogio, 5, inicio="10:00", fim="11:00")

    ReservaTemporariaService.liberar(manha.pk, relogio=relogio)

    entrada_grande.refresh_from_db()
    entrada_pequena.refresh_from_db()
    assert entrada_grande.status == "ATIVO"
    assert entrada_pequena.status == "PROMOVIDO"
    assert ReservaTemporaria.objects.filter(cliente=pequeno, status="ATIVA").exists()


def test_promocao_notifica_cliente(tenant, espaco, cliente, outro_cliente, relogio, django_capture_on_commit_callbacks):
    reserva = ReservaTemporariaService.criar_reserva(
        tenant=tenant, espaco=espaco, cliente=cliente, data_inicio=SABADO,
        hora_inicio="18:00", hora_fim="23:00", ttl_minutos=60, relogio=relogio,
    )
    _enfileirar(tenant, espaco, outro_cliente, relogio, 1)
    with django_capture_on_commit_callbacks(execute=True):
        ReservaTemporariaService.liberar(reserva.pk, relogio=relogio)
    assuntos = {m.subject: m.to for m in mail.outbox}
    assert assuntos["Período disponível para você"] == [outro_cliente.email]
    assert cliente.email in assuntos["Reserva liberada"]


def test_entrada_duplicada(tenant, espaco, cliente, relogio):
    existente = _enfileirar(tenant, espaco, cliente, relogio, 3)
    with pytest.raises(exc.ConflitoAgendaError) as ei:
        _enfileirar(tenant, espaco, cliente, relogio, 8, inicio="20:00", fim="22:00")
    assert ei.value.codigo == exc.DUPLICATE_ENTRY
    assert ei.value.entidade_conflitante == {"tipo": "fila_espera", "id": existente.pk}
    # outro período do mesmo dia é permitido
    _enfileirar(tenant, espaco, cliente, relogio, 8, inicio="08:00", fim="12:00")


def test_pode_reentrar_apos_retirar(tenant, espaco, cliente, relogio):
    entrada = _enfileirar(tenant, espaco, cliente, relogio, 3)
    FilaEsperaService.retirar(entrada.pk)
    _enfileirar(tenant, espaco, cliente, relogio, 3)
    assert EntradaFilaEspera.objects.filter(cliente=cliente, status="ATIVO").count() == 1


@pytest.mark.parametrize("valor", [float("nan"), float("inf"), float("-inf"), "muito"])
def test_pontuacao_invalida(tenant, espaco, cliente, relogio, valor):
    with pytest.raises(exc.ValorInvalidoError) as ei:
        _enfileirar(tenant, espaco, cliente, relogio, valor)
    assert ei.value.codigo == exc.INVALID_VALUE
    assert not EntradaFilaEspera.objects.exists()


def test_pontuacao_padrao_zero(tenant, espaco, cliente, relogio):
    entrada = _enfileirar(tenant, espaco, cliente, relogio)
    assert entrada.pontuacao == 0
    assert entrada.enfileirado_em == relogio.agora


def test_periodo_invalido(tenant, espaco, cliente, relogio):
    with pytest.raises(exc.JanelaInvalidaError):
        _enfileirar(tenant, espaco, cliente, relogio, 1, inicio="22:00", fim="20:00")
    with pytest.raises(exc.JanelaInvalidaError):
        _enfileirar(tenant, espaco, cliente, relogio, 1, data_fim=SABADO - timedelta(days=1))


def test_retirar_idempotente_e_posicao(fila):
    _, nove_a, nove_b, _ = fila
    retirada = FilaEsperaService.retirar(nove_a.pk, motivo="fechou com concorrente")
    assert retirada.status == "CANCELADO"
    assert "fechou com concorrente" in retirada.observacoes
    assert FilaEsperaService.retirar(nove_a.pk).status == "CANCELADO"
    assert FilaEsperaService.posicao(nove_b.pk) == 1
    with pytest.raises(exc.NaoEncontradoError):
        FilaEsperaService.posicao(nove_a.pk)


def test_atualizar_pontuacao_reordena(fila):
    cinco, nove_a, _, tres = fila
    FilaEsperaService.atualizar_pontuacao(tres.pk, 10)
    assert FilaEsperaService.posicao(tres.pk) == 1
    assert FilaEsperaService.posicao(nove_a.pk) == 2
    with pytest.raises(exc.ValorInvalidoError):
        FilaEsperaService.atualizar_pontuacao(cinco.pk, float("nan"))
    FilaEsperaService.retirar(cinco.pk)
    with pytest.raises(exc.TransicaoInvalidaError):
        FilaEsperaService.atualizar_pontuacao(cinco.pk, 1)


def test_entrada_inexistente():
    with pytest.raises(exc.NaoEncontradoError):
        FilaEsperaService.posicao(123456)


# Estratégias de pontuação ----------------------------------------------------

HOJE = date(2025, 3, 10)


def test_pontuacao_informada(cliente):
    estrategia = PontuacaoInformada()
    assert estrategia.calcular(cliente) == 0.0
    assert estrategia.calcular(cliente, pontuacao=7.5) == 7.5


def test_pontuacao_por_criterios_maxima(clientes_factory):
    antigo = clientes_factory(origem="indicacao", data_cadastro=HOJE - timedelta(days=400))
    criterios = {"valor_estimado": 60000, "prioridade": 10}
    # 40 + 20 + 30 + 10 = 100
    assert PontuacaoPorCriterios().calcular(antigo, criterios=criterios, hoje=HOJE) == 100.0


def test_pontuacao_por_criterios_faixas(clientes_factory):
    novo = clientes_factory(origem="outro", data_cadastro=HOJE)
    estrategia = PontuacaoPorCriterios()
    assert estrategia.calcular(novo, criterios={"valor_estimado": 7000}, hoje=HOJE) == 15.0
    assert estrategia.calcular(novo, criterios={}, hoje=HOJE) == 5.0
    # prioridade limitada a 10
    assert estrategia.calcular(novo, criterios={"prioridade": 20}, hoje=HOJE) == 35.0
    medio = clientes_factory(origem="google", data_cadastro=HOJE - timedelta(days=100))
    assert estrategia.calcular(medio, criterios={"valor_estimado": "20000", "prioridade": 2}, hoje=HOJE) == 56.0


def test_pontuacao_por_criterios_invalidos(cliente):
    estrategia = PontuacaoPorCriterios()
    with pytest.raises(exc.ValorInvalidoError):
        estrategia.calcular(cliente, criterios={"valor_estimado": "muito"}, hoje=HOJE)
    with pytest.raises(exc.ValorInvalidoError):
        estrategia.calcular(cliente, criterios={"prioridade": "alta"}, hoje=HOJE)


@override_settings(FILA_ESPERA_ESTRATEGIA_PONTUACAO="reservas.fila.PontuacaoPorCriterios")
def test_enfileirar_com_estrategia_configurada(tenant, espaco, clientes_factory, relogio):
    forte = clientes_factory(origem="indicacao")
    fraco = clientes_factory(origem="facebook")
    e_fraco = _enfileirar(tenant, espaco, fraco, relogio, criterios={"valor_estimado": 5000})
    e_forte = _enfileirar(tenant, espaco, forte, relogio, criterios={"valor_estimado": 50000})
    assert e_fraco.pontuacao == 20.0
    assert e_forte.pontuacao == 60.0
    assert FilaEsperaService.posicao(e_forte.pk) == 1
