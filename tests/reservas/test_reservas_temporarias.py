"""Reservas temporárias: TTL, disputa do espaço, expiração preguiçosa e varredura."""

from datetime import date, timedelta

import pytest
from django.core import mail

from reservas.fila import FilaEsperaService
from reservas.models import EspacoEvento, ReservaTemporaria
from reservas.services import ReservaTemporariaService
from reservas.tasks import avisar_reservas_expirando, varrer_reservas_expiradas
from shared import exceptions as exc

pytestmark = pytest.mark.django_db

SABADO = date(2025, 6, 14)


def _reservar(tenant, espaco, cliente, relogio, inicio="18:00", fim="23:00", **kwargs):
    kwargs.setdefault("ttl_minutos", 60)
    return ReservaTemporariaService.criar_reserva(
        tenant=tenant,
        espaco=espaco,
        cliente=cliente,
        data_inicio=kwargs.pop("data_inicio", SABADO),
        hora_inicio=inicio,
        hora_fim=fim,
        relogio=relogio,
        **kwargs,
    )


def _enfileirar(tenant, espaco, cliente, relogio, pontuacao, inicio="18:00", fim="23:00"):
    return FilaEsperaService.enfileirar(
        tenant=tenant,
        espaco=espaco,
        cliente=cliente,
        data_inicio=SABADO,
        hora_inicio=inicio,
        hora_fim=fim,
        pontuacao=pontuacao,
        relogio=relogio,
    )


def test_criar_reserva_ativa_com_ttl(tenant, espaco, cliente, vendedor, relogio):
    reserva = _reservar(tenant, espaco, cliente, relogio, vendedor=vendedor, valor_estimado_proposta="35000.00")
    assert reserva.status == "ATIVA"
    assert reserva.data_fim == SABADO
    assert reserva.expira_em == relogio.agora + timedelta(minutes=60)
    assert reserva.segundos_restantes(relogio.agora) == 3600
    assert ReservaTemporariaService.status_efetivo(reserva, relogio=relogio) == "ATIVA"


def test_ttl_padrao_das_configuracoes(tenant, espaco, cliente, relogio, settings):
    settings.RESERVAS_TTL_PADRAO_MINUTOS = 30
    reserva = _reservar(tenant, espaco, cliente, relogio, ttl_minutos=None)
    assert reserva.expira_em == relogio.agora + timedelta(minutes=30)


@pytest.mark.parametrize("ttl", [0, -5])
def test_ttl_nao_positivo_rejeitado(tenant, espaco, cliente, relogio, ttl):
    with pytest.raises(exc.ValorInvalidoError) as ei:
        _reservar(tenant, espaco, cliente, relogio, ttl_minutos=ttl)
    assert ei.value.codigo == exc.INVALID_VALUE
    assert not ReservaTemporaria.objects.exists()


def test_periodo_invalido(tenant, espaco, cliente, relogio):
    with pytest.raises(exc.JanelaInvalidaError):
        _reservar(tenant, espaco, cliente, relogio, inicio="23:00", fim="18:00")
    with pytest.raises(exc.JanelaInvalidaError):
        _reservar(tenant, espaco, cliente, relogio, data_fim=SABADO - timedelta(days=1))


def test_espaco_disputado_por_outro_cliente(tenant, espaco, cliente, outro_cliente, relogio):
    primeira = _reservar(tenant, espaco, cliente, relogio)
    with pytest.raises(exc.ConflitoAgendaError) as ei:
        _reservar(tenant, espaco, outro_cliente, relogio, inicio="20:00", fim="23:59")
    assert ei.value.codigo == exc.RESOURCE_CONTENDED
    assert ei.value.entidade_conflitante == {"tipo": "reserva", "id": primeira.pk}


def test_mesmo_cliente_duplicado(tenant, espaco, cliente, relogio):
    _reservar(tenant, espaco, cliente, relogio)
    with pytest.raises(exc.ConflitoAgendaError) as ei:
        _reservar(tenant, espaco, cliente, relogio)
    assert ei.value.codigo == exc.DUPLICATE_ENTRY


def test_periodos_distintos_nao_disputam(tenant, espaco, cliente, outro_cliente, relogio):
    _reservar(tenant, espaco, cliente, relogio, inicio="10:00", fim="14:00")
    # borda encostada, outro dia e outro espaço
    _reservar(tenant, espaco, outro_cliente, relogio, inicio="14:00", fim="18:00")
    _reservar(tenant, espaco, outro_cliente, relogio, inicio="10:00", fim="14:00", data_inicio=SABADO + timedelta(days=1))
    outro_espaco = EspacoEvento.objects.create(tenant=tenant, nome="Salão Lago")
    _reservar(tenant, outro_espaco, outro_cliente, relogio, inicio="10:00", fim="14:00")
    assert ReservaTemporaria.objects.count() == 4


def test_reserva_de_varios_dias_disputa_dias_internos(tenant, espaco, cliente, outro_cliente, relogio):
    _reservar(tenant, espaco, cliente, relogio, inicio="08:00", fim="22:00", data_fim=SABADO + timedelta(days=2))
    with pytest.raises(exc.ConflitoAgendaError):
        _reservar(tenant, espaco, outro_cliente, relogio, data_inicio=SABADO + timedelta(days=1))


def test_expiracao_preguicosa_libera_espaco(tenant, espaco, cliente, outro_cliente, relogio):
    antiga = _reservar(tenant, espaco, cliente, relogio)
    relogio.avancar(minutes=60)
    # exatamente no instante de expiração ainda está ativa
    assert ReservaTemporariaService.status_efetivo(antiga, relogio=relogio) == "ATIVA"
    relogio.avancar(minutes=1)
    assert ReservaTemporariaService.status_efetivo(antiga, relogio=relogio) == "EXPIRADA"
    assert antiga.segundos_restantes(relogio.agora) == 0
    nova = _reservar(tenant, espaco, outro_cliente, relogio)
    assert nova.status == "ATIVA"
    antiga.refresh_from_db()
    assert antiga.status == "ATIVA"  # persistido só na varredura


def test_varredura_expira_e_promove_fila(tenant, espaco, cliente, clientes_factory, relogio):
    reserva = _reservar(tenant, espaco, cliente, relogio)
    interessados = [clientes_factory() for _ in range(3)]
    for c, pontos in zip(interessados, (5, 9, 3), strict=True):
        relogio.avancar(minutes=1)
        _enfileirar(tenant, espaco, c, relogio, pontos)

    relogio.avancar(minutes=61)
    assert ReservaTemporariaService.status_efetivo(reserva, relogio=relogio) == "EXPIRADA"

    assert ReservaTemporariaService.varrer_expiradas(relogio=relogio) == 1
    reserva.refresh_from_db()
    assert reserva.status == "EXPIRADA"

    promovida = ReservaTemporaria.objects.get(status="ATIVA")
    assert promovida.cliente == interessados[1]
    assert promovida.origem_fila.status == "PROMOVIDO"
    assert promovida.origem_fila.promovido_em == relogio.agora
    assert promovida.expira_em == relogio.agora + timedelta(minutes=48 * 60)

    # segunda varredura não promove de novo
    assert ReservaTemporariaService.varrer_expiradas(relogio=relogio) == 0
    assert ReservaTemporaria.objects.filter(status="ATIVA").count() == 1


def test_varredura_sem_fila(tenant, espaco, cliente, relogio):
    _reservar(tenant, espaco, cliente, relogio)
    relogio.avancar(hours=2)
    assert ReservaTemporariaService.varrer_expiradas(relogio=relogio) == 1
    assert not ReservaTemporaria.objects.filter(status="ATIVA").exists()


def test_promocao_usa_ttl_configurado(tenant, espaco, cliente, outro_cliente, relogio, settings):
    settings.RESERVAS_TTL_PROMOCAO_MINUTOS = 120
    reserva = _reservar(tenant, espaco, cliente, relogio)
    _enfileirar(tenant, espaco, outro_cliente, relogio, 1)
    ReservaTemporariaService.liberar(reserva.pk, relogio=relogio)
    promovida = ReservaTemporaria.objects.get(cliente=outro_cliente)
    assert promovida.expira_em == relogio.agora + timedelta(minutes=120)


def test_liberar_promove_e_e_idempotente(tenant, espaco, cliente, outro_cliente, relogio):
    reserva = _reservar(tenant, espaco, cliente, relogio)
    entrada = _enfileirar(tenant, espaco, outro_cliente, relogio, 7)

    liberada = ReservaTemporariaService.liberar(reserva.pk, motivo="cliente fechou em outro local", relogio=relogio)
    assert liberada.status == "LIBERADA"
    assert liberada.data_liberacao == relogio.agora
    entrada.refresh_from_db()
    assert entrada.status == "PROMOVIDO"
    assert ReservaTemporaria.objects.filter(cliente=outro_cliente, status="ATIVA").count() == 1

    de_novo = ReservaTemporariaService.liberar(reserva.pk, relogio=relogio)
    assert de_novo.status == "LIBERADA"
    assert ReservaTemporaria.objects.filter(status="ATIVA").count() == 1


def test_liberar_reserva_vencida_vira_expirada(tenant, espaco, cliente, relogio):
    reserva = _reservar(tenant, espaco, cliente, relogio)
    relogio.avancar(minutes=90)
    assert ReservaTemporariaService.liberar(reserva.pk, relogio=relogio).status == "EXPIRADA"


def test_converter(tenant, espaco, cliente, relogio):
    reserva = _reservar(tenant, espaco, cliente, relogio)
    convertida = ReservaTemporariaService.converter(reserva.pk, referencia="CTR-2025-001", relogio=relogio)
    assert convertida.status == "CONVERTIDA"
    assert convertida.referencia_conversao == "CTR-2025-001"
    assert convertida.data_conversao == relogio.agora
    with pytest.raises(exc.TransicaoInvalidaError):
        ReservaTemporariaService.converter(reserva.pk, referencia="CTR-2025-002", relogio=relogio)
    # liberar depois de convertida não altera
    assert ReservaTemporariaService.liberar(reserva.pk, relogio=relogio).status == "CONVERTIDA"


def test_converter_reserva_expirada(tenant, espaco, cliente, relogio):
    reserva = _reservar(tenant, espaco, cliente, relogio)
    relogio.avancar(minutes=61)
    with pytest.raises(exc.ReservaExpiradaError) as ei:
        ReservaTemporariaService.converter(reserva.pk, referencia="CTR-1", relogio=relogio)
    assert ei.value.codigo == exc.EXPIRED
    reserva.refresh_from_db()
    assert reserva.status == "ATIVA"
    assert reserva.referencia_conversao == ""


def test_estender(tenant, espaco, cliente, relogio):
    reserva = _reservar(tenant, espaco, cliente, relogio)
    estendida = ReservaTemporariaService.estender(reserva.pk, minutos=30, relogio=relogio)
    assert estendida.expira_em == relogio.agora + timedelta(minutes=90)
    with pytest.raises(exc.ValorInvalidoError):
        ReservaTemporariaService.estender(reserva.pk, minutos=0, relogio=relogio)
    relogio.avancar(minutes=91)
    with pytest.raises(exc.ReservaExpiradaError):
        ReservaTemporariaService.estender(reserva.pk, minutos=30, relogio=relogio)


def test_reserva_inexistente(relogio):
    with pytest.raises(exc.NaoEncontradoError):
        ReservaTemporariaService.liberar(999999, relogio=relogio)
    with pytest.raises(exc.NaoEncontradoError):
        ReservaTemporariaService.obter(999999)


def test_avisar_expiracao_uma_vez(tenant, espaco, cliente, vendedor, relogio, django_capture_on_commit_callbacks):
    _reservar(tenant, espaco, cliente, relogio, ttl_minutos=90, vendedor=vendedor)
    _reservar(tenant, espaco, cliente, relogio, ttl_minutos=48 * 60, inicio="10:00", fim="12:00")
    with django_capture_on_commit_callbacks(execute=True):
        assert ReservaTemporariaService.avisar_expiracao(horas=2, relogio=relogio) == 1
    assert len(mail.outbox) == 1
    assert mail.outbox[0].subject == "Sua reserva está expirando"
    assert sorted(mail.outbox[0].to) == sorted([cliente.email, vendedor.email])
    assert ReservaTemporariaService.avisar_expiracao(horas=2, relogio=relogio) == 0


def test_estatisticas_por_status_efetivo(tenant, espaco, cliente, outro_cliente, relogio):
    a = _reservar(tenant, espaco, cliente, relogio, inicio="08:00", fim="10:00")
    _reservar(tenant, espaco, cliente, relogio, inicio="10:00", fim="12:00", ttl_minutos=10)
    _reservar(tenant, espaco, outro_cliente, relogio, inicio="12:00", fim="14:00")
    ReservaTemporariaService.converter(a.pk, referencia="CTR-9", relogio=relogio)
    relogio.avancar(minutes=30)
    stats = ReservaTemporariaService.estatisticas([espaco.pk], relogio=relogio)
    assert stats["total"] == 3
    assert stats["por_status"] == {"ATIVA": 1, "EXPIRADA": 1, "CONVERTIDA": 1, "LIBERADA": 0}
    assert stats["taxa_conversao"] == 33.3


def test_tarefas_celery(tenant, espaco, cliente, relogio):
    # relógio fixo no passado: para o relógio real a reserva já venceu
    _reservar(tenant, espaco, cliente, relogio)
    assert avisar_reservas_expirando(horas=1) == 0
    assert varrer_reservas_expiradas() == 1
    assert varrer_reservas_expiradas() == 0


def test_instante_exato_do_vencimento_ainda_ativo(tenant, espaco, cliente, outro_cliente, relogio):
    reserva = _reservar(tenant, espaco, cliente, relogio)
    relogio.avancar(minutes=60)
    assert relogio.agora == reserva.expira_em
    assert ReservaTemporariaService.status_efetivo(reserva, relogio=relogio) == "ATIVA"
    # enquanto ainda conversível, o espaço continua disputado
    with pytest.raises(exc.ConflitoAgendaError) as ei:
        _reservar(tenant, espaco, outro_cliente, relogio)
    assert ei.value.codigo == exc.RESOURCE_CONTENDED
    assert ReservaTemporariaService.varrer_expiradas(relogio=relogio) == 0
    relogio.avancar(seconds=1)
    assert ReservaTemporariaService.status_efetivo(reserva, relogio=relogio) == "EXPIRADA"
    assert _reservar(tenant, espaco, outro_cliente, relogio).status == "ATIVA"


def test_avisar_expiracao_com_zero_horas_nao_usa_padrao(tenant, espaco, cliente, relogio, settings):
    settings.RESERVAS_AVISO_EXPIRACAO_HORAS = 24
    _reservar(tenant, espaco, cliente, relogio, ttl_minutos=90)
    assert ReservaTemporariaService.avisar_expiracao(horas=0, relogio=relogio) == 0
    assert ReservaTemporariaService.avisar_expiracao(relogio=relogio) == 1
