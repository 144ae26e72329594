"""Reservas temporárias de espaços (holds com TTL).

Toda decisão que lê e escreve reservas de um espaço roda dentro de
``transaction.atomic()`` com ``select_for_update`` na linha do espaço (lock por
recurso). A expiração é avaliada de forma preguiçosa em toda leitura e
reconciliada por ``varrer_expiradas``, agendada via Celery Beat.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from prometheus_client import Counter

from clientes.models import Cliente
from core.models import CustomUser, Tenant
from shared import exceptions as exc
from shared.janelas import JanelaHorario
from shared.notificacoes import notificar
from shared.transacoes import armazenamento_disponivel

from .models import EntradaFilaEspera, EspacoEvento, ReservaTemporaria, filtro_sobreposicao

logger = logging.getLogger(__name__)

Relogio = Callable[[], datetime]

RESERVAS_CRIADAS_TOTAL = Counter("com_reservas_criadas_total", "Total de reservas temporárias criadas")
RESERVAS_CONTENDIDAS_TOTAL = Counter(
    "com_reservas_contendidas_total",
    "Tentativas de reserva rejeitadas por espaço já reservado",
)
RESERVAS_LIBERADAS_TOTAL = Counter("com_reservas_liberadas_total", "Total de reservas liberadas pelo titular")
RESERVAS_CONVERTIDAS_TOTAL = Counter("com_reservas_convertidas_total", "Total de reservas convertidas")
RESERVAS_EXPIRADAS_TOTAL = Counter("com_reservas_expiradas_total", "Total de reservas expiradas")


def ttl_padrao_minutos() -> int:
    return int(getattr(settings, "RESERVAS_TTL_PADRAO_MINUTOS", 48 * 60))


def _bloquear_espaco(espaco_id: int) -> EspacoEvento:
    """Lock por recurso: serializa criação/liberação/expiração no espaço."""
    try:
        return EspacoEvento.objects.select_for_update().get(pk=espaco_id)
    except EspacoEvento.DoesNotExist:
        msg = f"Espaço {espaco_id} não encontrado"
        raise exc.NaoEncontradoError(msg) from None


def _obter(reserva_id: int, *, lock: bool = False) -> ReservaTemporaria:
    qs = ReservaTemporaria.objects.select_related("espaco", "cliente", "vendedor")
    if lock:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=reserva_id)
    except ReservaTemporaria.DoesNotExist:
        msg = f"Reserva {reserva_id} não encontrada"
        raise exc.NaoEncontradoError(msg) from None


def _notificar_reserva(reserva: ReservaTemporaria, evento: str, titulo: str, mensagem: str) -> None:
    notificar(
        evento,
        destinatarios=[getattr(reserva.cliente, "email", None), getattr(reserva.vendedor, "email", None)],
        titulo=titulo,
        mensagem=mensagem,
        contexto={"reserva_id": reserva.pk, "espaco_id": reserva.espaco_id},
    )


def reserva_conflitante(
    espaco_id: int,
    data_inicio: date,
    data_fim: date,
    hora_inicio: time,
    hora_fim: time,
    *,
    agora: datetime,
) -> ReservaTemporaria | None:
    """Reserva ativa e não expirada que disputa o período, se houver."""
    return (
        ReservaTemporaria.objects.filter(espaco_id=espaco_id, status="ATIVA", expira_em__gte=agora)
        .filter(filtro_sobreposicao(data_inicio, data_fim, hora_inicio, hora_fim))
        .order_by("expira_em", "id")
        .first()
    )


def criar_reserva_sob_lock(  # noqa: PLR0913
    *,
    tenant: Tenant,
    espaco: EspacoEvento,
    cliente: Cliente,
    data_inicio: date,
    data_fim: date,
    janela: JanelaHorario,
    ttl_minutos: int,
    agora: datetime,
    vendedor: CustomUser | None = None,
    valor_estimado_proposta: Decimal | None = None,
    observacoes: str = "",
    origem_fila: EntradaFilaEspera | None = None,
) -> ReservaTemporaria:
    """Cria a reserva assumindo que o chamador já detém o lock do espaço."""
    conflito = reserva_conflitante(
        espaco.pk, data_inicio, data_fim, janela.hora_inicio, janela.hora_fim, agora=agora
    )
    if conflito and conflito.cliente_id == cliente.pk:
        msg = "Cliente já possui reserva ativa para este espaço no período"
        raise exc.ConflitoAgendaError(
            msg,
            codigo=exc.DUPLICATE_ENTRY,
            entidade_conflitante={"tipo": "reserva", "id": conflito.pk},
        )
    if conflito:
        msg = f"Espaço já reservado no período (reserva #{conflito.pk} até {conflito.expira_em:%d/%m %H:%M})"
        raise exc.ConflitoAgendaError(
            msg,
            codigo=exc.RESOURCE_CONTENDED,
            entidade_conflitante={"tipo": "reserva", "id": conflito.pk},
        )
    return ReservaTemporaria.objects.create(
        tenant=tenant,
        espaco=espaco,
        cliente=cliente,
        vendedor=vendedor,
        data_inicio=data_inicio,
        data_fim=data_fim,
        hora_inicio=janela.hora_inicio,
        hora_fim=janela.hora_fim,
        status="ATIVA",
        expira_em=agora + timedelta(minutes=ttl_minutos),
        valor_estimado_proposta=valor_estimado_proposta,
        observacoes=observacoes or "",
        origem_fila=origem_fila,
    )


class ReservaTemporariaService:
    """Criação, liberação, conversão, extensão e expiração de reservas."""

    @staticmethod
    def criar_reserva(  # noqa: PLR0913
        *,
        tenant: Tenant,
        espaco: EspacoEvento,
        cliente: Cliente,
        data_inicio: date,
        hora_inicio: str | time,
        hora_fim: str | time,
        data_fim: date | None = None,
        ttl_minutos: int | None = None,
        vendedor: CustomUser | None = None,
        valor_estimado_proposta: Decimal | None = None,
        observacoes: str = "",
        relogio: Relogio = timezone.now,
    ) -> ReservaTemporaria:
        """Cria um hold ATIVA com ``expira_em = agora + ttl``.

        Raises:
            JanelaInvalidaError: janela ou intervalo de datas malformado.
            ValorInvalidoError: TTL não positivo.
            ConflitoAgendaError: ``RESOURCE_CONTENDED`` ou ``DUPLICATE_ENTRY``.

        """
        data_fim = data_fim or data_inicio
        if data_fim < data_inicio:
            msg = "Data final anterior à data inicial"
            raise exc.JanelaInvalidaError(msg)
        janela = JanelaHorario.de_horarios(data_inicio, hora_inicio, hora_fim)
        ttl = ttl_padrao_minutos() if ttl_minutos is None else int(ttl_minutos)
        if ttl <= 0:
            msg = "TTL da reserva deve ser positivo"
            raise exc.ValorInvalidoError(msg)
        try:
            with armazenamento_disponivel("criar_reserva"), transaction.atomic():
                espaco = _bloquear_espaco(espaco.pk)
                reserva = criar_reserva_sob_lock(
                    tenant=tenant,
                    espaco=espaco,
                    cliente=cliente,
                    data_inicio=data_inicio,
                    data_fim=data_fim,
                    janela=janela,
                    ttl_minutos=ttl,
                    agora=relogio(),
                    vendedor=vendedor,
                    valor_estimado_proposta=valor_estimado_proposta,
                    observacoes=observacoes,
                )
                _notificar_reserva(
                    reserva,
                    "reserva_criada",
                    "Reserva temporária criada",
                    f"{espaco} reservado em {janela} até {reserva.expira_em:%d/%m/%Y %H:%M}.",
                )
        except exc.ConflitoAgendaError:
            with contextlib.suppress(Exception):  # pragma: no cover
                RESERVAS_CONTENDIDAS_TOTAL.inc()
            raise
        with contextlib.suppress(Exception):  # pragma: no cover
            RESERVAS_CRIADAS_TOTAL.inc()
        logger.info("Reserva %s criada no espaço %s (ttl=%smin)", reserva.pk, espaco.pk, ttl)
        return reserva

    @staticmethod
    def obter(reserva_id: int) -> ReservaTemporaria:
        return _obter(reserva_id)

    @staticmethod
    def status_efetivo(reserva: ReservaTemporaria, *, relogio: Relogio = timezone.now) -> str:
        return reserva.status_efetivo(relogio())

    @staticmethod
    def liberar(
        reserva_id: int,
        *,
        motivo: str = "",
        relogio: Relogio = timezone.now,
    ) -> ReservaTemporaria:
        """ATIVA -> LIBERADA e promove a fila do período liberado.

        Idempotente: em estado terminal apenas devolve a reserva. Uma reserva
        ainda ATIVA cujo TTL já passou é expirada (e promove) em vez de liberada.
        """
        with armazenamento_disponivel("liberar_reserva"), transaction.atomic():
            espaco_id = _obter(reserva_id).espaco_id
            _bloquear_espaco(espaco_id)
            reserva = _obter(reserva_id, lock=True)
            agora = relogio()
            if reserva.status != "ATIVA":
                return reserva
            if reserva.esta_expirada(agora):
                ReservaTemporariaService._expirar_sob_lock(reserva, agora=agora)
                return _obter(reserva_id)
            reserva.status = "LIBERADA"
            reserva.data_liberacao = agora
            reserva.motivo_liberacao = motivo or ""
            reserva.save(update_fields=["status", "data_liberacao", "motivo_liberacao", "updated_at"])
            _notificar_reserva(
                reserva, "reserva_liberada", "Reserva liberada", f"A reserva #{reserva.pk} de {reserva.espaco} foi liberada."
            )
            ReservaTemporariaService._promover(reserva, agora=agora)
        with contextlib.suppress(Exception):  # pragma: no cover
            RESERVAS_LIBERADAS_TOTAL.inc()
        return reserva

    @staticmethod
    def converter(
        reserva_id: int,
        *,
        referencia: str,
        relogio: Relogio = timezone.now,
    ) -> ReservaTemporaria:
        """Marca o hold como consumido por uma reserva firme (``referencia``).

        Não cria a reserva firme; isso cabe ao chamador.
        """
        with armazenamento_disponivel("converter_reserva"), transaction.atomic():
            reserva = _obter(reserva_id, lock=True)
            agora = relogio()
            if reserva.status_efetivo(agora) == "EXPIRADA":
                msg = f"Reserva #{reserva.pk} expirou em {reserva.expira_em:%d/%m/%Y %H:%M}"
                raise exc.ReservaExpiradaError(msg, entidade_conflitante={"tipo": "reserva", "id": reserva.pk})
            if reserva.status != "ATIVA":
                msg = f"Reserva no estado '{reserva.status}' não pode ser convertida"
                raise exc.TransicaoInvalidaError(msg)
            reserva.status = "CONVERTIDA"
            reserva.referencia_conversao = str(referencia)
            reserva.data_conversao = agora
            reserva.save(update_fields=["status", "referencia_conversao", "data_conversao", "updated_at"])
        with contextlib.suppress(Exception):  # pragma: no cover
            RESERVAS_CONVERTIDAS_TOTAL.inc()
        logger.info("Reserva %s convertida (ref=%s)", reserva.pk, referencia)
        return reserva

    @staticmethod
    def estender(
        reserva_id: int,
        *,
        minutos: int,
        relogio: Relogio = timezone.now,
    ) -> ReservaTemporaria:
        """Prorroga ``expira_em`` de um hold ativo e ainda válido."""
        if int(minutos) <= 0:
            msg = "Minutos de extensão devem ser positivos"
            raise exc.ValorInvalidoError(msg)
        with armazenamento_disponivel("estender_reserva"), transaction.atomic():
            reserva = _obter(reserva_id, lock=True)
            agora = relogio()
            if reserva.status_efetivo(agora) == "EXPIRADA":
                msg = f"Reserva #{reserva.pk} já expirou"
                raise exc.ReservaExpiradaError(msg, entidade_conflitante={"tipo": "reserva", "id": reserva.pk})
            if reserva.status != "ATIVA":
                msg = f"Reserva no estado '{reserva.status}' não pode ser estendida"
                raise exc.TransicaoInvalidaError(msg)
            reserva.expira_em = reserva.expira_em + timedelta(minutes=int(minutos))
            reserva.aviso_expiracao_em = None
            reserva.save(update_fields=["expira_em", "aviso_expiracao_em", "updated_at"])
        return reserva

    @staticmethod
    def varrer_expiradas(*, relogio: Relogio = timezone.now) -> int:
        """Persiste EXPIRADA nas reservas vencidas e promove a fila.

        A transição é um UPDATE condicional (status=ATIVA): só quem efetivamente
        mudou a linha promove, então rodar de novo não promove em dobro.
        Retorna quantas reservas foram expiradas nesta chamada.
        """
        agora = relogio()
        with armazenamento_disponivel("varrer_expiradas"):
            candidatas = list(
                ReservaTemporaria.objects.filter(status="ATIVA", expira_em__lt=agora)
                .order_by("expira_em", "id")
                .values_list("id", "espaco_id")
            )
            total = 0
            for reserva_id, espaco_id in candidatas:
                with transaction.atomic():
                    _bloquear_espaco(espaco_id)
                    reserva = _obter(reserva_id, lock=True)
                    if ReservaTemporariaService._expirar_sob_lock(reserva, agora=agora):
                        total += 1
        if total:
            logger.info("Varredura expirou %s reserva(s)", total)
        return total

    @staticmethod
    def _expirar_sob_lock(reserva: ReservaTemporaria, *, agora: datetime) -> bool:
        alteradas = ReservaTemporaria.objects.filter(pk=reserva.pk, status="ATIVA", expira_em__lt=agora).update(
            status="EXPIRADA", updated_at=agora
        )
        if alteradas != 1:
            return False
        reserva.status = "EXPIRADA"
        with contextlib.suppress(Exception):  # pragma: no cover
            RESERVAS_EXPIRADAS_TOTAL.inc()
        _notificar_reserva(
            reserva,
            "reserva_expirada",
            "Reserva expirada",
            f"A reserva #{reserva.pk} de {reserva.espaco} expirou.",
        )
        ReservaTemporariaService._promover(reserva, agora=agora)
        return True

    @staticmethod
    def _promover(reserva: ReservaTemporaria, *, agora: datetime) -> ReservaTemporaria | None:
        from .fila import FilaEsperaService  # noqa: PLC0415

        return FilaEsperaService.promover_sob_lock(reserva.espaco, reserva, agora=agora)

    @staticmethod
    def reservas_expirando(*, horas: int, relogio: Relogio = timezone.now) -> list[ReservaTemporaria]:
        """Holds ativos que vencem nas próximas ``horas`` e ainda não foram avisados."""
        agora = relogio()
        return list(
            ReservaTemporaria.objects.select_related("espaco", "cliente", "vendedor")
            .filter(
                status="ATIVA",
                expira_em__gt=agora,
                expira_em__lte=agora + timedelta(hours=horas),
                aviso_expiracao_em__isnull=True,
            )
            .order_by("expira_em", "id")
        )

    @staticmethod
    def avisar_expiracao(*, horas: int | None = None, relogio: Relogio = timezone.now) -> int:
        if horas is None:
            horas = int(getattr(settings, "RESERVAS_AVISO_EXPIRACAO_HORAS", 24))
        agora = relogio()
        total = 0
        for reserva in ReservaTemporariaService.reservas_expirando(horas=horas, relogio=relogio):
            with transaction.atomic():
                marcadas = ReservaTemporaria.objects.filter(pk=reserva.pk, aviso_expiracao_em__isnull=True).update(
                    aviso_expiracao_em=agora
                )
                if marcadas != 1:
                    continue
                restante = reserva.expira_em - agora
                _notificar_reserva(
                    reserva,
                    "reserva_expirando",
                    "Sua reserva está expirando",
                    f"A reserva de {reserva.espaco} expira em {int(restante.total_seconds() // 3600)}h "
                    f"({reserva.expira_em:%d/%m/%Y %H:%M}).",
                )
                total += 1
        return total

    @staticmethod
    def estatisticas(espaco_ids: list[int] | None = None, *, relogio: Relogio = timezone.now) -> dict[str, Any]:
        """Contagem por status efetivo e taxa de conversão."""
        agora = relogio()
        qs = ReservaTemporaria.objects.all()
        if espaco_ids:
            qs = qs.filter(espaco_id__in=espaco_ids)
        contagem = {"ATIVA": 0, "EXPIRADA": 0, "CONVERTIDA": 0, "LIBERADA": 0}
        for status, expira_em in qs.values_list("status", "expira_em"):
            efetivo = "EXPIRADA" if status == "ATIVA" and agora > expira_em else status
            contagem[efetivo] = contagem.get(efetivo, 0) + 1
        total = sum(contagem.values())
        taxa = round(contagem["CONVERTIDA"] / total * 100, 1) if total else 0.0
        return {"total": total, "por_status": contagem, "taxa_conversao": taxa}
