"""Serviços de reuniões de venda (ciclo de vida e fachada instrumentada).

Toda escrita que depende de validação de conflito roda dentro de
``transaction.atomic()`` com ``select_for_update`` na linha do vendedor, o que
serializa o par validar/gravar por vendedor. A fachada ``SchedulingService``
mede latência e conta operações via Prometheus.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable
from datetime import date, datetime, time
from decimal import Decimal
from time import monotonic
from typing import Any

from django.db import transaction
from django.utils import timezone
from prometheus_client import Counter, Histogram

from clientes.models import Cliente
from core.models import CustomUser, Tenant
from shared import exceptions as exc
from shared.janelas import JanelaHorario, formatar_horario
from shared.notificacoes import notificar
from shared.transacoes import armazenamento_disponivel

from .conflitos import ConflictDetector, ResultadoValidacao
from .models import RESULTADO_REUNIAO, STATUS_ATIVOS, HistoricoReuniao, ResultadoReuniao, Reuniao

logger = logging.getLogger(__name__)

Relogio = Callable[[], datetime]

TIPOS_CONFIRMACAO = ("cliente", "vendedor", "ambos")
_STATUS_CONFIRMAVEIS = ("AGENDADA", "CONFIRMADA", "REAGENDADA")

REUNIOES_AGENDADAS_TOTAL = Counter(
    "com_reunioes_agendadas_total",
    "Total de reuniões agendadas",
)
REUNIOES_CONFIRMADAS_TOTAL = Counter(
    "com_reunioes_confirmacoes_total",
    "Total de confirmações de reunião registradas",
)
REUNIOES_REAGENDADAS_TOTAL = Counter(
    "com_reunioes_reagendadas_total",
    "Total de reuniões reagendadas",
)
REUNIOES_CANCELADAS_TOTAL = Counter(
    "com_reunioes_canceladas_total",
    "Total de reuniões canceladas",
)
REUNIOES_CONCLUIDAS_TOTAL = Counter(
    "com_reunioes_concluidas_total",
    "Total de reuniões concluídas",
)
REUNIOES_CONFLITOS_TOTAL = Counter(
    "com_reunioes_conflitos_total",
    "Rejeições de agenda por motivo",
    ["motivo"],
)
H_AGENDA = Histogram(
    "com_reuniao_agendamento_latency_seconds",
    "Latência para agendamento de reunião",
)
H_REAGENDA = Histogram(
    "com_reuniao_reagendamento_latency_seconds",
    "Latência para reagendamento de reunião",
)
H_CANCELA = Histogram(
    "com_reuniao_cancelamento_latency_seconds",
    "Latência para cancelamento de reunião",
)


def _bloquear_vendedor(vendedor_id: int) -> CustomUser:
    """Lock por vendedor: serializa validar+gravar concorrentes."""
    try:
        return CustomUser.objects.select_for_update().get(pk=vendedor_id)
    except CustomUser.DoesNotExist:
        msg = f"Vendedor {vendedor_id} não encontrado"
        raise exc.NaoEncontradoError(msg) from None


def _bloquear_reuniao(reuniao_id: int) -> Reuniao:
    try:
        return Reuniao.objects.select_for_update().select_related("vendedor", "cliente").get(pk=reuniao_id)
    except Reuniao.DoesNotExist:
        msg = f"Reunião {reuniao_id} não encontrada"
        raise exc.NaoEncontradoError(msg) from None


def _registrar(
    reuniao: Reuniao,
    tipo_evento: str,
    *,
    de_status: str | None,
    user: CustomUser | None = None,
    motivo: str | None = None,
    diff: dict[str, Any] | None = None,
) -> None:
    HistoricoReuniao.objects.create(
        reuniao=reuniao,
        user=user if getattr(user, "pk", None) else None,
        tipo_evento=tipo_evento,
        de_status=de_status,
        para_status=reuniao.status,
        motivo=motivo,
        diff=diff,
    )


def _notificar_reuniao(reuniao: Reuniao, evento: str, titulo: str, mensagem: str) -> None:
    notificar(
        evento,
        destinatarios=[getattr(reuniao.vendedor, "email", None), getattr(reuniao.cliente, "email", None)],
        titulo=titulo,
        mensagem=mensagem,
        contexto={"reuniao_id": reuniao.pk, "status": reuniao.status},
    )


def _exigir_ativa(reuniao: Reuniao, operacao: str) -> None:
    if reuniao.status not in STATUS_ATIVOS:
        msg = f"Não é possível {operacao}: reunião já está no estado final '{reuniao.status}'"
        raise exc.TransicaoInvalidaError(msg)


class ReuniaoService:
    """Máquina de estados da reunião: agendar, confirmar, reagendar, cancelar, concluir."""

    @staticmethod
    def validar(  # noqa: PLR0913
        vendedor_id: int,
        data: date,
        hora_inicio: str | time,
        hora_fim: str | time,
        *,
        excluir_reuniao_id: int | None = None,
        cidade: str | None = None,
        canal: str | None = None,
    ) -> ResultadoValidacao:
        with armazenamento_disponivel("validar_agendamento"):
            return ConflictDetector.validar_agendamento(
                vendedor_id,
                data,
                hora_inicio,
                hora_fim,
                excluir_reuniao_id=excluir_reuniao_id,
                cidade=cidade,
                canal=canal,
            )

    @staticmethod
    def agendar(  # noqa: PLR0913
        *,
        tenant: Tenant,
        vendedor: CustomUser,
        cliente: Cliente,
        data: date,
        hora_inicio: str | time,
        hora_fim: str | time,
        titulo: str = "",
        cidade: str = "",
        canal: str = "",
        observacoes: str = "",
        reserva_temporaria: Any = None,  # noqa: ANN401
        user: CustomUser | None = None,
    ) -> Reuniao:
        """Cria a reunião em AGENDADA somente se a janela for válida.

        Raises:
            JanelaInvalidaError: janela malformada.
            ConflitoAgendaError: bloqueio, reunião sobreposta ou fora da disponibilidade.

        """
        with armazenamento_disponivel("agendar_reuniao"), transaction.atomic():
            _bloquear_vendedor(vendedor.pk)
            resultado = ConflictDetector.validar_agendamento(
                vendedor.pk, data, hora_inicio, hora_fim, cidade=cidade, canal=canal
            )
            resultado.levantar()
            janela = JanelaHorario.de_horarios(data, hora_inicio, hora_fim)
            reuniao = Reuniao.objects.create(
                tenant=tenant,
                vendedor=vendedor,
                cliente=cliente,
                data=data,
                hora_inicio=janela.hora_inicio,
                hora_fim=janela.hora_fim,
                titulo=titulo or "",
                cidade=cidade or "",
                canal=canal or "",
                observacoes=observacoes or "",
                reserva_temporaria=reserva_temporaria,
                status="AGENDADA",
            )
            _registrar(reuniao, "CRIACAO", de_status=None, user=user)
            _notificar_reuniao(
                reuniao,
                "reuniao_agendada",
                "Reunião agendada",
                f"Reunião com {cliente} agendada para {janela}.",
            )
        logger.info("Reunião %s agendada para vendedor %s em %s", reuniao.pk, vendedor.pk, janela)
        return reuniao

    @staticmethod
    def confirmar(reuniao: Reuniao, *, tipo: str, user: CustomUser | None = None) -> Reuniao:
        """Registra confirmação do cliente, do vendedor ou de ambos.

        Com as duas confirmações a reunião passa a CONFIRMADA.
        """
        if tipo not in TIPOS_CONFIRMACAO:
            msg = f"Tipo de confirmação inválido: {tipo!r}"
            raise exc.TransicaoInvalidaError(msg)
        with armazenamento_disponivel("confirmar_reuniao"), transaction.atomic():
            atual = _bloquear_reuniao(reuniao.pk)
            if atual.status not in _STATUS_CONFIRMAVEIS:
                msg = f"Reunião no estado '{atual.status}' não pode ser confirmada"
                raise exc.TransicaoInvalidaError(msg)
            de_status = atual.status
            if tipo in ("cliente", "ambos"):
                atual.confirmada_cliente = True
            if tipo in ("vendedor", "ambos"):
                atual.confirmada_vendedor = True
            if atual.mutuamente_confirmada:
                atual.status = "CONFIRMADA"
            atual.save(update_fields=["confirmada_cliente", "confirmada_vendedor", "status", "updated_at"])
            _registrar(atual, "CONFIRMACAO", de_status=de_status, user=user, motivo=f"Confirmação: {tipo}")
            if atual.mutuamente_confirmada and de_status != "CONFIRMADA":
                _notificar_reuniao(
                    atual,
                    "reuniao_confirmada",
                    "Reunião confirmada",
                    f"Reunião #{atual.pk} confirmada por cliente e vendedor ({atual.janela}).",
                )
        reuniao.refresh_from_db()
        return reuniao

    @staticmethod
    def reagendar(  # noqa: PLR0913
        reuniao: Reuniao,
        *,
        nova_data: date,
        novo_inicio: str | time,
        novo_fim: str | time,
        motivo: str | None = None,
        user: CustomUser | None = None,
    ) -> Reuniao:
        """Move a reunião para outra janela, revalidando tudo exceto ela mesma.

        Em caso de conflito nada é alterado. Sucesso zera as confirmações.
        """
        with armazenamento_disponivel("reagendar_reuniao"), transaction.atomic():
            _bloquear_vendedor(reuniao.vendedor_id)
            atual = _bloquear_reuniao(reuniao.pk)
            _exigir_ativa(atual, "reagendar")
            resultado = ConflictDetector.validar_agendamento(
                atual.vendedor_id,
                nova_data,
                novo_inicio,
                novo_fim,
                excluir_reuniao_id=atual.pk,
                cidade=atual.cidade or None,
                canal=atual.canal or None,
            )
            resultado.levantar()
            janela_antiga = atual.janela
            janela = JanelaHorario.de_horarios(nova_data, novo_inicio, novo_fim)
            de_status = atual.status
            atual.data = nova_data
            atual.hora_inicio = janela.hora_inicio
            atual.hora_fim = janela.hora_fim
            atual.status = "REAGENDADA"
            atual.confirmada_cliente = False
            atual.confirmada_vendedor = False
            atual.save(
                update_fields=[
                    "data",
                    "hora_inicio",
                    "hora_fim",
                    "status",
                    "confirmada_cliente",
                    "confirmada_vendedor",
                    "updated_at",
                ]
            )
            _registrar(
                atual,
                "REAGENDAMENTO",
                de_status=de_status,
                user=user,
                motivo=motivo,
                diff={
                    "data_de": janela_antiga.data.isoformat(),
                    "data_para": janela.data.isoformat(),
                    "horario_de": f"{formatar_horario(janela_antiga.inicio)}-{formatar_horario(janela_antiga.fim)}",
                    "horario_para": f"{formatar_horario(janela.inicio)}-{formatar_horario(janela.fim)}",
                },
            )
            _notificar_reuniao(
                atual,
                "reuniao_reagendada",
                "Reunião reagendada",
                f"Reunião #{atual.pk} reagendada de {janela_antiga} para {janela}.",
            )
        reuniao.refresh_from_db()
        return reuniao

    @staticmethod
    def cancelar(
        reuniao: Reuniao,
        *,
        motivo: str,
        user: CustomUser | None = None,
        relogio: Relogio = timezone.now,
    ) -> Reuniao:
        """Cancela a reunião (mudança de status; nunca apaga)."""
        with armazenamento_disponivel("cancelar_reuniao"), transaction.atomic():
            atual = _bloquear_reuniao(reuniao.pk)
            _exigir_ativa(atual, "cancelar")
            de_status = atual.status
            atual.status = "CANCELADA"
            atual.motivo_cancelamento = motivo or ""
            atual.cancelada_em = relogio()
            atual.save(update_fields=["status", "motivo_cancelamento", "cancelada_em", "updated_at"])
            _registrar(atual, "CANCELAMENTO", de_status=de_status, user=user, motivo=motivo)
            _notificar_reuniao(
                atual,
                "reuniao_cancelada",
                "Reunião cancelada",
                f"A reunião de {atual.janela} foi cancelada. Motivo: {motivo or '-'}",
            )
        reuniao.refresh_from_db()
        return reuniao

    @staticmethod
    def concluir(  # noqa: PLR0913
        reuniao: Reuniao,
        *,
        resultado: str,
        valor_estimado_negocio: Decimal | None = None,
        proximos_passos: str = "",
        data_follow_up: date | None = None,
        observacoes: str = "",
        user: CustomUser | None = None,
    ) -> Reuniao:
        """Conclui a reunião anexando o registro de resultado."""
        if resultado not in dict(RESULTADO_REUNIAO):
            msg = f"Resultado inválido: {resultado!r}"
            raise exc.TransicaoInvalidaError(msg)
        with armazenamento_disponivel("concluir_reuniao"), transaction.atomic():
            atual = _bloquear_reuniao(reuniao.pk)
            _exigir_ativa(atual, "concluir")
            de_status = atual.status
            atual.status = "CONCLUIDA"
            atual.save(update_fields=["status", "updated_at"])
            ResultadoReuniao.objects.create(
                reuniao=atual,
                resultado=resultado,
                valor_estimado_negocio=valor_estimado_negocio,
                proximos_passos=proximos_passos or "",
                data_follow_up=data_follow_up,
                observacoes=observacoes or "",
            )
            _registrar(atual, "CONCLUSAO", de_status=de_status, user=user, motivo=resultado)
        reuniao.refresh_from_db()
        return reuniao


class SchedulingService:
    """Fachada de alto nível para operações de agenda.

    Ponto central para métricas e latência; delega as regras ao ``ReuniaoService``.
    """

    @staticmethod
    def validar_agendamento(
        vendedor_id: int,
        data: date,
        hora_inicio: str | time,
        hora_fim: str | time,
        **kwargs: Any,  # noqa: ANN401
    ) -> ResultadoValidacao:
        resultado = ReuniaoService.validar(vendedor_id, data, hora_inicio, hora_fim, **kwargs)
        if not resultado.valido:
            with contextlib.suppress(Exception):  # pragma: no cover
                REUNIOES_CONFLITOS_TOTAL.labels(motivo=resultado.motivo).inc()
        return resultado

    @staticmethod
    def agendar_reuniao(**kwargs: Any) -> Reuniao:  # noqa: ANN401
        t0 = monotonic()
        try:
            reuniao = ReuniaoService.agendar(**kwargs)
        except exc.AgendaError as e:
            with contextlib.suppress(Exception):  # pragma: no cover
                REUNIOES_CONFLITOS_TOTAL.labels(motivo=e.codigo).inc()
            raise
        dur = monotonic() - t0
        with contextlib.suppress(Exception):  # pragma: no cover
            REUNIOES_AGENDADAS_TOTAL.inc()
            H_AGENDA.observe(dur)
        return reuniao

    @staticmethod
    def confirmar_reuniao(reuniao: Reuniao, *, tipo: str, user: CustomUser | None = None) -> Reuniao:
        reuniao = ReuniaoService.confirmar(reuniao, tipo=tipo, user=user)
        with contextlib.suppress(Exception):  # pragma: no cover
            REUNIOES_CONFIRMADAS_TOTAL.inc()
        return reuniao

    @staticmethod
    def reagendar_reuniao(reuniao: Reuniao, **kwargs: Any) -> Reuniao:  # noqa: ANN401
        t0 = monotonic()
        try:
            reuniao = ReuniaoService.reagendar(reuniao, **kwargs)
        except exc.ConflitoAgendaError as e:
            with contextlib.suppress(Exception):  # pragma: no cover
                REUNIOES_CONFLITOS_TOTAL.labels(motivo=e.codigo).inc()
            raise
        dur = monotonic() - t0
        with contextlib.suppress(Exception):  # pragma: no cover
            REUNIOES_REAGENDADAS_TOTAL.inc()
            H_REAGENDA.observe(dur)
        return reuniao

    @staticmethod
    def cancelar_reuniao(reuniao: Reuniao, **kwargs: Any) -> Reuniao:  # noqa: ANN401
        t0 = monotonic()
        reuniao = ReuniaoService.cancelar(reuniao, **kwargs)
        dur = monotonic() - t0
        with contextlib.suppress(Exception):  # pragma: no cover
            REUNIOES_CANCELADAS_TOTAL.inc()
            H_CANCELA.observe(dur)
        return reuniao

    @staticmethod
    def concluir_reuniao(reuniao: Reuniao, **kwargs: Any) -> Reuniao:  # noqa: ANN401
        reuniao = ReuniaoService.concluir(reuniao, **kwargs)
        with contextlib.suppress(Exception):  # pragma: no cover
            REUNIOES_CONCLUIDAS_TOTAL.inc()
        return reuniao

    # Alias curtos
    agendar = agendar_reuniao
    confirmar = confirmar_reuniao
    reagendar = reagendar_reuniao
    cancelar = cancelar_reuniao
    concluir = concluir_reuniao
