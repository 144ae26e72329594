"""Fila de espera priorizada para períodos disputados de espaços.

A fila só ordena e promove; a pontuação vem de uma estratégia plugável
(``FILA_ESPERA_ESTRATEGIA_PONTUACAO``). Ordem total: pontuação decrescente,
``enfileirado_em`` crescente e, por fim, id.
"""

from __future__ import annotations

import contextlib
import logging
import math
from collections.abc import Callable
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.module_loading import import_string
from prometheus_client import Counter

from clientes.models import Cliente
from core.models import Tenant
from shared import exceptions as exc
from shared.janelas import JanelaHorario
from shared.notificacoes import notificar
from shared.transacoes import armazenamento_disponivel

from .models import EntradaFilaEspera, EspacoEvento, ReservaTemporaria, filtro_sobreposicao
from .services import _bloquear_espaco, criar_reserva_sob_lock

logger = logging.getLogger(__name__)

Relogio = Callable[[], datetime]

FILA_ENFILEIRADOS_TOTAL = Counter("com_fila_espera_enfileirados_total", "Total de entradas na fila de espera")
FILA_PROMOVIDOS_TOTAL = Counter("com_fila_espera_promovidos_total", "Total de promoções da fila de espera")

ORDEM_FILA = ("-pontuacao", "enfileirado_em", "id")


class EstrategiaPontuacao(Protocol):
    def calcular(
        self,
        cliente: Cliente,
        *,
        pontuacao: float | None = None,
        criterios: dict[str, Any] | None = None,
        hoje: date | None = None,
    ) -> float: ...


class PontuacaoInformada:
    """Usa a pontuação enviada pelo chamador (padrão 0)."""

    def calcular(self, cliente, *, pontuacao=None, criterios=None, hoje=None) -> float:
        return 0.0 if pontuacao is None else pontuacao


class PontuacaoPorCriterios:
    """Pontuação de lead de 0 a 100.

    Soma faixas de valor estimado, origem do cliente, prioridade informada
    (1 a 10, peso 3) e antiguidade do cadastro.
    """

    MAXIMO = 100
    FAIXAS_VALOR = ((50000, 40), (20000, 30), (10000, 20), (5000, 10))
    PESOS_ORIGEM = {"indicacao": 20, "google": 15, "facebook": 10}
    PESO_ORIGEM_PADRAO = 5
    FAIXAS_ANTIGUIDADE = ((365, 10), (180, 7), (90, 5), (30, 3))

    def calcular(self, cliente, *, pontuacao=None, criterios=None, hoje=None) -> float:
        criterios = criterios or {}
        hoje = hoje or timezone.localdate()
        total = 0
        try:
            valor = Decimal(str(criterios.get("valor_estimado") or 0))
        except InvalidOperation:
            msg = f"valor_estimado inválido: {criterios.get('valor_estimado')!r}"
            raise exc.ValorInvalidoError(msg) from None
        total += next((pts for limite, pts in self.FAIXAS_VALOR if valor >= limite), 0)
        total += self.PESOS_ORIGEM.get(getattr(cliente, "origem", "") or "", self.PESO_ORIGEM_PADRAO)
        prioridade = criterios.get("prioridade")
        if prioridade is not None:
            try:
                prioridade = int(prioridade)
            except (TypeError, ValueError):
                msg = f"prioridade inválida: {prioridade!r}"
                raise exc.ValorInvalidoError(msg) from None
            total += max(1, min(10, prioridade)) * 3
        cadastro = getattr(cliente, "data_cadastro", None)
        if cadastro:
            dias = (hoje - cadastro).days
            total += next((pts for limite, pts in self.FAIXAS_ANTIGUIDADE if dias >= limite), 0)
        return float(min(total, self.MAXIMO))


def get_estrategia() -> EstrategiaPontuacao:
    caminho = getattr(settings, "FILA_ESPERA_ESTRATEGIA_PONTUACAO", "reservas.fila.PontuacaoInformada")
    return import_string(caminho)()


def _pontuacao_valida(valor: Any) -> float:  # noqa: ANN401
    try:
        pontuacao = float(valor)
    except (TypeError, ValueError):
        msg = f"Pontuação inválida: {valor!r}"
        raise exc.ValorInvalidoError(msg) from None
    if math.isnan(pontuacao) or math.isinf(pontuacao):
        msg = "Pontuação deve ser um número finito"
        raise exc.ValorInvalidoError(msg)
    return pontuacao


def _obter_entrada(entrada_id: int, *, lock: bool = False) -> EntradaFilaEspera:
    qs = EntradaFilaEspera.objects.select_related("espaco", "cliente")
    if lock:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=entrada_id)
    except EntradaFilaEspera.DoesNotExist:
        msg = f"Entrada de fila {entrada_id} não encontrada"
        raise exc.NaoEncontradoError(msg) from None


class FilaEsperaService:
    @staticmethod
    def enfileirar(  # noqa: PLR0913
        *,
        tenant: Tenant,
        espaco: EspacoEvento,
        cliente: Cliente,
        data_inicio: date,
        hora_inicio: str | time,
        hora_fim: str | time,
        data_fim: date | None = None,
        pontuacao: float | None = None,
        criterios: dict[str, Any] | None = None,
        observacoes: str = "",
        relogio: Relogio = timezone.now,
    ) -> EntradaFilaEspera:
        """Insere o cliente na fila do período.

        Raises:
            JanelaInvalidaError: período malformado.
            ValorInvalidoError: pontuação NaN/infinita ou critério inválido.
            ConflitoAgendaError: ``DUPLICATE_ENTRY`` se o cliente já aguarda um período sobreposto.

        """
        data_fim = data_fim or data_inicio
        if data_fim < data_inicio:
            msg = "Data final anterior à data inicial"
            raise exc.JanelaInvalidaError(msg)
        janela = JanelaHorario.de_horarios(data_inicio, hora_inicio, hora_fim)
        agora = relogio()
        valor = get_estrategia().calcular(
            cliente, pontuacao=pontuacao, criterios=criterios, hoje=timezone.localdate(agora)
        )
        valor = _pontuacao_valida(valor)
        with armazenamento_disponivel("enfileirar"), transaction.atomic():
            _bloquear_espaco(espaco.pk)
            duplicada = (
                EntradaFilaEspera.objects.filter(espaco=espaco, cliente=cliente, status="ATIVO")
                .filter(filtro_sobreposicao(data_inicio, data_fim, janela.hora_inicio, janela.hora_fim))
                .first()
            )
            if duplicada:
                msg = "Cliente já está na fila de espera para este período"
                raise exc.ConflitoAgendaError(
                    msg,
                    codigo=exc.DUPLICATE_ENTRY,
                    entidade_conflitante={"tipo": "fila_espera", "id": duplicada.pk},
                )
            entrada = EntradaFilaEspera.objects.create(
                tenant=tenant,
                espaco=espaco,
                cliente=cliente,
                data_inicio=data_inicio,
                data_fim=data_fim,
                hora_inicio=janela.hora_inicio,
                hora_fim=janela.hora_fim,
                pontuacao=valor,
                criterios=criterios or {},
                enfileirado_em=agora,
                observacoes=observacoes or "",
            )
        with contextlib.suppress(Exception):  # pragma: no cover
            FILA_ENFILEIRADOS_TOTAL.inc()
        logger.info("Cliente %s enfileirado no espaço %s (pontuação %.2f)", cliente.pk, espaco.pk, valor)
        return entrada

    @staticmethod
    def candidatos(espaco_id: int, data_inicio: date, data_fim: date, hora_inicio: time, hora_fim: time):
        """Entradas ativas cujo período sobrepõe o informado, na ordem da fila."""
        return (
            EntradaFilaEspera.objects.select_related("cliente")
            .filter(espaco_id=espaco_id, status="ATIVO")
            .filter(filtro_sobreposicao(data_inicio, data_fim, hora_inicio, hora_fim))
            .order_by(*ORDEM_FILA)
        )

    @staticmethod
    def posicao(entrada_id: int) -> int:
        """Posição 1-based entre as entradas ativas do mesmo espaço/período."""
        entrada = _obter_entrada(entrada_id)
        if entrada.status != "ATIVO":
            msg = f"Entrada {entrada_id} não está ativa na fila ({entrada.status})"
            raise exc.NaoEncontradoError(msg)
        a_frente = (
            EntradaFilaEspera.objects.filter(espaco_id=entrada.espaco_id, status="ATIVO")
            .filter(entrada.filtro_sobreposicao())
            .filter(
                Q(pontuacao__gt=entrada.pontuacao)
                | Q(pontuacao=entrada.pontuacao, enfileirado_em__lt=entrada.enfileirado_em)
                | Q(pontuacao=entrada.pontuacao, enfileirado_em=entrada.enfileirado_em, id__lt=entrada.pk)
            )
            .count()
        )
        return a_frente + 1

    @staticmethod
    def retirar(entrada_id: int, *, motivo: str = "") -> EntradaFilaEspera:
        """Desistência do interessado. Idempotente para entradas já fora da fila."""
        with armazenamento_disponivel("retirar_fila"), transaction.atomic():
            entrada = _obter_entrada(entrada_id, lock=True)
            if entrada.status != "ATIVO":
                return entrada
            entrada.status = "CANCELADO"
            if motivo:
                entrada.observacoes = f"{entrada.observacoes}\n{motivo}".strip()
            entrada.save(update_fields=["status", "observacoes", "updated_at"])
        return entrada

    @staticmethod
    def atualizar_pontuacao(entrada_id: int, pontuacao: float) -> EntradaFilaEspera:
        valor = _pontuacao_valida(pontuacao)
        with armazenamento_disponivel("atualizar_pontuacao"), transaction.atomic():
            entrada = _obter_entrada(entrada_id, lock=True)
            if entrada.status != "ATIVO":
                msg = f"Entrada no estado '{entrada.status}' não pode ser repontuada"
                raise exc.TransicaoInvalidaError(msg)
            entrada.pontuacao = valor
            entrada.save(update_fields=["pontuacao", "updated_at"])
        return entrada

    @staticmethod
    def estatisticas(
        tenant: Tenant, *, espaco_id: int | None = None, relogio: Relogio = timezone.now
    ) -> dict[str, Any]:
        """Totais por status e por espaço, maior pontuação e espera média (horas) dos ativos."""
        agora = relogio()
        qs = EntradaFilaEspera.objects.filter(tenant=tenant)
        if espaco_id:
            qs = qs.filter(espaco_id=espaco_id)
        por_status = {"ATIVO": 0, "PROMOVIDO": 0, "CANCELADO": 0}
        por_espaco: dict[str, int] = {}
        esperas: list[int] = []
        maior = 0.0
        for status, nome, pontuacao, enfileirado_em in qs.values_list(
            "status", "espaco__nome", "pontuacao", "enfileirado_em"
        ):
            por_status[status] = por_status.get(status, 0) + 1
            por_espaco[nome] = por_espaco.get(nome, 0) + 1
            maior = max(maior, pontuacao)
            if status == "ATIVO":
                esperas.append(int((agora - enfileirado_em).total_seconds() // 3600))
        return {
            "total": sum(por_status.values()),
            "por_status": por_status,
            "por_espaco": por_espaco,
            "maior_pontuacao": maior,
            "tempo_medio_espera_horas": round(sum(esperas) / len(esperas)) if esperas else 0,
        }

    @staticmethod
    def promover_proximo(
        espaco: EspacoEvento,
        data_inicio: date,
        hora_inicio: str | time,
        hora_fim: str | time,
        *,
        data_fim: date | None = None,
        relogio: Relogio = timezone.now,
    ) -> ReservaTemporaria | None:
        """Promove a melhor entrada que sobrepõe o período liberado.

        Cria para ela uma reserva com TTL novo. Sem candidatos, não faz nada.
        """
        janela = JanelaHorario.de_horarios(data_inicio, hora_inicio, hora_fim)
        liberado = ReservaTemporaria(
            espaco=espaco,
            data_inicio=data_inicio,
            data_fim=data_fim or data_inicio,
            hora_inicio=janela.hora_inicio,
            hora_fim=janela.hora_fim,
        )
        with armazenamento_disponivel("promover_fila"), transaction.atomic():
            espaco = _bloquear_espaco(espaco.pk)
            return FilaEsperaService.promover_sob_lock(espaco, liberado, agora=relogio())

    @staticmethod
    def promover_sob_lock(
        espaco: EspacoEvento,
        liberado: ReservaTemporaria,
        *,
        agora: datetime,
    ) -> ReservaTemporaria | None:
        """Mesma promoção, assumindo o lock do espaço já obtido pelo chamador.

        Candidatos cujo período ainda está disputado por outra reserva ativa
        são pulados (continuam na fila).
        """
        ttl = int(getattr(settings, "RESERVAS_TTL_PROMOCAO_MINUTOS", 0)) or int(
            getattr(settings, "RESERVAS_TTL_PADRAO_MINUTOS", 48 * 60)
        )
        candidatos = FilaEsperaService.candidatos(
            espaco.pk, liberado.data_inicio, liberado.data_fim, liberado.hora_inicio, liberado.hora_fim
        ).select_for_update()
        for entrada in candidatos:
            try:
                reserva = criar_reserva_sob_lock(
                    tenant=entrada.tenant,
                    espaco=espaco,
                    cliente=entrada.cliente,
                    data_inicio=entrada.data_inicio,
                    data_fim=entrada.data_fim,
                    janela=entrada.janela,
                    ttl_minutos=ttl,
                    agora=agora,
                    origem_fila=entrada,
                )
            except exc.ConflitoAgendaError as e:
                logger.debug("Entrada %s pulada na promoção: %s", entrada.pk, e.codigo)
                continue
            entrada.status = "PROMOVIDO"
            entrada.promovido_em = agora
            entrada.save(update_fields=["status", "promovido_em", "updated_at"])
            with contextlib.suppress(Exception):  # pragma: no cover
                FILA_PROMOVIDOS_TOTAL.inc()
            notificar(
                "fila_promovida",
                destinatarios=[entrada.cliente.email],
                titulo="Período disponível para você",
                mensagem=(
                    f"O período {reserva.janela} em {espaco} foi liberado e reservado para você "
                    f"até {reserva.expira_em:%d/%m/%Y %H:%M}."
                ),
                contexto={"reserva_id": reserva.pk, "entrada_id": entrada.pk},
            )
            logger.info("Entrada %s promovida para reserva %s", entrada.pk, reserva.pk)
            return reserva
        return None
