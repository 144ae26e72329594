"""Detecção de conflitos de agenda de vendedores.

``ConflictDetector.validar_agendamento`` é uma leitura pura: decide se a
janela pedida é legal dados bloqueios, reuniões ativas e (opcionalmente) as
regras semanais de disponibilidade. Quem persiste deve revalidar sob o lock do
vendedor imediatamente antes da escrita (ver ``services.ReuniaoService``).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, time, timedelta
from typing import Any

from django.conf import settings

from shared import exceptions as exc
from shared.janelas import JanelaHorario, formatar_horario, parse_horario

from .disponibilidade import BloqueioDia, DisponibilidadeService, RegraDia
from .models import STATUS_ATIVOS, Reuniao

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResultadoValidacao:
    valido: bool
    motivo: str | None = None
    entidade_conflitante: dict[str, Any] | None = None
    mensagem: str = ""

    def levantar(self) -> None:
        """Converte um resultado inválido na exceção correspondente."""
        if self.valido:
            return
        if self.motivo == exc.INVALID_WINDOW:
            raise exc.JanelaInvalidaError(self.mensagem)
        raise exc.ConflitoAgendaError(
            self.mensagem,
            codigo=self.motivo,
            entidade_conflitante=self.entidade_conflitante,
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "valido": self.valido,
            "motivo": self.motivo,
            "entidade_conflitante": self.entidade_conflitante,
            "mensagem": self.mensagem,
        }


VALIDO = ResultadoValidacao(valido=True)


@dataclass
class _AgendaDoDia:
    """Ocupação de um vendedor em uma data, carregada uma única vez."""

    bloqueios: list[BloqueioDia] = field(default_factory=list)
    reunioes: list[tuple[int, JanelaHorario]] = field(default_factory=list)
    regras: list[RegraDia] = field(default_factory=list)


def _carregar_agenda(vendedor_id: int, data: date, excluir_reuniao_id: int | None = None) -> _AgendaDoDia:
    qs = Reuniao.objects.filter(vendedor_id=vendedor_id, data=data, status__in=STATUS_ATIVOS)
    if excluir_reuniao_id:
        qs = qs.exclude(pk=excluir_reuniao_id)
    reunioes = [
        (rid, JanelaHorario(data, parse_horario(hi), parse_horario(hf)))
        for rid, hi, hf in qs.order_by("hora_inicio", "id").values_list("id", "hora_inicio", "hora_fim")
    ]
    return _AgendaDoDia(
        bloqueios=DisponibilidadeService.bloqueios_na_data(vendedor_id, data),
        reunioes=reunioes,
        regras=DisponibilidadeService.regras_na_data(vendedor_id, data),
    )


def _exige_disponibilidade(valor: bool | None) -> bool:
    if valor is not None:
        return valor
    return bool(getattr(settings, "AGENDAMENTOS_EXIGIR_DISPONIBILIDADE", False))


def _avaliar(
    agenda: _AgendaDoDia,
    janela: JanelaHorario,
    *,
    cidade: str | None,
    canal: str | None,
    exigir_disponibilidade: bool,
) -> ResultadoValidacao:
    for bloqueio in agenda.bloqueios:
        if bloqueio.dia_inteiro or bloqueio.janela.sobrepoe(janela):
            return ResultadoValidacao(
                valido=False,
                motivo=exc.BLOCKED_PERIOD,
                entidade_conflitante={"tipo": "bloqueio", "id": bloqueio.id},
                mensagem="Vendedor possui bloqueio de agenda neste horário",
            )
    for reuniao_id, outra in agenda.reunioes:
        if outra.sobrepoe(janela):
            return ResultadoValidacao(
                valido=False,
                motivo=exc.MEETING_CONFLICT,
                entidade_conflitante={"tipo": "reuniao", "id": reuniao_id},
                mensagem=f"Conflito com a reunião #{reuniao_id} ({outra})",
            )
    if exigir_disponibilidade and agenda.regras:
        aplicaveis = [r for r in agenda.regras if r.atende(cidade, canal)]
        if not any(r.janela.contem(janela) for r in aplicaveis):
            return ResultadoValidacao(
                valido=False,
                motivo=exc.OUTSIDE_AVAILABILITY,
                mensagem="Horário fora da disponibilidade cadastrada do vendedor",
            )
    return VALIDO


class ConflictDetector:
    """Validação de janelas e sugestão de horários livres."""

    @staticmethod
    def validar_agendamento(  # noqa: PLR0913
        vendedor_id: int,
        data: date,
        inicio: str | time | int,
        fim: str | time | int,
        *,
        excluir_reuniao_id: int | None = None,
        cidade: str | None = None,
        canal: str | None = None,
        exigir_disponibilidade: bool | None = None,
    ) -> ResultadoValidacao:
        """Decide se ``[inicio, fim)`` é legal para o vendedor na data."""
        try:
            ini = inicio if isinstance(inicio, int) else parse_horario(inicio)
            fi = fim if isinstance(fim, int) else parse_horario(fim)
            janela = JanelaHorario(data, ini, fi)
        except exc.JanelaInvalidaError as e:
            return ResultadoValidacao(valido=False, motivo=exc.INVALID_WINDOW, mensagem=str(e))
        agenda = _carregar_agenda(vendedor_id, data, excluir_reuniao_id)
        return _avaliar(
            agenda,
            janela,
            cidade=cidade,
            canal=canal,
            exigir_disponibilidade=_exige_disponibilidade(exigir_disponibilidade),
        )

    @staticmethod
    def sugerir_horarios(  # noqa: PLR0913
        vendedor_id: int,
        data: date,
        duracao_minutos: int = 60,
        *,
        limite: int = 5,
        passo_minutos: int = 30,
        cidade: str | None = None,
        canal: str | None = None,
        a_partir_de: int | None = None,
    ) -> list[JanelaHorario]:
        """Janelas livres do dia, em passos fixos, até ``limite`` sugestões.

        Usa as regras do vendedor como base quando houver regras no dia; caso
        contrário o horário comercial configurado. ``a_partir_de`` (minuto do dia) descarta
        horários já passados.
        """
        if duracao_minutos <= 0 or passo_minutos <= 0:
            msg = "Duração e passo devem ser positivos"
            raise exc.JanelaInvalidaError(msg)
        agenda = _carregar_agenda(vendedor_id, data)
        if agenda.regras:
            # Com regras no dia, só elas valem, mesmo que nenhuma atenda cidade/canal
            bases = [r.janela for r in agenda.regras if r.atende(cidade, canal)]
        else:
            bases = [
                JanelaHorario.de_horarios(
                    None,
                    getattr(settings, "AGENDAMENTOS_HORARIO_COMERCIAL_INICIO", "08:00"),
                    getattr(settings, "AGENDAMENTOS_HORARIO_COMERCIAL_FIM", "18:00"),
                )
            ]
        vistos: set[int] = set()
        sugestoes: list[JanelaHorario] = []
        for base in sorted(bases, key=lambda j: j.inicio):
            ini = base.inicio
            while ini + duracao_minutos <= base.fim and len(sugestoes) < limite:
                if ini not in vistos and (a_partir_de is None or ini >= a_partir_de):
                    candidata = JanelaHorario(data, ini, ini + duracao_minutos)
                    # candidatas já nascem dentro de uma regra: não reavalia disponibilidade
                    if _avaliar(agenda, candidata, cidade=cidade, canal=canal, exigir_disponibilidade=False).valido:
                        sugestoes.append(candidata)
                        vistos.add(ini)
                ini += passo_minutos
        return sugestoes

    @staticmethod
    def detectar_conflitos_existentes(
        *,
        desde: date,
        dias: int = 30,
        tenant_id: int | None = None,
    ) -> list[dict[str, Any]]:
        """Varre reuniões ativas já gravadas à procura de sobreposições.

        Cobre dados legados ou importados que não passaram pela validação.
        Retorna um item por par conflitante.
        """
        ate = desde + timedelta(days=dias)
        qs = Reuniao.objects.filter(status__in=STATUS_ATIVOS, data__gte=desde, data__lt=ate)
        if tenant_id:
            qs = qs.filter(tenant_id=tenant_id)
        grupos: dict[tuple[int, date], list[tuple[int, JanelaHorario]]] = defaultdict(list)
        for rid, vid, dia, hi, hf in qs.order_by("vendedor_id", "data", "hora_inicio", "id").values_list(
            "id", "vendedor_id", "data", "hora_inicio", "hora_fim"
        ):
            grupos[(vid, dia)].append((rid, JanelaHorario(dia, parse_horario(hi), parse_horario(hf))))
        conflitos: list[dict[str, Any]] = []
        for (vid, dia), itens in grupos.items():
            for i, (id_a, jan_a) in enumerate(itens):
                for id_b, jan_b in itens[i + 1 :]:
                    if jan_b.inicio >= jan_a.fim:
                        break  # ordenado por início
                    conflitos.append(
                        {
                            "vendedor_id": vid,
                            "data": dia,
                            "reunioes": [id_a, id_b],
                            "horarios": [
                                f"{formatar_horario(jan_a.inicio)}-{formatar_horario(jan_a.fim)}",
                                f"{formatar_horario(jan_b.inicio)}-{formatar_horario(jan_b.fim)}",
                            ],
                        }
                    )
        if conflitos:
            logger.warning("%s conflito(s) de agenda detectado(s) a partir de %s", len(conflitos), desde)
        return conflitos
