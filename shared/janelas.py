"""Janelas de horário (TimeWindow) e utilitários de intervalo.

Funções puras, sem dependência de ORM. Horários são representados como minutos
desde 00:00 (``int``) e intervalos seguem semântica semiaberta ``[inicio, fim)``:
janelas que apenas se tocam na borda não se sobrepõem.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, time

from shared.exceptions import JanelaInvalidaError

MINUTOS_POR_DIA = 24 * 60

_HORARIO_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def parse_horario(valor: str | time) -> int:
    """Converte "HH:MM" (ou "HH:MM:SS" / ``datetime.time``) em minutos do dia."""
    if isinstance(valor, time):
        return valor.hour * 60 + valor.minute
    if not isinstance(valor, str):
        msg = f"Horário inválido: {valor!r}"
        raise JanelaInvalidaError(msg)
    m = _HORARIO_RE.match(valor.strip())
    if not m:
        msg = f"Horário inválido: {valor!r}"
        raise JanelaInvalidaError(msg)
    horas, minutos = int(m.group(1)), int(m.group(2))
    if horas > 23 or minutos > 59:  # noqa: PLR2004
        msg = f"Horário fora do intervalo: {valor!r}"
        raise JanelaInvalidaError(msg)
    return horas * 60 + minutos


def formatar_horario(minutos: int) -> str:
    """Inverso de ``parse_horario``: 870 -> "14:30"."""
    if not 0 <= minutos < MINUTOS_POR_DIA:
        msg = f"Minuto do dia inválido: {minutos}"
        raise JanelaInvalidaError(msg)
    return f"{minutos // 60:02d}:{minutos % 60:02d}"


def minutos_para_time(minutos: int) -> time:
    return time(minutos // 60, minutos % 60)


def intervalos_sobrepoem(inicio_a: int, fim_a: int, inicio_b: int, fim_b: int) -> bool:
    """Sobreposição semiaberta de dois intervalos numéricos."""
    return inicio_a < fim_b and inicio_b < fim_a


def datas_sobrepoem(inicio_a: date, fim_a: date, inicio_b: date, fim_b: date) -> bool:
    """Sobreposição de intervalos de datas fechados (ambas as pontas inclusas)."""
    return inicio_a <= fim_b and inicio_b <= fim_a


@dataclass(frozen=True)
class JanelaHorario:
    """Janela de horário imutável dentro de um dia.

    ``data`` pode ser omitida quando a janela descreve um horário recorrente
    (ex.: regra semanal de disponibilidade).
    """

    data: date | None
    inicio: int
    fim: int

    def __post_init__(self) -> None:
        if not (0 <= self.inicio < MINUTOS_POR_DIA and 0 < self.fim <= MINUTOS_POR_DIA):
            msg = f"Janela fora do dia: {self.inicio}-{self.fim}"
            raise JanelaInvalidaError(msg)
        if self.inicio >= self.fim:
            msg = "Horário de início deve ser anterior ao horário de fim"
            raise JanelaInvalidaError(msg)

    @classmethod
    def de_horarios(cls, data: date | None, inicio: str | time, fim: str | time) -> JanelaHorario:
        return cls(data, parse_horario(inicio), parse_horario(fim))

    @property
    def hora_inicio(self) -> time:
        return minutos_para_time(self.inicio)

    @property
    def hora_fim(self) -> time:
        if self.fim == MINUTOS_POR_DIA:
            return time(23, 59)
        return minutos_para_time(self.fim)

    @property
    def duracao(self) -> int:
        return self.fim - self.inicio

    def sobrepoe(self, outra: JanelaHorario) -> bool:
        return sobrepoe(self, outra)

    def contem(self, outra: JanelaHorario) -> bool:
        """True se ``outra`` cabe inteiramente dentro desta janela."""
        return self.inicio <= outra.inicio and outra.fim <= self.fim

    def __str__(self) -> str:
        horario = f"{formatar_horario(self.inicio)}-{formatar_horario(self.fim % MINUTOS_POR_DIA)}"
        return f"{self.data.isoformat()} {horario}" if self.data else horario


def sobrepoe(a: JanelaHorario, b: JanelaHorario) -> bool:
    """True se as janelas se sobrepõem (mesmo dia, quando ambos informados)."""
    if a.data is not None and b.data is not None and a.data != b.data:
        return False
    return intervalos_sobrepoem(a.inicio, a.fim, b.inicio, b.fim)


def duracao_minutos(janela: JanelaHorario) -> int:
    return janela.fim - janela.inicio
