"""Exceções de regra de negócio compartilhadas entre agendamentos e reservas."""

from __future__ import annotations

# Códigos estáveis expostos pela API (campo ``codigo``)
INVALID_WINDOW = "INVALID_WINDOW"
BLOCKED_PERIOD = "BLOCKED_PERIOD"
MEETING_CONFLICT = "MEETING_CONFLICT"
OUTSIDE_AVAILABILITY = "OUTSIDE_AVAILABILITY"
RESOURCE_CONTENDED = "RESOURCE_CONTENDED"
EXPIRED = "EXPIRED"
NOT_FOUND = "NOT_FOUND"
INVALID_TRANSITION = "INVALID_TRANSITION"
AVAILABILITY_OVERLAP = "AVAILABILITY_OVERLAP"
BLOCK_OVERLAP = "BLOCK_OVERLAP"
DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
INVALID_VALUE = "INVALID_VALUE"
STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


class NegocioError(Exception):
    """Erro de regra de negócio genérico."""

    pass


class AgendaError(NegocioError):
    """Base das rejeições de agenda/reserva, com código e entidade conflitante."""

    codigo = "AGENDA_ERROR"

    def __init__(
        self,
        mensagem: str,
        *,
        codigo: str | None = None,
        entidade_conflitante: dict | None = None,
    ) -> None:
        self.mensagem = mensagem
        if codigo:
            self.codigo = codigo
        # {"tipo": "reuniao" | "bloqueio" | "reserva", "id": <pk>}
        self.entidade_conflitante = entidade_conflitante
        super().__init__(mensagem)

    def as_dict(self) -> dict:
        return {
            "detail": self.mensagem,
            "codigo": self.codigo,
            "entidade_conflitante": self.entidade_conflitante,
        }


class JanelaInvalidaError(AgendaError):
    codigo = INVALID_WINDOW


class ConflitoAgendaError(AgendaError):
    """Conflito de agenda (bloqueio, reunião, disponibilidade ou recurso disputado)."""

    codigo = MEETING_CONFLICT


class ValorInvalidoError(AgendaError):
    """Parâmetro numérico fora do domínio (TTL, pontuação, minutos)."""

    codigo = INVALID_VALUE


class ReservaExpiradaError(AgendaError):
    codigo = EXPIRED


class TransicaoInvalidaError(AgendaError):
    codigo = INVALID_TRANSITION


class NaoEncontradoError(AgendaError):
    codigo = NOT_FOUND


class ArmazenamentoIndisponivelError(AgendaError):
    """Falha transitória do banco; seguro repetir com backoff pelo chamador."""

    codigo = STORE_UNAVAILABLE
