"""Despacho de notificações (fire-and-forget).

O dispatcher concreto é resolvido por ``settings.NOTIFICACOES_DISPATCHER``
(caminho pontuado). O padrão envia e-mail pelo backend configurado no Django.
Falhas de entrega são registradas em log e nunca propagadas ao chamador, nem
desfazem a operação de agenda que originou a notificação.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class Dispatcher(Protocol):
    """Interface mínima de um dispatcher de notificações."""

    def enviar(  # noqa: D102
        self,
        *,
        evento: str,
        destinatarios: list[str],
        titulo: str,
        mensagem: str,
        contexto: dict[str, Any],
    ) -> None: ...


class EmailDispatcher:
    """Envia a notificação como e-mail texto simples."""

    def enviar(
        self,
        *,
        evento: str,
        destinatarios: list[str],
        titulo: str,
        mensagem: str,
        contexto: dict[str, Any],
    ) -> None:
        del evento, contexto
        if not destinatarios:
            return
        send_mail(
            subject=titulo,
            message=mensagem,
            from_email=getattr(settings, "DEFAULT_FROM_EMAIL", None),
            recipient_list=destinatarios,
            fail_silently=False,
        )


class LogDispatcher:
    """Apenas registra o evento; útil em desenvolvimento."""

    def enviar(
        self,
        *,
        evento: str,
        destinatarios: list[str],
        titulo: str,
        mensagem: str,
        contexto: dict[str, Any],
    ) -> None:
        logger.info("[notificacao] %s -> %s: %s | %s %s", evento, destinatarios, titulo, mensagem, contexto)


def get_dispatcher() -> Dispatcher:
    caminho = getattr(settings, "NOTIFICACOES_DISPATCHER", "shared.notificacoes.EmailDispatcher")
    return import_string(caminho)()


def _despachar_agora(evento: str, destinatarios: list[str], titulo: str, mensagem: str, contexto: dict) -> None:
    try:
        get_dispatcher().enviar(
            evento=evento,
            destinatarios=destinatarios,
            titulo=titulo,
            mensagem=mensagem,
            contexto=contexto,
        )
    except Exception:  # noqa: BLE001 - entrega nunca derruba a operação de origem
        logger.exception("Falha ao despachar notificação '%s' para %s", evento, destinatarios)


def notificar(
    evento: str,
    *,
    destinatarios: list[str | None],
    titulo: str,
    mensagem: str,
    contexto: dict[str, Any] | None = None,
) -> None:
    """Agenda o envio para depois do commit da transação corrente.

    Fora de transação o ``on_commit`` executa imediatamente.
    """
    if not getattr(settings, "ENABLE_NOTIFICATIONS", True):
        return
    emails = sorted({d for d in destinatarios if d})
    ctx = dict(contexto or {})
    transaction.on_commit(lambda: _despachar_agora(evento, emails, titulo, mensagem, ctx))
