"""Integração das exceções de agenda com o Django REST Framework."""

from __future__ import annotations

import logging
from typing import Any

from django.db import InterfaceError, OperationalError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from shared import exceptions as exc_mod
from shared.exceptions import AgendaError, ArmazenamentoIndisponivelError

logger = logging.getLogger(__name__)

STATUS_POR_CODIGO = {
    exc_mod.INVALID_WINDOW: status.HTTP_400_BAD_REQUEST,
    exc_mod.INVALID_TRANSITION: status.HTTP_400_BAD_REQUEST,
    exc_mod.INVALID_VALUE: status.HTTP_400_BAD_REQUEST,
    exc_mod.BLOCKED_PERIOD: status.HTTP_409_CONFLICT,
    exc_mod.MEETING_CONFLICT: status.HTTP_409_CONFLICT,
    exc_mod.OUTSIDE_AVAILABILITY: status.HTTP_409_CONFLICT,
    exc_mod.RESOURCE_CONTENDED: status.HTTP_409_CONFLICT,
    exc_mod.EXPIRED: status.HTTP_409_CONFLICT,
    exc_mod.AVAILABILITY_OVERLAP: status.HTTP_409_CONFLICT,
    exc_mod.BLOCK_OVERLAP: status.HTTP_409_CONFLICT,
    exc_mod.DUPLICATE_ENTRY: status.HTTP_409_CONFLICT,
    exc_mod.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    exc_mod.STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def resposta_erro(erro: AgendaError) -> Response:
    return Response(erro.as_dict(), status=STATUS_POR_CODIGO.get(erro.codigo, status.HTTP_400_BAD_REQUEST))


def exception_handler(exc: Exception, context: dict[str, Any]) -> Response | None:
    """Handler global: traduz ``AgendaError`` e falhas de banco para JSON."""
    if isinstance(exc, (OperationalError, InterfaceError)):
        logger.warning("Banco indisponível em %s: %s", context.get("view"), exc)
        exc = ArmazenamentoIndisponivelError("Armazenamento indisponível, tente novamente")
    if isinstance(exc, AgendaError):
        return resposta_erro(exc)
    return drf_exception_handler(exc, context)
