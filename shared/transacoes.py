"""Tradução de falhas transitórias do banco para ``STORE_UNAVAILABLE``."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from django.db import InterfaceError, OperationalError

from shared.exceptions import ArmazenamentoIndisponivelError

logger = logging.getLogger(__name__)


@contextmanager
def armazenamento_disponivel(operacao: str) -> Iterator[None]:
    """Converte ``OperationalError``/``InterfaceError`` em erro tipado.

    Erros de integridade e demais falhas seguem propagando como estão.
    """
    try:
        yield
    except (OperationalError, InterfaceError) as e:
        logger.warning("Banco indisponível durante '%s': %s", operacao, e)
        msg = "Armazenamento indisponível, tente novamente"
        raise ArmazenamentoIndisponivelError(msg) from e
