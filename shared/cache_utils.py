"""Utils de cache resilientes.

Versionamento cooperativo de chaves: leitores compõem a chave com a versão
corrente e escritores apenas avançam a versão, deixando as entradas antigas
expirarem pelo TTL.
"""

from __future__ import annotations

import contextlib
import time
from collections.abc import Callable
from typing import Any, TypeVar

from django.core.cache import cache

T = TypeVar("T")

_RETENCAO_VERSAO = 86400  # 1 dia


def get_versao(chave: str) -> str:
    """Obtém a versão corrente de ``chave``, criando se ausente."""
    v = cache.get(chave)
    if not v:
        v = str(time.time())
        with contextlib.suppress(Exception):
            cache.set(chave, v, _RETENCAO_VERSAO)
    return v


def bump_versao(chave: str) -> None:
    with contextlib.suppress(Exception):
        cache.set(chave, f"{time.time()}:{time.perf_counter_ns()}", _RETENCAO_VERSAO)


def get_or_set(chave: str, ttl: int, fabrica: Callable[[], T]) -> T:
    """Lê do cache ou calcula via ``fabrica``; backend indisponível não é fatal."""
    sentinela: Any = object()
    valor = sentinela
    with contextlib.suppress(Exception):
        valor = cache.get(chave, sentinela)
    if valor is sentinela:
        valor = fabrica()
        with contextlib.suppress(Exception):
            cache.set(chave, valor, ttl)
    return valor
