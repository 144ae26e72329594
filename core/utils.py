"""Utilitários e funções auxiliares para a aplicação core."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from django.http import HttpRequest

from .models import Tenant, TenantUser

logger = logging.getLogger(__name__)


def _get_tenant_id_from_session(request: HttpRequest) -> int | None:
    """Obtém o ID do tenant da sessão, do header ``X-Tenant-ID`` ou dos cookies."""
    tenant_id = request.session.get("tenant_id")
    if tenant_id:
        return int(tenant_id)

    try:
        bruto = request.headers.get("X-Tenant-ID") or request.COOKIES.get("current_tenant_id")
        if bruto:
            return int(bruto)
    except (AttributeError, TypeError, ValueError):
        logger.warning("Could not read a valid tenant_id from headers/cookies.")

    return None


def _get_tenant_from_user_fallback(request: HttpRequest) -> int | None:
    """Tenta obter o tenant como fallback a partir do usuário autenticado."""
    user = getattr(request, "user", None)
    if not (user and user.is_authenticated):
        return None
    if hasattr(user, "tenant_memberships"):
        tenants = list(user.tenant_memberships.values_list("tenant_id", flat=True)[:2])
        if len(tenants) == 1:
            return tenants[0]
    return None


def usuario_pertence_ao_tenant(user, tenant_id: int) -> bool:
    """Superusuário acessa qualquer tenant; demais precisam de vínculo ``TenantUser``."""
    if not (user and user.is_authenticated):
        return False
    if user.is_superuser:
        return True
    return TenantUser.objects.filter(user=user, tenant_id=tenant_id).exists()


def get_current_tenant(request: HttpRequest) -> Tenant | None:
    """Obtém o tenant (empresa) atual a partir da sessão do usuário.

    O tenant só é resolvido quando o usuário autenticado tem vínculo com ele.
    Utiliza um cache no objeto request para evitar múltiplas buscas no banco de dados.
    """
    if hasattr(request, "_cached_tenant"):
        return request._cached_tenant  # noqa: SLF001

    if not hasattr(request, "session"):
        # Em alguns contextos (como testes de API), a sessão pode não existir.
        request.session = {}

    tenant_id = _get_tenant_id_from_session(request)
    if not tenant_id:
        tenant_id = _get_tenant_from_user_fallback(request)

    if not tenant_id:
        request._cached_tenant = None  # noqa: SLF001
        return None

    if not usuario_pertence_ao_tenant(getattr(request, "user", None), tenant_id):
        logger.warning("Usuário %s sem vínculo com o tenant %s", getattr(request, "user", None), tenant_id)
        request.session.pop("tenant_id", None)
        request._cached_tenant = None  # noqa: SLF001
        return None

    try:
        tenant = Tenant.objects.get(id=tenant_id, status="active")
    except Tenant.DoesNotExist:
        request.session.pop("tenant_id", None)
        request._cached_tenant = None  # noqa: SLF001
        return None
    else:
        request.session["tenant_id"] = tenant.id
        request._cached_tenant = tenant  # noqa: SLF001
        return tenant
