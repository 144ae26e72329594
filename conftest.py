"""Configuração do pytest e fixtures compartilhadas.

Objetivos principais:
- Inicializar o Django para os testes;
- Oferecer tenant, vendedores, clientes, espaço e um relógio controlável.
"""

# ruff: noqa: I001  # import sorting neste arquivo é proposital devido a side-effects do django.setup

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta

import django
import pytest
from django.conf import settings as _settings

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "comercial.settings")

logger = logging.getLogger(__name__)

django.setup()

from django.core.cache import cache  # noqa: E402
from django.utils import timezone  # noqa: E402
from rest_framework.test import APIClient  # noqa: E402

from clientes.models import Cliente  # noqa: E402
from core.models import CustomUser, Tenant, TenantUser  # noqa: E402
from reservas.models import EspacoEvento  # noqa: E402

# Forçar flag de teste (detecção por variável de ambiente ocorre cedo demais)
_settings.TESTING = True


class RelogioFixo:
    """Relógio injetável: ``relogio()`` devolve o instante corrente, ``avancar`` move o tempo."""

    def __init__(self, agora: datetime) -> None:
        self.agora = agora

    def __call__(self) -> datetime:
        return self.agora

    def avancar(self, **kwargs: float) -> datetime:
        self.agora += timedelta(**kwargs)
        return self.agora


@pytest.fixture(autouse=True)
def _limpar_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def tenant(db) -> Tenant:
    return Tenant.objects.create(name="Buffet Alfa", subdomain="alfa")


def _criar_usuario(tenant: Tenant, username: str, *, admin: bool = False) -> CustomUser:
    user = CustomUser.objects.create_user(
        username=username,
        password="x",
        email=f"{username}@alfa.test",
        first_name=username.capitalize(),
        is_vendedor=not admin,
    )
    TenantUser.objects.create(tenant=tenant, user=user, is_tenant_admin=admin)
    return user


@pytest.fixture
def vendedor(tenant) -> CustomUser:
    return _criar_usuario(tenant, "vendedor")


@pytest.fixture
def outro_vendedor(tenant) -> CustomUser:
    return _criar_usuario(tenant, "vendedor2")


@pytest.fixture
def admin_tenant(tenant) -> CustomUser:
    return _criar_usuario(tenant, "gerente", admin=True)


@pytest.fixture
def cliente(tenant) -> Cliente:
    return Cliente.objects.create(tenant=tenant, nome="Maria Noiva", email="maria@cliente.test", origem="google")


@pytest.fixture
def outro_cliente(tenant) -> Cliente:
    return Cliente.objects.create(tenant=tenant, nome="João Formando", email="joao@cliente.test", origem="indicacao")


@pytest.fixture
def clientes_factory(tenant):
    contador = {"n": 0}

    def _factory(**kwargs) -> Cliente:
        contador["n"] += 1
        n = contador["n"]
        dados = {"tenant": tenant, "nome": f"Cliente {n}", "email": f"cliente{n}@fila.test"}
        dados.update(kwargs)
        return Cliente.objects.create(**dados)

    return _factory


@pytest.fixture
def espaco(tenant) -> EspacoEvento:
    return EspacoEvento.objects.create(tenant=tenant, nome="Salão Jardim", cidade="Campinas", capacidade=200)


@pytest.fixture
def outro_tenant(db) -> Tenant:
    return Tenant.objects.create(name="Buffet Beta", subdomain="beta")


@pytest.fixture
def vendedor_beta(outro_tenant) -> CustomUser:
    return _criar_usuario(outro_tenant, "vendedorbeta")


@pytest.fixture
def cliente_beta(outro_tenant) -> Cliente:
    return Cliente.objects.create(tenant=outro_tenant, nome="Carla Beta", email="carla@beta.test")


@pytest.fixture
def espaco_beta(outro_tenant) -> EspacoEvento:
    return EspacoEvento.objects.create(tenant=outro_tenant, nome="Salão Beta", cidade="Santos", capacidade=80)


@pytest.fixture
def relogio() -> RelogioFixo:
    return RelogioFixo(timezone.make_aware(datetime(2025, 3, 10, 9, 0)))


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture
def api_vendedor(api_client, vendedor) -> APIClient:
    api_client.force_authenticate(vendedor)
    return api_client


@pytest.fixture
def api_admin(api_client, admin_tenant) -> APIClient:
    api_client.force_authenticate(admin_tenant)
    return api_client
