"""Core models do back-office comercial (multi-tenant)."""

from __future__ import annotations

import logging
from typing import Any, ClassVar

from django.contrib.auth.models import AbstractUser, Group, Permission
from django.db import models
from django.utils.translation import gettext_lazy as _

logger = logging.getLogger(__name__)

# ============================================================================
# MODELO BASE PARA TIMESTAMPS
# ============================================================================


class TimestampedModel(models.Model):
    """Modelo abstrato base que adiciona campos de timestamp a todos os modelos."""

    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("Data de criação"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("Data de atualização"))

    class Meta:
        """Opções Meta para TimestampedModel."""

        abstract = True


# ============================================================================
# TENANT
# ============================================================================


class Tenant(TimestampedModel):
    """Empresa/organização no sistema multi-tenant.

    Toda entidade de agenda e reserva pertence a exatamente um tenant.
    """

    STATUS_CHOICES: ClassVar[list[tuple[str, Any]]] = [
        ("active", _("Ativo")),
        ("inactive", _("Inativo")),
        ("suspended", _("Suspenso")),
    ]

    name = models.CharField(
        max_length=100,
        verbose_name=_("Nome Fantasia / Nome de Exibição"),
        help_text=_("Nome que aparecerá no sistema"),
    )
    subdomain = models.CharField(max_length=100, unique=True, verbose_name=_("Subdomínio"))
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="active", verbose_name=_("Status"))
    timezone = models.CharField(
        max_length=64,
        default="America/Sao_Paulo",
        verbose_name=_("Fuso horário"),
        help_text=_("Fuso usado para interpretar datas/horários de reuniões e reservas"),
    )

    class Meta(TimestampedModel.Meta):
        verbose_name = _("empresa")
        verbose_name_plural = _("empresas")
        ordering: ClassVar[list[str]] = ["name"]

    def __str__(self) -> str:
        return self.name

    @property
    def is_active(self) -> bool:  # pragma: no cover
        return self.status == "active"


# ============================================================================
# USUÁRIOS
# ============================================================================


class CustomUser(AbstractUser):
    """Modelo de usuário customizado. Vendedores são usuários internos."""

    phone = models.CharField(max_length=20, blank=True, verbose_name=_("Telefone"))
    is_vendedor = models.BooleanField(default=False, db_index=True, verbose_name=_("É vendedor"))
    groups = models.ManyToManyField(
        Group,
        verbose_name=_("groups"),
        blank=True,
        help_text=_(
            "The groups this user belongs to. A user will get all permissions granted to each of their groups.",
        ),
        related_name="customuser_groups",
        related_query_name="customuser",
    )
    user_permissions = models.ManyToManyField(
        Permission,
        verbose_name=_("user permissions"),
        blank=True,
        help_text=_("Specific permissions for this user."),
        related_name="customuser_permissions",
        related_query_name="customuser",
    )

    class Meta:
        """Opções Meta para CustomUser."""

        verbose_name = _("usuário")
        verbose_name_plural = _("usuários")

    def __str__(self) -> str:
        """Return the string representation of the user."""
        return self.get_full_name() or self.username

    @property
    def tenant(self) -> Tenant | None:
        """Primeiro tenant vinculado ao usuário."""
        first = self.tenant_memberships.select_related("tenant").first()
        return first.tenant if first else None

    def is_admin_do_tenant(self, tenant: Tenant) -> bool:
        if self.is_superuser:
            return True
        return self.tenant_memberships.filter(tenant=tenant, is_tenant_admin=True).exists()


class TenantUser(TimestampedModel):
    """Represents the relationship between a user and a tenant."""

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="tenant_users")
    user = models.ForeignKey(CustomUser, on_delete=models.CASCADE, related_name="tenant_memberships")
    is_tenant_admin = models.BooleanField(default=False, verbose_name=_("É Administrador da Empresa"))
    cargo = models.CharField(max_length=120, blank=True, default="", verbose_name=_("Cargo / Função"))

    class Meta(TimestampedModel.Meta):
        """Opções Meta para TenantUser."""

        unique_together: ClassVar[tuple[str, str]] = ("tenant", "user")
        verbose_name = _("vínculo usuário-empresa")
        verbose_name_plural = _("vínculos usuário-empresa")

    def __str__(self) -> str:
        """Return the string representation of the tenant-user relationship."""
        return f"{self.user.username} em {self.tenant.name}"
