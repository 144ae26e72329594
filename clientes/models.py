"""Clientes (leads e contratantes) do back-office comercial."""

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.models import Tenant, TimestampedModel

ORIGEM_CLIENTE = [
    ("indicacao", _("Indicação")),
    ("google", _("Google")),
    ("facebook", _("Facebook")),
    ("instagram", _("Instagram")),
    ("site", _("Site")),
    ("outro", _("Outro")),
]


class Cliente(TimestampedModel):
    """Cliente (Pessoa Física ou Jurídica) associado a um tenant.

    Participa de reuniões de venda, detém reservas temporárias de espaços e
    ocupa posições na fila de espera.
    """

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        verbose_name=_("Empresa (Tenant)"),
        related_name="clientes",
    )
    TIPO_CHOICES = (("PF", _("Pessoa Física")), ("PJ", _("Pessoa Jurídica")))
    tipo = models.CharField(max_length=2, choices=TIPO_CHOICES, verbose_name=_("Tipo de Cliente"), default="PF")
    STATUS_CHOICES = (("active", _("Ativo")), ("inactive", _("Inativo")), ("suspended", _("Suspenso")))
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="active", verbose_name=_("Status"))
    nome = models.CharField(max_length=200, verbose_name=_("Nome / Razão Social"))
    email = models.EmailField(verbose_name=_("E-mail Principal"), max_length=254, blank=True, null=True)
    telefone = models.CharField(max_length=20, verbose_name=_("Telefone Principal"), blank=True, null=True)
    cidade = models.CharField(max_length=100, verbose_name=_("Cidade"), blank=True, null=True)
    origem = models.CharField(
        max_length=20,
        choices=ORIGEM_CLIENTE,
        default="outro",
        verbose_name=_("Origem do Lead"),
    )
    data_cadastro = models.DateField(default=timezone.localdate, verbose_name=_("Data de Cadastro"))
    observacoes = models.TextField(blank=True, null=True, verbose_name=_("Observações"))

    class Meta:
        """Metadados de ordenação e unicidade do Cliente."""

        verbose_name = _("Cliente")
        verbose_name_plural = _("Clientes")
        unique_together = (("tenant", "email"),)
        ordering = ("-id",)

    def __str__(self) -> str:
        return self.nome
