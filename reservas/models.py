from __future__ import annotations

from datetime import date, datetime, time

from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from clientes.models import Cliente
from core.models import CustomUser, Tenant, TimestampedModel
from shared.janelas import JanelaHorario, datas_sobrepoem, intervalos_sobrepoem, parse_horario

STATUS_RESERVA = [
    ("ATIVA", "Ativa"),
    ("EXPIRADA", "Expirada"),
    ("CONVERTIDA", "Convertida"),
    ("LIBERADA", "Liberada"),
]
STATUS_RESERVA_TERMINAIS = ("EXPIRADA", "CONVERTIDA", "LIBERADA")

STATUS_FILA = [
    ("ATIVO", "Ativo"),
    ("PROMOVIDO", "Promovido"),
    ("CANCELADO", "Cancelado"),
]


def filtro_sobreposicao(data_inicio: date, data_fim: date, hora_inicio: time, hora_fim: time) -> Q:
    """Q de sobreposição: datas fechadas e horários semiabertos."""
    return Q(data_inicio__lte=data_fim, data_fim__gte=data_inicio, hora_inicio__lt=hora_fim, hora_fim__gt=hora_inicio)


class PeriodoMixin:
    """Período de uso de um espaço: intervalo de datas com janela diária."""

    data_inicio: date
    data_fim: date
    hora_inicio: time
    hora_fim: time

    @property
    def janela(self) -> JanelaHorario:
        return JanelaHorario(self.data_inicio, parse_horario(self.hora_inicio), parse_horario(self.hora_fim))

    def sobrepoe_periodo(self, outro: PeriodoMixin) -> bool:
        if not datas_sobrepoem(self.data_inicio, self.data_fim, outro.data_inicio, outro.data_fim):
            return False
        return intervalos_sobrepoem(
            parse_horario(self.hora_inicio),
            parse_horario(self.hora_fim),
            parse_horario(outro.hora_inicio),
            parse_horario(outro.hora_fim),
        )

    def filtro_sobreposicao(self) -> Q:
        return filtro_sobreposicao(self.data_inicio, self.data_fim, self.hora_inicio, self.hora_fim)


class EspacoEvento(TimestampedModel):
    """Espaço/salão reservável."""

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="espacos_evento")
    nome = models.CharField(max_length=200)
    cidade = models.CharField(max_length=100, blank=True, default="")
    capacidade = models.PositiveIntegerField(null=True, blank=True)
    ativo = models.BooleanField(default=True)

    class Meta:
        verbose_name = _("Espaço de Evento")
        verbose_name_plural = _("Espaços de Evento")
        ordering = ["nome"]

    def __str__(self):
        return self.nome


class ReservaTemporaria(PeriodoMixin, TimestampedModel):
    """Bloqueio temporário de um espaço, com expiração automática.

    ``status`` ATIVA com ``expira_em`` no passado é tratada como EXPIRADA em
    qualquer leitura (``status_efetivo``), mesmo antes da varredura persistir.
    """

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="reservas_temporarias")
    espaco = models.ForeignKey(EspacoEvento, on_delete=models.CASCADE, related_name="reservas_temporarias")
    cliente = models.ForeignKey(Cliente, on_delete=models.CASCADE, related_name="reservas_temporarias")
    vendedor = models.ForeignKey(
        CustomUser, on_delete=models.SET_NULL, null=True, blank=True, related_name="reservas_temporarias"
    )
    data_inicio = models.DateField()
    data_fim = models.DateField()
    hora_inicio = models.TimeField()
    hora_fim = models.TimeField()
    status = models.CharField(max_length=20, choices=STATUS_RESERVA, default="ATIVA")
    expira_em = models.DateTimeField()
    valor_estimado_proposta = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    observacoes = models.TextField(blank=True, default="")
    referencia_conversao = models.CharField(max_length=100, blank=True, default="")
    data_conversao = models.DateTimeField(null=True, blank=True)
    data_liberacao = models.DateTimeField(null=True, blank=True)
    motivo_liberacao = models.TextField(blank=True, default="")
    aviso_expiracao_em = models.DateTimeField(null=True, blank=True)
    origem_fila = models.OneToOneField(
        "EntradaFilaEspera",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reserva_promovida",
    )

    class Meta:
        verbose_name = _("Reserva Temporária")
        verbose_name_plural = _("Reservas Temporárias")
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["espaco", "status", "data_inicio"], name="reserva_espaco_status_data_idx"),
            models.Index(fields=["status", "expira_em"], name="reserva_status_expira_idx"),
        ]

    def __str__(self):
        return f"Reserva #{self.pk} {self.espaco} {self.data_inicio} {self.hora_inicio:%H:%M}-{self.hora_fim:%H:%M}"

    def esta_expirada(self, agora: datetime) -> bool:
        return self.status == "ATIVA" and agora > self.expira_em

    def status_efetivo(self, agora: datetime) -> str:
        return "EXPIRADA" if self.esta_expirada(agora) else self.status

    def segundos_restantes(self, agora: datetime) -> int:
        if self.status_efetivo(agora) != "ATIVA":
            return 0
        return max(0, int((self.expira_em - agora).total_seconds()))


class EntradaFilaEspera(PeriodoMixin, TimestampedModel):
    """Interessado aguardando um período disputado de um espaço.

    Ordem: ``pontuacao`` decrescente, depois ``enfileirado_em`` crescente
    (id como desempate final). Sair da fila é mudança de status.
    """

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="fila_espera")
    espaco = models.ForeignKey(EspacoEvento, on_delete=models.CASCADE, related_name="fila_espera")
    cliente = models.ForeignKey(Cliente, on_delete=models.CASCADE, related_name="entradas_fila")
    data_inicio = models.DateField()
    data_fim = models.DateField()
    hora_inicio = models.TimeField()
    hora_fim = models.TimeField()
    pontuacao = models.FloatField(default=0)
    criterios = models.JSONField(default=dict, blank=True)
    enfileirado_em = models.DateTimeField()
    status = models.CharField(max_length=20, choices=STATUS_FILA, default="ATIVO")
    promovido_em = models.DateTimeField(null=True, blank=True)
    observacoes = models.TextField(blank=True, default="")

    class Meta:
        verbose_name = _("Entrada da Fila de Espera")
        verbose_name_plural = _("Fila de Espera")
        ordering = ["-pontuacao", "enfileirado_em", "id"]
        indexes = [models.Index(fields=["espaco", "status", "data_inicio"], name="fila_espaco_status_data_idx")]

    def __str__(self):
        return f"Fila #{self.pk} {self.cliente} ({self.pontuacao})"
