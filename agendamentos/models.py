from __future__ import annotations

from datetime import date

from django.db import models
from django.utils.translation import gettext_lazy as _

from clientes.models import Cliente
from core.models import CustomUser, Tenant, TimestampedModel
from shared.janelas import JanelaHorario, datas_sobrepoem, parse_horario

# dia_semana segue a convenção domingo=0 ... sábado=6
DIAS_SEMANA = [
    (0, "Domingo"),
    (1, "Segunda-feira"),
    (2, "Terça-feira"),
    (3, "Quarta-feira"),
    (4, "Quinta-feira"),
    (5, "Sexta-feira"),
    (6, "Sábado"),
]

CANAL_REUNIAO = [
    ("presencial", "Presencial"),
    ("virtual", "Virtual"),
]

STATUS_REUNIAO = [
    ("AGENDADA", "Agendada"),
    ("CONFIRMADA", "Confirmada"),
    ("REAGENDADA", "Reagendada"),
    ("CANCELADA", "Cancelada"),
    ("CONCLUIDA", "Concluída"),
]
# Status que ocupam a agenda do vendedor
STATUS_ATIVOS = ("AGENDADA", "CONFIRMADA", "REAGENDADA")
STATUS_TERMINAIS = ("CANCELADA", "CONCLUIDA")

TIPO_BLOQUEIO = [
    ("ferias", "Férias"),
    ("folga", "Folga"),
    ("evento", "Evento"),
    ("outro", "Outro"),
]

RESULTADO_REUNIAO = [
    ("SUCESSO", "Sucesso"),
    ("CONVERSAO", "Conversão"),
    ("SEM_INTERESSE", "Sem interesse"),
    ("FOLLOW_UP", "Follow-up"),
    ("PROPOSTA_ENVIADA", "Proposta enviada"),
]


def dia_semana_de(data: date) -> int:
    """Dia da semana com domingo=0."""
    return data.isoweekday() % 7


class DisponibilidadeVendedor(TimestampedModel):
    """Janela semanal recorrente em que o vendedor atende.

    ``cidade``/``canal`` vazios valem para qualquer cidade/canal.
    """

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="disponibilidades_vendedor")
    vendedor = models.ForeignKey(CustomUser, on_delete=models.CASCADE, related_name="disponibilidades")
    dia_semana = models.PositiveSmallIntegerField(choices=DIAS_SEMANA)
    hora_inicio = models.TimeField()
    hora_fim = models.TimeField()
    cidade = models.CharField(max_length=100, blank=True, default="")
    canal = models.CharField(max_length=20, choices=CANAL_REUNIAO, blank=True, default="")
    ativo = models.BooleanField(default=True)

    class Meta:
        verbose_name = "Disponibilidade do Vendedor"
        verbose_name_plural = "Disponibilidades dos Vendedores"
        ordering = ["vendedor", "dia_semana", "hora_inicio"]
        indexes = [models.Index(fields=["tenant", "vendedor", "dia_semana"], name="disp_tenant_vend_dia_idx")]

    def __str__(self):
        return f"{self.vendedor} {self.get_dia_semana_display()} {self.hora_inicio:%H:%M}-{self.hora_fim:%H:%M}"

    @property
    def janela(self) -> JanelaHorario:
        return JanelaHorario(None, parse_horario(self.hora_inicio), parse_horario(self.hora_fim))


class BloqueioVendedor(TimestampedModel):
    """Período de indisponibilidade do vendedor (férias, folga...).

    Sem horários definidos bloqueia os dias inteiros. Nunca é apagado:
    desativação preserva o histórico.
    """

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="bloqueios_vendedor")
    vendedor = models.ForeignKey(CustomUser, on_delete=models.CASCADE, related_name="bloqueios")
    data_inicio = models.DateField()
    data_fim = models.DateField()
    hora_inicio = models.TimeField(null=True, blank=True)
    hora_fim = models.TimeField(null=True, blank=True)
    tipo = models.CharField(max_length=20, choices=TIPO_BLOQUEIO, default="outro")
    motivo = models.TextField(blank=True, default="")
    ativo = models.BooleanField(default=True)
    criado_por = models.ForeignKey(
        CustomUser, on_delete=models.SET_NULL, null=True, blank=True, related_name="bloqueios_criados"
    )

    class Meta:
        verbose_name = "Bloqueio de Agenda"
        verbose_name_plural = "Bloqueios de Agenda"
        ordering = ["-data_inicio"]
        indexes = [
            models.Index(fields=["tenant", "vendedor", "data_inicio", "data_fim"], name="bloqueio_tenant_vend_data_idx"),
        ]

    def __str__(self):
        return f"Bloqueio {self.vendedor} {self.data_inicio}..{self.data_fim}"

    @property
    def dia_inteiro(self) -> bool:
        return self.hora_inicio is None or self.hora_fim is None

    @property
    def janela(self) -> JanelaHorario | None:
        if self.dia_inteiro:
            return None
        return JanelaHorario(None, parse_horario(self.hora_inicio), parse_horario(self.hora_fim))

    def sobrepoe_bloqueio(self, outro: BloqueioVendedor) -> bool:
        if not datas_sobrepoem(self.data_inicio, self.data_fim, outro.data_inicio, outro.data_fim):
            return False
        if self.dia_inteiro or outro.dia_inteiro:
            return True
        return self.janela.sobrepoe(outro.janela)


class Reuniao(TimestampedModel):
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="reunioes")
    vendedor = models.ForeignKey(CustomUser, on_delete=models.CASCADE, related_name="reunioes_vendedor")
    cliente = models.ForeignKey(Cliente, on_delete=models.CASCADE, related_name="reunioes")
    titulo = models.CharField(max_length=200, blank=True, default="")
    data = models.DateField()
    hora_inicio = models.TimeField()
    hora_fim = models.TimeField()
    status = models.CharField(max_length=20, choices=STATUS_REUNIAO, default="AGENDADA")
    cidade = models.CharField(max_length=100, blank=True, default="")
    canal = models.CharField(max_length=20, choices=CANAL_REUNIAO, blank=True, default="")
    confirmada_cliente = models.BooleanField(default=False)
    confirmada_vendedor = models.BooleanField(default=False)
    observacoes = models.TextField(blank=True, default="")
    motivo_cancelamento = models.TextField(blank=True, default="")
    cancelada_em = models.DateTimeField(null=True, blank=True)
    # Reserva temporária que originou a reunião (quando houver)
    reserva_temporaria = models.ForeignKey(
        "reservas.ReservaTemporaria",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reunioes",
    )

    class Meta:
        verbose_name = "Reunião"
        verbose_name_plural = "Reuniões"
        ordering = ["data", "hora_inicio", "id"]
        indexes = [
            models.Index(fields=["tenant", "vendedor", "data"], name="reuniao_tenant_vend_data_idx"),
            models.Index(fields=["tenant", "cliente", "data"], name="reuniao_tenant_cli_data_idx"),
            models.Index(fields=["tenant", "status"], name="reuniao_tenant_status_idx"),
        ]

    def __str__(self):
        return f"Reunião #{self.pk} {self.vendedor} {self.janela}"

    @property
    def janela(self) -> JanelaHorario:
        return JanelaHorario(self.data, parse_horario(self.hora_inicio), parse_horario(self.hora_fim))

    @property
    def mutuamente_confirmada(self) -> bool:
        return self.confirmada_cliente and self.confirmada_vendedor

    @property
    def ativa(self) -> bool:
        return self.status in STATUS_ATIVOS


class ResultadoReuniao(TimestampedModel):
    """Desfecho registrado na conclusão da reunião (consumido por relatórios)."""

    reuniao = models.OneToOneField(Reuniao, on_delete=models.CASCADE, related_name="resultado")
    resultado = models.CharField(max_length=20, choices=RESULTADO_REUNIAO)
    valor_estimado_negocio = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    proximos_passos = models.TextField(blank=True, default="")
    data_follow_up = models.DateField(null=True, blank=True)
    observacoes = models.TextField(blank=True, default="")

    class Meta:
        verbose_name = _("Resultado de Reunião")
        verbose_name_plural = _("Resultados de Reuniões")

    def __str__(self):
        return f"{self.reuniao_id}: {self.resultado}"


class HistoricoReuniao(TimestampedModel):
    reuniao = models.ForeignKey(Reuniao, on_delete=models.CASCADE, related_name="historico")
    user = models.ForeignKey(CustomUser, on_delete=models.SET_NULL, null=True, blank=True)
    tipo_evento = models.CharField(max_length=30)
    de_status = models.CharField(max_length=20, blank=True, null=True)
    para_status = models.CharField(max_length=20, blank=True, null=True)
    motivo = models.TextField(blank=True, null=True)
    diff = models.JSONField(blank=True, null=True)

    class Meta:
        verbose_name = "Histórico de Reunião"
        verbose_name_plural = "Históricos de Reunião"
        ordering = ["-created_at", "-id"]
