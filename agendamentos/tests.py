from datetime import date

from django.test import TestCase, override_settings

from clientes.models import Cliente
from core.models import CustomUser, Tenant, TenantUser
from shared import exceptions as exc

from .disponibilidade import DisponibilidadeService
from .services import (
    REUNIOES_AGENDADAS_TOTAL,
    REUNIOES_CANCELADAS_TOTAL,
    REUNIOES_CONFLITOS_TOTAL,
    SchedulingService,
)


def _valor(metrica):
    return metrica._value.get()  # noqa: SLF001


class SchedulingMetricasTest(TestCase):
    def setUp(self):
        self.tenant = Tenant.objects.create(name="T1", subdomain="t1")
        self.vendedor = CustomUser.objects.create_user(username="vend", password="x", is_vendedor=True)
        TenantUser.objects.create(tenant=self.tenant, user=self.vendedor)
        self.cliente = Cliente.objects.create(tenant=self.tenant, nome="Cliente 1")
        self.dia = date(2025, 5, 6)  # terça-feira

    def _agendar(self, inicio, fim):
        return SchedulingService.agendar_reuniao(
            tenant=self.tenant,
            vendedor=self.vendedor,
            cliente=self.cliente,
            data=self.dia,
            hora_inicio=inicio,
            hora_fim=fim,
        )

    def test_agendar_incrementa_contador(self):
        antes = _valor(REUNIOES_AGENDADAS_TOTAL)
        self._agendar("10:00", "11:00")
        self.assertEqual(_valor(REUNIOES_AGENDADAS_TOTAL), antes + 1)

    def test_conflito_contado_por_motivo(self):
        self._agendar("10:00", "11:00")
        rotulo = REUNIOES_CONFLITOS_TOTAL.labels(motivo=exc.MEETING_CONFLICT)
        antes = _valor(rotulo)
        with self.assertRaises(exc.ConflitoAgendaError):
            self._agendar("10:30", "11:30")
        self.assertEqual(_valor(rotulo), antes + 1)

    def test_validacao_dry_run_conta_rejeicao(self):
        DisponibilidadeService.criar_bloqueio(tenant=self.tenant, vendedor=self.vendedor, data_inicio=self.dia)
        rotulo = REUNIOES_CONFLITOS_TOTAL.labels(motivo=exc.BLOCKED_PERIOD)
        antes = _valor(rotulo)
        resultado = SchedulingService.validar_agendamento(self.vendedor.pk, self.dia, "09:00", "10:00")
        self.assertFalse(resultado.valido)
        self.assertEqual(_valor(rotulo), antes + 1)

    def test_cancelar_incrementa_contador(self):
        reuniao = self._agendar("10:00", "11:00")
        antes = _valor(REUNIOES_CANCELADAS_TOTAL)
        SchedulingService.cancelar_reuniao(reuniao, motivo="remarcar")
        self.assertEqual(_valor(REUNIOES_CANCELADAS_TOTAL), antes + 1)

    @override_settings(AGENDAMENTOS_EXIGIR_DISPONIBILIDADE=True)
    def test_reagendar_fora_da_disponibilidade(self):
        DisponibilidadeService.criar_regra(
            tenant=self.tenant, vendedor=self.vendedor, dia_semana=2, hora_inicio="09:00", hora_fim="12:00"
        )
        reuniao = self._agendar("10:00", "11:00")
        with self.assertRaises(exc.ConflitoAgendaError) as ctx:
            SchedulingService.reagendar_reuniao(reuniao, nova_data=self.dia, novo_inicio="14:00", novo_fim="15:00")
        self.assertEqual(ctx.exception.codigo, exc.OUTSIDE_AVAILABILITY)
        reuniao.refresh_from_db()
        self.assertEqual(reuniao.status, "AGENDADA")
