"""Repositório de regras de disponibilidade e bloqueios de vendedores.

Leitura frequente e escrita rara: as consultas por vendedor/dia passam pelo
cache do Django com TTL curto (``AGENDAMENTOS_REGRAS_CACHE_TTL``) e uma
versão cooperativa que é avançada a cada escrita (serviço ou signal).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, time

from django.conf import settings
from django.db import transaction

from core.models import CustomUser, Tenant
from shared import exceptions as exc
from shared.cache_utils import bump_versao, get_or_set, get_versao
from shared.janelas import JanelaHorario, parse_horario

from .models import BloqueioVendedor, DisponibilidadeVendedor, dia_semana_de

logger = logging.getLogger(__name__)

_REGRAS_CACHE_VERSION_KEY = "ag_regras_cache_version"


def get_regras_cache_version() -> str:
    return get_versao(_REGRAS_CACHE_VERSION_KEY)


def bump_regras_cache_version() -> None:
    """Invalida regras e bloqueios em cache para todos os vendedores."""
    bump_versao(_REGRAS_CACHE_VERSION_KEY)


def _ttl() -> int:
    return int(getattr(settings, "AGENDAMENTOS_REGRAS_CACHE_TTL", 60))


@dataclass(frozen=True)
class RegraDia:
    id: int
    janela: JanelaHorario
    cidade: str
    canal: str

    def atende(self, cidade: str | None, canal: str | None) -> bool:
        if cidade and self.cidade and self.cidade.lower() != cidade.lower():
            return False
        return not (canal and self.canal and self.canal != canal)


@dataclass(frozen=True)
class BloqueioDia:
    id: int
    janela: JanelaHorario | None  # None = dia inteiro

    @property
    def dia_inteiro(self) -> bool:
        return self.janela is None


class DisponibilidadeService:
    """Consulta e manutenção das regras semanais e bloqueios."""

    # Leitura ------------------------------------------------------------
    @staticmethod
    def regras_do_dia(vendedor_id: int, dia_semana: int) -> list[RegraDia]:
        """Regras ativas do vendedor para o dia da semana (domingo=0)."""
        chave = f"ag:regras:{vendedor_id}:{dia_semana}:{get_regras_cache_version()}"

        def _carregar() -> list[RegraDia]:
            qs = DisponibilidadeVendedor.objects.filter(
                vendedor_id=vendedor_id, dia_semana=dia_semana, ativo=True
            ).order_by("hora_inicio", "id")
            return [
                RegraDia(
                    id=r.id,
                    janela=JanelaHorario(None, parse_horario(r.hora_inicio), parse_horario(r.hora_fim)),
                    cidade=r.cidade,
                    canal=r.canal,
                )
                for r in qs
            ]

        return get_or_set(chave, _ttl(), _carregar)

    @staticmethod
    def regras_na_data(vendedor_id: int, data: date) -> list[RegraDia]:
        return DisponibilidadeService.regras_do_dia(vendedor_id, dia_semana_de(data))

    @staticmethod
    def bloqueios_na_data(vendedor_id: int, data: date) -> list[BloqueioDia]:
        """Bloqueios ativos cujo intervalo de datas contém ``data``."""
        chave = f"ag:bloqueios:{vendedor_id}:{data.isoformat()}:{get_regras_cache_version()}"

        def _carregar() -> list[BloqueioDia]:
            qs = BloqueioVendedor.objects.filter(
                vendedor_id=vendedor_id, ativo=True, data_inicio__lte=data, data_fim__gte=data
            ).order_by("id")
            return [BloqueioDia(id=b.id, janela=b.janela) for b in qs]

        return get_or_set(chave, _ttl(), _carregar)

    # Escrita ------------------------------------------------------------
    @staticmethod
    def criar_regra(  # noqa: PLR0913
        *,
        tenant: Tenant,
        vendedor: CustomUser,
        dia_semana: int,
        hora_inicio: str | time,
        hora_fim: str | time,
        cidade: str = "",
        canal: str = "",
    ) -> DisponibilidadeVendedor:
        """Cria regra semanal rejeitando sobreposição no mesmo (cidade, canal)."""
        if not 0 <= int(dia_semana) <= 6:  # noqa: PLR2004
            msg = f"dia_semana inválido: {dia_semana}"
            raise exc.JanelaInvalidaError(msg)
        janela = JanelaHorario.de_horarios(None, hora_inicio, hora_fim)
        with transaction.atomic():
            CustomUser.objects.select_for_update().get(pk=vendedor.pk)
            existentes = DisponibilidadeVendedor.objects.filter(
                vendedor=vendedor,
                dia_semana=dia_semana,
                cidade=cidade or "",
                canal=canal or "",
                ativo=True,
            )
            for regra in existentes:
                if regra.janela.sobrepoe(janela):
                    msg = "Já existe disponibilidade cadastrada neste horário para o vendedor"
                    raise exc.ConflitoAgendaError(
                        msg,
                        codigo=exc.AVAILABILITY_OVERLAP,
                        entidade_conflitante={"tipo": "disponibilidade", "id": regra.id},
                    )
            regra = DisponibilidadeVendedor.objects.create(
                tenant=tenant,
                vendedor=vendedor,
                dia_semana=dia_semana,
                hora_inicio=janela.hora_inicio,
                hora_fim=janela.hora_fim,
                cidade=cidade or "",
                canal=canal or "",
            )
        bump_regras_cache_version()
        logger.info("Disponibilidade %s criada para vendedor %s", regra.id, vendedor.pk)
        return regra

    @staticmethod
    def desativar_regra(regra: DisponibilidadeVendedor) -> DisponibilidadeVendedor:
        if regra.ativo:
            regra.ativo = False
            regra.save(update_fields=["ativo", "updated_at"])
            bump_regras_cache_version()
        return regra

    @staticmethod
    def criar_bloqueio(  # noqa: PLR0913
        *,
        tenant: Tenant,
        vendedor: CustomUser,
        data_inicio: date,
        data_fim: date | None = None,
        hora_inicio: str | time | None = None,
        hora_fim: str | time | None = None,
        tipo: str = "outro",
        motivo: str = "",
        criado_por: CustomUser | None = None,
    ) -> BloqueioVendedor:
        """Cria bloqueio; rejeita sobreposição com outro bloqueio ativo."""
        data_fim = data_fim or data_inicio
        if data_fim < data_inicio:
            msg = "Data final do bloqueio anterior à inicial"
            raise exc.JanelaInvalidaError(msg)
        if (hora_inicio is None) != (hora_fim is None):
            msg = "Informe hora_inicio e hora_fim juntos (ou nenhum para o dia inteiro)"
            raise exc.JanelaInvalidaError(msg)
        janela = JanelaHorario.de_horarios(None, hora_inicio, hora_fim) if hora_inicio is not None else None
        novo = BloqueioVendedor(
            tenant=tenant,
            vendedor=vendedor,
            data_inicio=data_inicio,
            data_fim=data_fim,
            hora_inicio=janela.hora_inicio if janela else None,
            hora_fim=janela.hora_fim if janela else None,
            tipo=tipo,
            motivo=motivo or "",
            criado_por=criado_por,
        )
        with transaction.atomic():
            CustomUser.objects.select_for_update().get(pk=vendedor.pk)
            candidatos = BloqueioVendedor.objects.filter(
                vendedor=vendedor, ativo=True, data_inicio__lte=data_fim, data_fim__gte=data_inicio
            )
            for existente in candidatos:
                if novo.sobrepoe_bloqueio(existente):
                    msg = "Já existe um bloqueio ativo neste período"
                    raise exc.ConflitoAgendaError(
                        msg,
                        codigo=exc.BLOCK_OVERLAP,
                        entidade_conflitante={"tipo": "bloqueio", "id": existente.id},
                    )
            novo.save()
        bump_regras_cache_version()
        logger.info("Bloqueio %s criado para vendedor %s", novo.id, vendedor.pk)
        return novo

    @staticmethod
    def desativar_bloqueio(bloqueio: BloqueioVendedor) -> BloqueioVendedor:
        if bloqueio.ativo:
            bloqueio.ativo = False
            bloqueio.save(update_fields=["ativo", "updated_at"])
            bump_regras_cache_version()
        return bloqueio
