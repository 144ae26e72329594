"""Views da API de reuniões, disponibilidades e bloqueios de vendedores."""

from __future__ import annotations

from datetime import timedelta
from typing import ClassVar

from django.contrib.auth.models import AbstractUser
from django.db.models import QuerySet
from django.utils import timezone
from django.utils.dateparse import parse_date
from rest_framework import mixins, permissions, status, viewsets
from rest_framework import serializers as drf_serializers
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from core.models import Tenant, TenantUser
from core.utils import get_current_tenant
from shared import exceptions as exc
from shared.janelas import formatar_horario

from .conflitos import ConflictDetector
from .disponibilidade import DisponibilidadeService
from .models import BloqueioVendedor, DisponibilidadeVendedor, Reuniao
from .serializers import (
    BloqueioVendedorSerializer,
    CancelarReuniaoSerializer,
    ConcluirReuniaoSerializer,
    ConfirmarReuniaoSerializer,
    DisponibilidadeVendedorSerializer,
    HistoricoReuniaoSerializer,
    ReagendarReuniaoSerializer,
    ReuniaoCreateSerializer,
    ReuniaoSerializer,
    SugestaoHorariosSerializer,
    ValidacaoAgendamentoSerializer,
)
from .services import SchedulingService


def _tenant_ou_403(request: Request) -> Tenant:
    tenant = get_current_tenant(request._request)  # noqa: SLF001
    if not tenant:
        msg = "Tenant inválido"
        raise PermissionDenied(msg)
    return tenant


def _e_admin(user: AbstractUser, tenant: Tenant | None) -> bool:
    """Superusuário ou administrador do tenant corrente."""
    if user.is_superuser:
        return True
    return bool(tenant) and user.is_admin_do_tenant(tenant)


def _exigir_membro(tenant: Tenant, vendedor, cliente=None, reserva=None) -> None:
    if not vendedor.tenant_memberships.filter(tenant=tenant).exists():
        raise drf_serializers.ValidationError({"vendedor": "Vendedor não pertence ao tenant atual"})
    if cliente is not None and cliente.tenant_id != tenant.id:
        raise drf_serializers.ValidationError({"cliente": "Cliente não pertence ao tenant atual"})
    if reserva is not None and reserva.tenant_id != tenant.id:
        raise drf_serializers.ValidationError({"reserva_temporaria": "Reserva não pertence ao tenant atual"})


def _vendedor_do_tenant(pk: int, tenant: Tenant) -> int:
    """Confere que o vendedor tem vínculo com o tenant; ausente vira NOT_FOUND."""
    if not TenantUser.objects.filter(user_id=pk, tenant=tenant).exists():
        msg = f"Vendedor {pk} não encontrado"
        raise exc.NaoEncontradoError(msg)
    return pk


class IsVendedorOuAdminDoTenant(permissions.BasePermission):
    """Admin do tenant gerencia tudo; vendedor só o que é seu."""

    def has_permission(self, request: Request, view: APIView) -> bool:
        user = request.user
        return isinstance(user, AbstractUser) and user.is_authenticated

    def has_object_permission(self, request: Request, view: APIView, obj) -> bool:
        user = request.user
        if _e_admin(user, getattr(obj, "tenant", None)):
            return True
        return getattr(obj, "vendedor_id", None) == user.pk


class _EscopoTenantMixin:
    """Restringe o queryset ao tenant corrente e, para não-admins, ao próprio vendedor."""

    def _escopo(self, qs: QuerySet) -> QuerySet:
        tenant = get_current_tenant(self.request._request)  # noqa: SLF001
        if not tenant:
            return qs.none()
        qs = qs.filter(tenant=tenant)
        user = self.request.user
        if not isinstance(user, AbstractUser):
            return qs.none()
        if _e_admin(user, tenant):
            vendedor = self.request.query_params.get("vendedor")
            return qs.filter(vendedor_id=vendedor) if vendedor else qs
        return qs.filter(vendedor=user)


class ReuniaoViewSet(
    _EscopoTenantMixin,
    mixins.CreateModelMixin,
    viewsets.ReadOnlyModelViewSet,
):
    """Reuniões de venda. Mudanças de estado só pelas ações dedicadas."""

    queryset = Reuniao.objects.select_related("vendedor", "cliente", "resultado").all()
    serializer_class = ReuniaoSerializer
    permission_classes: ClassVar[list[type[permissions.BasePermission]]] = [
        permissions.IsAuthenticated,
        IsVendedorOuAdminDoTenant,
    ]

    def get_queryset(self) -> QuerySet[Reuniao]:
        qs = self._escopo(self.queryset)
        params = self.request.query_params
        if data := parse_date(params.get("data") or ""):
            qs = qs.filter(data=data)
        if status_param := params.get("status"):
            qs = qs.filter(status=status_param.upper())
        return qs.order_by("data", "hora_inicio", "id")

    def create(self, request: Request, *args, **kwargs) -> Response:
        tenant = _tenant_ou_403(request)
        entrada = ReuniaoCreateSerializer(data=request.data)
        entrada.is_valid(raise_exception=True)
        dados = dict(entrada.validated_data)
        vendedor = dados.pop("vendedor")
        if not _e_admin(request.user, tenant) and vendedor.pk != request.user.pk:
            msg = "Apenas administradores agendam para outros vendedores"
            raise PermissionDenied(msg)
        _exigir_membro(tenant, vendedor, dados.get("cliente"), dados.get("reserva_temporaria"))
        reuniao = SchedulingService.agendar_reuniao(tenant=tenant, vendedor=vendedor, user=request.user, **dados)
        return Response(ReuniaoSerializer(reuniao).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["post"])
    def validar(self, request: Request) -> Response:
        """Dry-run da validação de conflito (não grava nada)."""
        tenant = _tenant_ou_403(request)
        ser = ValidacaoAgendamentoSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        d = ser.validated_data
        resultado = SchedulingService.validar_agendamento(
            _vendedor_do_tenant(d["vendedor"], tenant),
            d["data"],
            d["hora_inicio"],
            d["hora_fim"],
            excluir_reuniao_id=d.get("excluir_reuniao_id"),
            cidade=d.get("cidade") or None,
            canal=d.get("canal") or None,
        )
        return Response(resultado.as_dict())

    @action(detail=False, methods=["get"])
    def sugestoes(self, request: Request) -> Response:
        """Próximos horários livres do vendedor na data."""
        tenant = _tenant_ou_403(request)
        ser = SugestaoHorariosSerializer(data=request.query_params)
        ser.is_valid(raise_exception=True)
        d = ser.validated_data
        agora = timezone.localtime()
        a_partir_de = agora.hour * 60 + agora.minute if d["data"] == agora.date() else None
        janelas = ConflictDetector.sugerir_horarios(
            _vendedor_do_tenant(d["vendedor"], tenant),
            d["data"],
            d["duracao"],
            limite=d["limite"],
            cidade=d.get("cidade") or None,
            canal=d.get("canal") or None,
            a_partir_de=a_partir_de,
        )
        return Response(
            {
                "data": d["data"],
                "sugestoes": [
                    {"hora_inicio": formatar_horario(j.inicio), "hora_fim": formatar_horario(j.fim % (24 * 60))}
                    for j in janelas
                ],
            }
        )

    @action(detail=False, methods=["get"])
    def conflitos(self, request: Request) -> Response:
        """Sobreposições já gravadas (dados legados/importados). Só admin."""
        tenant = _tenant_ou_403(request)
        if not _e_admin(request.user, tenant):
            msg = "Apenas administradores"
            raise PermissionDenied(msg)
        desde = parse_date(request.query_params.get("desde") or "") or timezone.localdate()
        try:
            dias = int(request.query_params.get("dias", 30))
        except ValueError:
            return Response({"detail": "dias inválido"}, status=status.HTTP_400_BAD_REQUEST)
        itens = ConflictDetector.detectar_conflitos_existentes(desde=desde, dias=dias, tenant_id=tenant.id)
        return Response({"total": len(itens), "conflitos": itens})

    @action(detail=True, methods=["post"])
    def confirmar(self, request: Request, pk: str | None = None) -> Response:
        del pk
        reuniao = self.get_object()
        ser = ConfirmarReuniaoSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        reuniao = SchedulingService.confirmar_reuniao(reuniao, tipo=ser.validated_data["tipo"], user=request.user)
        return Response(ReuniaoSerializer(reuniao).data)

    @action(detail=True, methods=["post"])
    def reagendar(self, request: Request, pk: str | None = None) -> Response:
        del pk
        reuniao = self.get_object()
        ser = ReagendarReuniaoSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        reuniao = SchedulingService.reagendar_reuniao(reuniao, user=request.user, **ser.validated_data)
        return Response(ReuniaoSerializer(reuniao).data)

    @action(detail=True, methods=["post"])
    def cancelar(self, request: Request, pk: str | None = None) -> Response:
        del pk
        reuniao = self.get_object()
        ser = CancelarReuniaoSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        reuniao = SchedulingService.cancelar_reuniao(reuniao, motivo=ser.validated_data["motivo"], user=request.user)
        return Response(ReuniaoSerializer(reuniao).data)

    @action(detail=True, methods=["post"])
    def concluir(self, request: Request, pk: str | None = None) -> Response:
        del pk
        reuniao = self.get_object()
        ser = ConcluirReuniaoSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        reuniao = SchedulingService.concluir_reuniao(reuniao, user=request.user, **ser.validated_data)
        return Response(ReuniaoSerializer(reuniao).data)

    @action(detail=True, methods=["get"])
    def historico(self, request: Request, pk: str | None = None) -> Response:
        del request, pk
        reuniao = self.get_object()
        return Response(HistoricoReuniaoSerializer(reuniao.historico.all()[:50], many=True).data)


class DisponibilidadeViewSet(
    _EscopoTenantMixin,
    mixins.CreateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.ReadOnlyModelViewSet,
):
    """Regras semanais de disponibilidade. DELETE apenas desativa a regra."""

    queryset = DisponibilidadeVendedor.objects.select_related("vendedor").all()
    serializer_class = DisponibilidadeVendedorSerializer
    permission_classes: ClassVar[list[type[permissions.BasePermission]]] = [
        permissions.IsAuthenticated,
        IsVendedorOuAdminDoTenant,
    ]

    def get_queryset(self) -> QuerySet[DisponibilidadeVendedor]:
        qs = self._escopo(self.queryset).filter(ativo=True)
        if (dia := self.request.query_params.get("dia_semana")) is not None and dia.isdigit():
            qs = qs.filter(dia_semana=int(dia))
        return qs

    def perform_create(self, serializer: drf_serializers.Serializer) -> None:
        tenant = _tenant_ou_403(self.request)
        user = self.request.user
        d = serializer.validated_data
        vendedor = d.get("vendedor") or user
        if not _e_admin(user, tenant) and vendedor.pk != user.pk:
            msg = "Vendedores só cadastram a própria disponibilidade"
            raise PermissionDenied(msg)
        _exigir_membro(tenant, vendedor)
        serializer.instance = DisponibilidadeService.criar_regra(
            tenant=tenant,
            vendedor=vendedor,
            dia_semana=d["dia_semana"],
            hora_inicio=d["hora_inicio"],
            hora_fim=d["hora_fim"],
            cidade=d.get("cidade", ""),
            canal=d.get("canal", ""),
        )

    def perform_destroy(self, instance: DisponibilidadeVendedor) -> None:
        DisponibilidadeService.desativar_regra(instance)


class BloqueioViewSet(
    _EscopoTenantMixin,
    mixins.CreateModelMixin,
    viewsets.ReadOnlyModelViewSet,
):
    """Bloqueios de agenda (férias, folgas). Nunca apagados, só desativados."""

    queryset = BloqueioVendedor.objects.select_related("vendedor").all()
    serializer_class = BloqueioVendedorSerializer
    permission_classes: ClassVar[list[type[permissions.BasePermission]]] = [
        permissions.IsAuthenticated,
        IsVendedorOuAdminDoTenant,
    ]

    def get_queryset(self) -> QuerySet[BloqueioVendedor]:
        qs = self._escopo(self.queryset)
        if self.request.query_params.get("todos") not in {"1", "true", "True"}:
            qs = qs.filter(ativo=True)
        if futuros := self.request.query_params.get("futuros"):
            if futuros in {"1", "true", "True"}:
                qs = qs.filter(data_fim__gte=timezone.localdate())
        return qs

    def perform_create(self, serializer: drf_serializers.Serializer) -> None:
        tenant = _tenant_ou_403(self.request)
        user = self.request.user
        d = serializer.validated_data
        vendedor = d.get("vendedor") or user
        if not _e_admin(user, tenant) and vendedor.pk != user.pk:
            msg = "Vendedores só bloqueiam a própria agenda"
            raise PermissionDenied(msg)
        _exigir_membro(tenant, vendedor)
        serializer.instance = DisponibilidadeService.criar_bloqueio(
            tenant=tenant,
            vendedor=vendedor,
            data_inicio=d["data_inicio"],
            data_fim=d.get("data_fim"),
            hora_inicio=d.get("hora_inicio") or None,
            hora_fim=d.get("hora_fim") or None,
            tipo=d.get("tipo", "outro"),
            motivo=d.get("motivo", ""),
            criado_por=user,
        )

    @action(detail=True, methods=["post"])
    def desativar(self, request: Request, pk: str | None = None) -> Response:
        del request, pk
        bloqueio = DisponibilidadeService.desativar_bloqueio(self.get_object())
        return Response(BloqueioVendedorSerializer(bloqueio).data)

    @action(detail=False, methods=["get"])
    def proximos(self, request: Request) -> Response:
        """Bloqueios ativos dos próximos 30 dias."""
        hoje = timezone.localdate()
        qs = (
            self._escopo(BloqueioVendedor.objects.select_related("vendedor"))
            .filter(ativo=True, data_fim__gte=hoje, data_inicio__lte=hoje + timedelta(days=30))
            .order_by("data_inicio")
        )
        return Response(BloqueioVendedorSerializer(qs, many=True).data)
