"""Views da API de reservas temporárias de espaços e fila de espera."""

from __future__ import annotations

from typing import ClassVar

from django.contrib.auth.models import AbstractUser
from django.db.models import QuerySet
from django.utils import timezone
from django.utils.dateparse import parse_date
from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.request import Request
from rest_framework.response import Response

from clientes.models import Cliente
from core.models import CustomUser, Tenant
from core.utils import get_current_tenant
from shared import exceptions as exc

from .fila import FilaEsperaService
from .models import EntradaFilaEspera, EspacoEvento, ReservaTemporaria
from .serializers import (
    ConverterReservaSerializer,
    EnfileirarSerializer,
    EntradaFilaEsperaSerializer,
    EspacoEventoSerializer,
    EstenderReservaSerializer,
    LiberarReservaSerializer,
    PontuacaoSerializer,
    ReservaTemporariaCreateSerializer,
    ReservaTemporariaSerializer,
)
from .services import ReservaTemporariaService


def _tenant_ou_403(request: Request) -> Tenant:
    tenant = get_current_tenant(request._request)  # noqa: SLF001
    if not tenant:
        msg = "Tenant inválido"
        raise PermissionDenied(msg)
    return tenant


def _do_tenant(model, pk: int, tenant: Tenant, rotulo: str):
    """Busca ``model`` por pk restrito ao tenant; ausente vira NOT_FOUND."""
    obj = model.objects.filter(pk=pk, tenant=tenant).first()
    if obj is None:
        msg = f"{rotulo} {pk} não encontrado"
        raise exc.NaoEncontradoError(msg)
    return obj


def _vendedor_do_tenant(pk: int, tenant: Tenant) -> CustomUser:
    vendedor = CustomUser.objects.filter(pk=pk, tenant_memberships__tenant=tenant).first()
    if vendedor is None:
        msg = f"Vendedor {pk} não encontrado"
        raise exc.NaoEncontradoError(msg)
    return vendedor


class IsAdminDoTenant(permissions.BasePermission):
    """Operações de manutenção (varredura) só para admin do tenant."""

    def has_permission(self, request: Request, view) -> bool:
        user = request.user
        if not isinstance(user, AbstractUser) or not user.is_authenticated:
            return False
        if user.is_superuser:
            return True
        tenant = get_current_tenant(request._request)  # noqa: SLF001
        return bool(tenant) and user.is_admin_do_tenant(tenant)


class EspacoEventoViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    queryset = EspacoEvento.objects.all()
    serializer_class = EspacoEventoSerializer
    permission_classes: ClassVar[list[type[permissions.BasePermission]]] = [permissions.IsAuthenticated]

    def get_queryset(self) -> QuerySet[EspacoEvento]:
        tenant = get_current_tenant(self.request._request)  # noqa: SLF001
        if not tenant:
            return EspacoEvento.objects.none()
        return EspacoEvento.objects.filter(tenant=tenant, ativo=True)

    def perform_create(self, serializer) -> None:
        serializer.save(tenant=_tenant_ou_403(self.request))

    @action(detail=True, methods=["get"])
    def reservas(self, request: Request, pk: str | None = None) -> Response:
        """Reservas do espaço, com status efetivo (filtro opcional ``data``)."""
        del pk
        espaco = self.get_object()
        qs = espaco.reservas_temporarias.select_related("cliente", "espaco").order_by("data_inicio", "hora_inicio")
        if data := parse_date(request.query_params.get("data") or ""):
            qs = qs.filter(data_inicio__lte=data, data_fim__gte=data)
        return Response(ReservaTemporariaSerializer(qs[:200], many=True, context={"agora": timezone.now()}).data)


class ReservaTemporariaViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    """Holds temporários. Estado muda apenas pelas ações dedicadas."""

    queryset = ReservaTemporaria.objects.select_related("espaco", "cliente").all()
    serializer_class = ReservaTemporariaSerializer
    permission_classes: ClassVar[list[type[permissions.BasePermission]]] = [permissions.IsAuthenticated]

    def get_queryset(self) -> QuerySet[ReservaTemporaria]:
        tenant = get_current_tenant(self.request._request)  # noqa: SLF001
        if not tenant:
            return ReservaTemporaria.objects.none()
        qs = self.queryset.filter(tenant=tenant)
        params = self.request.query_params
        if espaco := params.get("espaco"):
            qs = qs.filter(espaco_id=espaco)
        if status_param := params.get("status"):
            status_param = status_param.upper()
            agora = timezone.now()
            # Filtro pelo status efetivo, não pelo persistido
            if status_param == "ATIVA":
                qs = qs.filter(status="ATIVA", expira_em__gte=agora)
            elif status_param == "EXPIRADA":
                qs = qs.filter(status__in=["ATIVA", "EXPIRADA"]).exclude(status="ATIVA", expira_em__gte=agora)
            else:
                qs = qs.filter(status=status_param)
        return qs

    def get_serializer_context(self):
        ctx = super().get_serializer_context()
        ctx["agora"] = timezone.now()
        return ctx

    def create(self, request: Request, *args, **kwargs) -> Response:
        tenant = _tenant_ou_403(request)
        ser = ReservaTemporariaCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        d = dict(ser.validated_data)
        espaco = _do_tenant(EspacoEvento, d.pop("espaco"), tenant, "Espaço")
        cliente = _do_tenant(Cliente, d.pop("cliente"), tenant, "Cliente")
        vendedor_id = d.pop("vendedor", None)
        vendedor = _vendedor_do_tenant(vendedor_id, tenant) if vendedor_id else request.user
        reserva = ReservaTemporariaService.criar_reserva(
            tenant=tenant, espaco=espaco, cliente=cliente, vendedor=vendedor, **d
        )
        return Response(self.get_serializer(reserva).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def liberar(self, request: Request, pk: str | None = None) -> Response:
        del pk
        reserva = self.get_object()
        ser = LiberarReservaSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        reserva = ReservaTemporariaService.liberar(reserva.pk, motivo=ser.validated_data["motivo"])
        return Response(self.get_serializer(reserva).data)

    @action(detail=True, methods=["post"])
    def converter(self, request: Request, pk: str | None = None) -> Response:
        del pk
        reserva = self.get_object()
        ser = ConverterReservaSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        reserva = ReservaTemporariaService.converter(reserva.pk, referencia=ser.validated_data["referencia"])
        return Response(self.get_serializer(reserva).data)

    @action(detail=True, methods=["post"])
    def estender(self, request: Request, pk: str | None = None) -> Response:
        del pk
        reserva = self.get_object()
        ser = EstenderReservaSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        reserva = ReservaTemporariaService.estender(reserva.pk, minutos=ser.validated_data["minutos"])
        return Response(self.get_serializer(reserva).data)

    @action(detail=False, methods=["post"], permission_classes=[IsAdminDoTenant])
    def varrer(self, request: Request) -> Response:
        """Dispara a varredura de expiradas sob demanda."""
        del request
        return Response({"expiradas": ReservaTemporariaService.varrer_expiradas()})

    @action(detail=False, methods=["get"])
    def estatisticas(self, request: Request) -> Response:
        tenant = _tenant_ou_403(request)
        espacos = list(EspacoEvento.objects.filter(tenant=tenant).values_list("id", flat=True))
        return Response(ReservaTemporariaService.estatisticas(espacos))


class FilaEsperaViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    queryset = EntradaFilaEspera.objects.select_related("cliente", "espaco").all()
    serializer_class = EntradaFilaEsperaSerializer
    permission_classes: ClassVar[list[type[permissions.BasePermission]]] = [permissions.IsAuthenticated]

    def get_queryset(self) -> QuerySet[EntradaFilaEspera]:
        tenant = get_current_tenant(self.request._request)  # noqa: SLF001
        if not tenant:
            return EntradaFilaEspera.objects.none()
        qs = self.queryset.filter(tenant=tenant)
        if espaco := self.request.query_params.get("espaco"):
            qs = qs.filter(espaco_id=espaco)
        if self.action == "list" and self.request.query_params.get("todos") not in {"1", "true", "True"}:
            qs = qs.filter(status="ATIVO")
        return qs.order_by("espaco_id", "-pontuacao", "enfileirado_em", "id")

    def create(self, request: Request, *args, **kwargs) -> Response:
        tenant = _tenant_ou_403(request)
        ser = EnfileirarSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        d = dict(ser.validated_data)
        espaco = _do_tenant(EspacoEvento, d.pop("espaco"), tenant, "Espaço")
        cliente = _do_tenant(Cliente, d.pop("cliente"), tenant, "Cliente")
        entrada = FilaEsperaService.enfileirar(tenant=tenant, espaco=espaco, cliente=cliente, **d)
        dados = EntradaFilaEsperaSerializer(entrada).data
        dados["posicao"] = FilaEsperaService.posicao(entrada.pk)
        return Response(dados, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["get"])
    def estatisticas(self, request: Request) -> Response:
        """Resumo da fila do tenant (filtro opcional ``espaco``)."""
        tenant = _tenant_ou_403(request)
        espaco = request.query_params.get("espaco")
        espaco_id = int(espaco) if espaco and espaco.isdigit() else None
        return Response(FilaEsperaService.estatisticas(tenant, espaco_id=espaco_id))

    @action(detail=True, methods=["get"])
    def posicao(self, request: Request, pk: str | None = None) -> Response:
        del request, pk
        entrada = self.get_object()
        return Response({"id": entrada.pk, "posicao": FilaEsperaService.posicao(entrada.pk)})

    @action(detail=True, methods=["post"])
    def retirar(self, request: Request, pk: str | None = None) -> Response:
        del pk
        entrada = self.get_object()
        entrada = FilaEsperaService.retirar(entrada.pk, motivo=request.data.get("motivo", ""))
        return Response(EntradaFilaEsperaSerializer(entrada).data)

    @action(detail=True, methods=["post"])
    def pontuacao(self, request: Request, pk: str | None = None) -> Response:
        del pk
        entrada = self.get_object()
        ser = PontuacaoSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        entrada = FilaEsperaService.atualizar_pontuacao(entrada.pk, ser.validated_data["pontuacao"])
        return Response(EntradaFilaEsperaSerializer(entrada).data)
