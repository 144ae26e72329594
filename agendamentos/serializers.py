from rest_framework import serializers

from .models import (
    CANAL_REUNIAO,
    RESULTADO_REUNIAO,
    TIPO_BLOQUEIO,
    BloqueioVendedor,
    DisponibilidadeVendedor,
    HistoricoReuniao,
    ResultadoReuniao,
    Reuniao,
)
from .services import TIPOS_CONFIRMACAO


class DisponibilidadeVendedorSerializer(serializers.ModelSerializer):
    vendedor_nome = serializers.CharField(source="vendedor.get_full_name", read_only=True)
    # Horários como texto: validação de formato fica a cargo de ``parse_horario``
    hora_inicio = serializers.CharField()
    hora_fim = serializers.CharField()

    class Meta:
        model = DisponibilidadeVendedor
        fields = (
            "id",
            "vendedor",
            "vendedor_nome",
            "dia_semana",
            "hora_inicio",
            "hora_fim",
            "cidade",
            "canal",
            "ativo",
            "created_at",
        )
        read_only_fields = ("ativo", "created_at")
        extra_kwargs = {"vendedor": {"required": False}}


class BloqueioVendedorSerializer(serializers.ModelSerializer):
    vendedor_nome = serializers.CharField(source="vendedor.get_full_name", read_only=True)
    hora_inicio = serializers.CharField(required=False, allow_null=True, default=None)
    hora_fim = serializers.CharField(required=False, allow_null=True, default=None)
    data_fim = serializers.DateField(required=False, allow_null=True, default=None)
    tipo = serializers.ChoiceField(choices=TIPO_BLOQUEIO, default="outro")
    dia_inteiro = serializers.BooleanField(read_only=True)

    class Meta:
        model = BloqueioVendedor
        fields = (
            "id",
            "vendedor",
            "vendedor_nome",
            "data_inicio",
            "data_fim",
            "hora_inicio",
            "hora_fim",
            "dia_inteiro",
            "tipo",
            "motivo",
            "ativo",
            "criado_por",
            "created_at",
        )
        read_only_fields = ("ativo", "criado_por", "created_at")
        extra_kwargs = {"vendedor": {"required": False}}


class ResultadoReuniaoSerializer(serializers.ModelSerializer):
    class Meta:
        model = ResultadoReuniao
        fields = ("resultado", "valor_estimado_negocio", "proximos_passos", "data_follow_up", "observacoes")


class ReuniaoSerializer(serializers.ModelSerializer):
    vendedor_nome = serializers.CharField(source="vendedor.get_full_name", read_only=True)
    cliente_nome = serializers.CharField(source="cliente.nome", read_only=True)
    mutuamente_confirmada = serializers.BooleanField(read_only=True)
    resultado = ResultadoReuniaoSerializer(read_only=True)

    class Meta:
        model = Reuniao
        fields = (
            "id",
            "vendedor",
            "vendedor_nome",
            "cliente",
            "cliente_nome",
            "titulo",
            "data",
            "hora_inicio",
            "hora_fim",
            "status",
            "cidade",
            "canal",
            "confirmada_cliente",
            "confirmada_vendedor",
            "mutuamente_confirmada",
            "observacoes",
            "motivo_cancelamento",
            "cancelada_em",
            "reserva_temporaria",
            "resultado",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields


class ReuniaoCreateSerializer(serializers.ModelSerializer):
    hora_inicio = serializers.CharField()
    hora_fim = serializers.CharField()
    canal = serializers.ChoiceField(choices=CANAL_REUNIAO, required=False, allow_blank=True, default="")

    class Meta:
        model = Reuniao
        fields = (
            "vendedor",
            "cliente",
            "titulo",
            "data",
            "hora_inicio",
            "hora_fim",
            "cidade",
            "canal",
            "observacoes",
            "reserva_temporaria",
        )
        extra_kwargs = {"reserva_temporaria": {"required": False, "allow_null": True}}


class ValidacaoAgendamentoSerializer(serializers.Serializer):
    vendedor = serializers.IntegerField()
    data = serializers.DateField()
    hora_inicio = serializers.CharField()
    hora_fim = serializers.CharField()
    excluir_reuniao_id = serializers.IntegerField(required=False, allow_null=True)
    cidade = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    canal = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class SugestaoHorariosSerializer(serializers.Serializer):
    vendedor = serializers.IntegerField()
    data = serializers.DateField()
    duracao = serializers.IntegerField(min_value=1, max_value=24 * 60, default=60)
    limite = serializers.IntegerField(min_value=1, max_value=50, default=5)
    cidade = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    canal = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ConfirmarReuniaoSerializer(serializers.Serializer):
    tipo = serializers.ChoiceField(choices=TIPOS_CONFIRMACAO)


class ReagendarReuniaoSerializer(serializers.Serializer):
    nova_data = serializers.DateField()
    novo_inicio = serializers.CharField()
    novo_fim = serializers.CharField()
    motivo = serializers.CharField(required=False, allow_blank=True, default="")


class CancelarReuniaoSerializer(serializers.Serializer):
    motivo = serializers.CharField(required=False, allow_blank=True, default="Cancelada via API")


class ConcluirReuniaoSerializer(serializers.Serializer):
    resultado = serializers.ChoiceField(choices=RESULTADO_REUNIAO)
    valor_estimado_negocio = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True
    )
    proximos_passos = serializers.CharField(required=False, allow_blank=True, default="")
    data_follow_up = serializers.DateField(required=False, allow_null=True)
    observacoes = serializers.CharField(required=False, allow_blank=True, default="")


class HistoricoReuniaoSerializer(serializers.ModelSerializer):
    user_nome = serializers.CharField(source="user.get_full_name", read_only=True, default=None)

    class Meta:
        model = HistoricoReuniao
        fields = ("id", "tipo_evento", "de_status", "para_status", "motivo", "diff", "user", "user_nome", "created_at")
        read_only_fields = fields
