from django.utils import timezone
from rest_framework import serializers

from .models import EntradaFilaEspera, EspacoEvento, ReservaTemporaria


class EspacoEventoSerializer(serializers.ModelSerializer):
    class Meta:
        model = EspacoEvento
        fields = ("id", "nome", "cidade", "capacidade", "ativo")


class ReservaTemporariaSerializer(serializers.ModelSerializer):
    """Saída com o status efetivo: ATIVA vencida aparece como EXPIRADA."""

    espaco_nome = serializers.CharField(source="espaco.nome", read_only=True)
    cliente_nome = serializers.CharField(source="cliente.nome", read_only=True)
    status = serializers.SerializerMethodField()
    segundos_restantes = serializers.SerializerMethodField()

    class Meta:
        model = ReservaTemporaria
        fields = (
            "id",
            "espaco",
            "espaco_nome",
            "cliente",
            "cliente_nome",
            "vendedor",
            "data_inicio",
            "data_fim",
            "hora_inicio",
            "hora_fim",
            "status",
            "expira_em",
            "segundos_restantes",
            "valor_estimado_proposta",
            "observacoes",
            "referencia_conversao",
            "data_conversao",
            "data_liberacao",
            "motivo_liberacao",
            "origem_fila",
            "created_at",
        )
        read_only_fields = fields

    def _agora(self):
        return self.context.get("agora") or timezone.now()

    def get_status(self, obj):
        return obj.status_efetivo(self._agora())

    def get_segundos_restantes(self, obj):
        return obj.segundos_restantes(self._agora())


class ReservaTemporariaCreateSerializer(serializers.Serializer):
    espaco = serializers.IntegerField()
    cliente = serializers.IntegerField()
    vendedor = serializers.IntegerField(required=False, allow_null=True)
    data_inicio = serializers.DateField()
    data_fim = serializers.DateField(required=False, allow_null=True)
    hora_inicio = serializers.CharField()
    hora_fim = serializers.CharField()
    ttl_minutos = serializers.IntegerField(required=False, allow_null=True)
    valor_estimado_proposta = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True
    )
    observacoes = serializers.CharField(required=False, allow_blank=True, default="")


class LiberarReservaSerializer(serializers.Serializer):
    motivo = serializers.CharField(required=False, allow_blank=True, default="")


class ConverterReservaSerializer(serializers.Serializer):
    referencia = serializers.CharField(max_length=100)


class EstenderReservaSerializer(serializers.Serializer):
    minutos = serializers.IntegerField()


class EntradaFilaEsperaSerializer(serializers.ModelSerializer):
    cliente_nome = serializers.CharField(source="cliente.nome", read_only=True)

    class Meta:
        model = EntradaFilaEspera
        fields = (
            "id",
            "espaco",
            "cliente",
            "cliente_nome",
            "data_inicio",
            "data_fim",
            "hora_inicio",
            "hora_fim",
            "pontuacao",
            "criterios",
            "enfileirado_em",
            "status",
            "promovido_em",
            "observacoes",
        )
        read_only_fields = fields


class EnfileirarSerializer(serializers.Serializer):
    espaco = serializers.IntegerField()
    cliente = serializers.IntegerField()
    data_inicio = serializers.DateField()
    data_fim = serializers.DateField(required=False, allow_null=True)
    hora_inicio = serializers.CharField()
    hora_fim = serializers.CharField()
    pontuacao = serializers.FloatField(required=False, allow_null=True)
    criterios = serializers.DictField(required=False, default=dict)
    observacoes = serializers.CharField(required=False, allow_blank=True, default="")


class PontuacaoSerializer(serializers.Serializer):
    pontuacao = serializers.FloatField()
