from django.contrib import admin

from .models import EntradaFilaEspera, EspacoEvento, ReservaTemporaria


@admin.register(EspacoEvento)
class EspacoEventoAdmin(admin.ModelAdmin):
    list_display = ("id", "tenant", "nome", "cidade", "capacidade", "ativo")
    list_filter = ("ativo", "tenant")
    search_fields = ("nome", "cidade")


@admin.register(ReservaTemporaria)
class ReservaTemporariaAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "espaco",
        "cliente",
        "data_inicio",
        "hora_inicio",
        "hora_fim",
        "status",
        "expira_em",
        "referencia_conversao",
    )
    list_filter = ("status", "tenant")
    search_fields = ("cliente__nome", "espaco__nome", "referencia_conversao")
    raw_id_fields = ("origem_fila",)
    readonly_fields = ("data_conversao", "data_liberacao", "aviso_expiracao_em")


@admin.register(EntradaFilaEspera)
class EntradaFilaEsperaAdmin(admin.ModelAdmin):
    list_display = ("id", "espaco", "cliente", "data_inicio", "hora_inicio", "hora_fim", "pontuacao", "status")
    list_filter = ("status", "tenant")
    search_fields = ("cliente__nome", "espaco__nome")
    ordering = ("espaco", "-pontuacao", "enfileirado_em", "id")
