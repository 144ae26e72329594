from django.contrib import admin

from .models import BloqueioVendedor, DisponibilidadeVendedor, HistoricoReuniao, ResultadoReuniao, Reuniao


@admin.register(DisponibilidadeVendedor)
class DisponibilidadeVendedorAdmin(admin.ModelAdmin):
    list_display = ("id", "tenant", "vendedor", "dia_semana", "hora_inicio", "hora_fim", "cidade", "canal", "ativo")
    list_filter = ("ativo", "dia_semana", "canal", "tenant")
    search_fields = ("vendedor__first_name", "vendedor__last_name", "vendedor__email", "cidade")


@admin.register(BloqueioVendedor)
class BloqueioVendedorAdmin(admin.ModelAdmin):
    list_display = ("id", "tenant", "vendedor", "data_inicio", "data_fim", "hora_inicio", "hora_fim", "tipo", "ativo")
    list_filter = ("ativo", "tipo", "tenant")
    search_fields = ("vendedor__first_name", "vendedor__last_name", "motivo")


class ResultadoReuniaoInline(admin.StackedInline):
    model = ResultadoReuniao
    extra = 0


class HistoricoReuniaoInline(admin.TabularInline):
    model = HistoricoReuniao
    extra = 0
    readonly_fields = ("tipo_evento", "de_status", "para_status", "motivo", "diff", "user", "created_at")
    can_delete = False


@admin.register(Reuniao)
class ReuniaoAdmin(admin.ModelAdmin):
    list_display = ("id", "tenant", "vendedor", "cliente", "data", "hora_inicio", "hora_fim", "status")
    list_filter = ("status", "canal", "tenant")
    search_fields = ("titulo", "cliente__nome", "vendedor__first_name", "vendedor__last_name")
    date_hierarchy = "data"
    inlines = (ResultadoReuniaoInline, HistoricoReuniaoInline)
