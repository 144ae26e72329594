from django.contrib import admin

from .models import Cliente


@admin.register(Cliente)
class ClienteAdmin(admin.ModelAdmin):
    list_display = ("nome", "tenant", "tipo", "email", "origem", "status", "data_cadastro")
    list_filter = ("tenant", "tipo", "origem", "status")
    search_fields = ("nome", "email", "telefone")
