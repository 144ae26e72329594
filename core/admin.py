"""Admin do app core."""

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from .models import CustomUser, Tenant, TenantUser


class TenantUserInline(admin.TabularInline):
    """Inline de vínculos usuário-empresa."""

    model = TenantUser
    extra = 0
    fields = ("user", "is_tenant_admin", "cargo")
    autocomplete_fields = ("user",)


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    """Admin do modelo `Tenant`."""

    list_display = ("name", "subdomain", "status", "timezone", "created_at")
    list_filter = ("status", "timezone")
    search_fields = ("name", "subdomain")
    readonly_fields = ("created_at", "updated_at")
    inlines = (TenantUserInline,)


@admin.register(CustomUser)
class CustomUserAdmin(admin.ModelAdmin):
    """Admin para usuários customizados."""

    list_display = ("username", "email", "first_name", "last_name", "is_vendedor", "is_staff", "is_active")
    list_filter = ("is_vendedor", "is_staff", "is_active", "is_superuser")
    search_fields = ("username", "email", "first_name", "last_name", "phone")
    filter_horizontal = ("groups", "user_permissions")
    fieldsets = (
        (None, {"fields": ("username", "password")}),
        (_("Informações Pessoais"), {"fields": ("first_name", "last_name", "email", "phone")}),
        (_("Comercial"), {"fields": ("is_vendedor",)}),
        (_("Permissões"), {"fields": ("is_active", "is_staff", "is_superuser", "groups", "user_permissions")}),
        (_("Datas Importantes"), {"fields": ("last_login", "date_joined")}),
    )


@admin.register(TenantUser)
class TenantUserAdmin(admin.ModelAdmin):
    """Admin para relacionamento Tenant-Usuário."""

    list_display = ("tenant", "user", "cargo", "is_tenant_admin")
    list_filter = ("tenant", "is_tenant_admin")
    search_fields = ("tenant__name", "user__username", "cargo")
