import django.contrib.auth.models
import django.contrib.auth.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("auth", "0012_alter_user_first_name_max_length"),
    ]

    operations = [
        migrations.CreateModel(
            name="Tenant",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Data de criação")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Data de atualização")),
                ("name", models.CharField(help_text="Nome que aparecerá no sistema", max_length=100, verbose_name="Nome Fantasia / Nome de Exibição")),
                ("subdomain", models.CharField(max_length=100, unique=True, verbose_name="Subdomínio")),
                ("status", models.CharField(choices=[("active", "Ativo"), ("inactive", "Inativo"), ("suspended", "Suspenso")], default="active", max_length=20, verbose_name="Status")),
                ("timezone", models.CharField(default="America/Sao_Paulo", help_text="Fuso usado para interpretar datas/horários de reuniões e reservas", max_length=64, verbose_name="Fuso horário")),
            ],
            options={
                "verbose_name": "empresa",
                "verbose_name_plural": "empresas",
                "ordering": ["name"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="CustomUser",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("password", models.CharField(max_length=128, verbose_name="password")),
                ("last_login", models.DateTimeField(blank=True, null=True, verbose_name="last login")),
                ("is_superuser", models.BooleanField(default=False, help_text="Designates that this user has all permissions without explicitly assigning them.", verbose_name="superuser status")),
                ("username", models.CharField(error_messages={"unique": "A user with that username already exists."}, help_text="Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.", max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name="username")),
                ("first_name", models.CharField(blank=True, max_length=150, verbose_name="first name")),
                ("last_name", models.CharField(blank=True, max_length=150, verbose_name="last name")),
                ("email", models.EmailField(blank=True, max_length=254, verbose_name="email address")),
                ("is_staff", models.BooleanField(default=False, help_text="Designates whether the user can log into this admin site.", verbose_name="staff status")),
                ("is_active", models.BooleanField(default=True, help_text="Designates whether this user should be treated as active. Unselect this instead of deleting accounts.", verbose_name="active")),
                ("date_joined", models.DateTimeField(default=django.utils.timezone.now, verbose_name="date joined")),
                ("phone", models.CharField(blank=True, max_length=20, verbose_name="Telefone")),
                ("is_vendedor", models.BooleanField(db_index=True, default=False, verbose_name="É vendedor")),
                ("groups", models.ManyToManyField(blank=True, help_text="The groups this user belongs to. A user will get all permissions granted to each of their groups.", related_name="customuser_groups", related_query_name="customuser", to="auth.group", verbose_name="groups")),
                ("user_permissions", models.ManyToManyField(blank=True, help_text="Specific permissions for this user.", related_name="customuser_permissions", related_query_name="customuser", to="auth.permission", verbose_name="user permissions")),
            ],
            options={
                "verbose_name": "usuário",
                "verbose_name_plural": "usuários",
            },
            managers=[
                ("objects", django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name="TenantUser",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Data de criação")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Data de atualização")),
                ("is_tenant_admin", models.BooleanField(default=False, verbose_name="É Administrador da Empresa")),
                ("cargo", models.CharField(blank=True, default="", max_length=120, verbose_name="Cargo / Função")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="tenant_users", to="core.tenant")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="tenant_memberships", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "vínculo usuário-empresa",
                "verbose_name_plural": "vínculos usuário-empresa",
                "abstract": False,
                "unique_together": {("tenant", "user")},
            },
        ),
    ]
