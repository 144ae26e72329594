import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("core", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Cliente",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Data de criação")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Data de atualização")),
                ("tipo", models.CharField(choices=[("PF", "Pessoa Física"), ("PJ", "Pessoa Jurídica")], default="PF", max_length=2, verbose_name="Tipo de Cliente")),
                ("status", models.CharField(choices=[("active", "Ativo"), ("inactive", "Inativo"), ("suspended", "Suspenso")], default="active", max_length=10, verbose_name="Status")),
                ("nome", models.CharField(max_length=200, verbose_name="Nome / Razão Social")),
                ("email", models.EmailField(blank=True, max_length=254, null=True, verbose_name="E-mail Principal")),
                ("telefone", models.CharField(blank=True, max_length=20, null=True, verbose_name="Telefone Principal")),
                ("cidade", models.CharField(blank=True, max_length=100, null=True, verbose_name="Cidade")),
                ("origem", models.CharField(choices=[("indicacao", "Indicação"), ("google", "Google"), ("facebook", "Facebook"), ("instagram", "Instagram"), ("site", "Site"), ("outro", "Outro")], default="outro", max_length=20, verbose_name="Origem do Lead")),
                ("data_cadastro", models.DateField(default=django.utils.timezone.localdate, verbose_name="Data de Cadastro")),
                ("observacoes", models.TextField(blank=True, null=True, verbose_name="Observações")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="clientes", to="core.tenant", verbose_name="Empresa (Tenant)")),
            ],
            options={
                "verbose_name": "Cliente",
                "verbose_name_plural": "Clientes",
                "ordering": ("-id",),
                "unique_together": {("tenant", "email")},
            },
        ),
    ]
