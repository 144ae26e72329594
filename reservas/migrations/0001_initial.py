import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("clientes", "0001_initial"),
        ("core", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="EspacoEvento",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Data de criação")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Data de atualização")),
                ("nome", models.CharField(max_length=200)),
                ("cidade", models.CharField(blank=True, default="", max_length=100)),
                ("capacidade", models.PositiveIntegerField(blank=True, null=True)),
                ("ativo", models.BooleanField(default=True)),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="espacos_evento", to="core.tenant")),
            ],
            options={
                "verbose_name": "Espaço de Evento",
                "verbose_name_plural": "Espaços de Evento",
                "ordering": ["nome"],
            },
        ),
        migrations.CreateModel(
            name="EntradaFilaEspera",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Data de criação")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Data de atualização")),
                ("data_inicio", models.DateField()),
                ("data_fim", models.DateField()),
                ("hora_inicio", models.TimeField()),
                ("hora_fim", models.TimeField()),
                ("pontuacao", models.FloatField(default=0)),
                ("criterios", models.JSONField(blank=True, default=dict)),
                ("enfileirado_em", models.DateTimeField()),
                ("status", models.CharField(choices=[("ATIVO", "Ativo"), ("PROMOVIDO", "Promovido"), ("CANCELADO", "Cancelado")], default="ATIVO", max_length=20)),
                ("promovido_em", models.DateTimeField(blank=True, null=True)),
                ("observacoes", models.TextField(blank=True, default="")),
                ("cliente", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="entradas_fila", to="clientes.cliente")),
                ("espaco", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="fila_espera", to="reservas.espacoevento")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="fila_espera", to="core.tenant")),
            ],
            options={
                "verbose_name": "Entrada da Fila de Espera",
                "verbose_name_plural": "Fila de Espera",
                "ordering": ["-pontuacao", "enfileirado_em", "id"],
                "indexes": [models.Index(fields=["espaco", "status", "data_inicio"], name="fila_espaco_status_data_idx")],
            },
        ),
        migrations.CreateModel(
            name="ReservaTemporaria",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Data de criação")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Data de atualização")),
                ("data_inicio", models.DateField()),
                ("data_fim", models.DateField()),
                ("hora_inicio", models.TimeField()),
                ("hora_fim", models.TimeField()),
                ("status", models.CharField(choices=[("ATIVA", "Ativa"), ("EXPIRADA", "Expirada"), ("CONVERTIDA", "Convertida"), ("LIBERADA", "Liberada")], default="ATIVA", max_length=20)),
                ("expira_em", models.DateTimeField()),
                ("valor_estimado_proposta", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("observacoes", models.TextField(blank=True, default="")),
                ("referencia_conversao", models.CharField(blank=True, default="", max_length=100)),
                ("data_conversao", models.DateTimeField(blank=True, null=True)),
                ("data_liberacao", models.DateTimeField(blank=True, null=True)),
                ("motivo_liberacao", models.TextField(blank=True, default="")),
                ("aviso_expiracao_em", models.DateTimeField(blank=True, null=True)),
                ("cliente", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="reservas_temporarias", to="clientes.cliente")),
                ("espaco", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="reservas_temporarias", to="reservas.espacoevento")),
                ("origem_fila", models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="reserva_promovida", to="reservas.entradafilaespera")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="reservas_temporarias", to="core.tenant")),
                ("vendedor", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="reservas_temporarias", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Reserva Temporária",
                "verbose_name_plural": "Reservas Temporárias",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["espaco", "status", "data_inicio"], name="reserva_espaco_status_data_idx"),
                    models.Index(fields=["status", "expira_em"], name="reserva_status_expira_idx"),
                ],
            },
        ),
    ]
