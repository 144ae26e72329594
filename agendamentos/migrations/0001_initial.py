import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("clientes", "0001_initial"),
        ("core", "0001_initial"),
        ("reservas", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="DisponibilidadeVendedor",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Data de criação")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Data de atualização")),
                ("dia_semana", models.PositiveSmallIntegerField(choices=[(0, "Domingo"), (1, "Segunda-feira"), (2, "Terça-feira"), (3, "Quarta-feira"), (4, "Quinta-feira"), (5, "Sexta-feira"), (6, "Sábado")])),
                ("hora_inicio", models.TimeField()),
                ("hora_fim", models.TimeField()),
                ("cidade", models.CharField(blank=True, default="", max_length=100)),
                ("canal", models.CharField(blank=True, choices=[("presencial", "Presencial"), ("virtual", "Virtual")], default="", max_length=20)),
                ("ativo", models.BooleanField(default=True)),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="disponibilidades_vendedor", to="core.tenant")),
                ("vendedor", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="disponibilidades", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Disponibilidade do Vendedor",
                "verbose_name_plural": "Disponibilidades dos Vendedores",
                "ordering": ["vendedor", "dia_semana", "hora_inicio"],
                "indexes": [models.Index(fields=["tenant", "vendedor", "dia_semana"], name="disp_tenant_vend_dia_idx")],
            },
        ),
        migrations.CreateModel(
            name="BloqueioVendedor",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Data de criação")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Data de atualização")),
                ("data_inicio", models.DateField()),
                ("data_fim", models.DateField()),
                ("hora_inicio", models.TimeField(blank=True, null=True)),
                ("hora_fim", models.TimeField(blank=True, null=True)),
                ("tipo", models.CharField(choices=[("ferias", "Férias"), ("folga", "Folga"), ("evento", "Evento"), ("outro", "Outro")], default="outro", max_length=20)),
                ("motivo", models.TextField(blank=True, default="")),
                ("ativo", models.BooleanField(default=True)),
                ("criado_por", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="bloqueios_criados", to=settings.AUTH_USER_MODEL)),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="bloqueios_vendedor", to="core.tenant")),
                ("vendedor", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="bloqueios", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Bloqueio de Agenda",
                "verbose_name_plural": "Bloqueios de Agenda",
                "ordering": ["-data_inicio"],
                "indexes": [models.Index(fields=["tenant", "vendedor", "data_inicio", "data_fim"], name="bloqueio_tenant_vend_data_idx")],
            },
        ),
        migrations.CreateModel(
            name="Reuniao",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Data de criação")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Data de atualização")),
                ("titulo", models.CharField(blank=True, default="", max_length=200)),
                ("data", models.DateField()),
                ("hora_inicio", models.TimeField()),
                ("hora_fim", models.TimeField()),
                ("status", models.CharField(choices=[("AGENDADA", "Agendada"), ("CONFIRMADA", "Confirmada"), ("REAGENDADA", "Reagendada"), ("CANCELADA", "Cancelada"), ("CONCLUIDA", "Concluída")], default="AGENDADA", max_length=20)),
                ("cidade", models.CharField(blank=True, default="", max_length=100)),
                ("canal", models.CharField(blank=True, choices=[("presencial", "Presencial"), ("virtual", "Virtual")], default="", max_length=20)),
                ("confirmada_cliente", models.BooleanField(default=False)),
                ("confirmada_vendedor", models.BooleanField(default=False)),
                ("observacoes", models.TextField(blank=True, default="")),
                ("motivo_cancelamento", models.TextField(blank=True, default="")),
                ("cancelada_em", models.DateTimeField(blank=True, null=True)),
                ("cliente", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="reunioes", to="clientes.cliente")),
                ("reserva_temporaria", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="reunioes", to="reservas.reservatemporaria")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="reunioes", to="core.tenant")),
                ("vendedor", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="reunioes_vendedor", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Reunião",
                "verbose_name_plural": "Reuniões",
                "ordering": ["data", "hora_inicio", "id"],
                "indexes": [
                    models.Index(fields=["tenant", "vendedor", "data"], name="reuniao_tenant_vend_data_idx"),
                    models.Index(fields=["tenant", "cliente", "data"], name="reuniao_tenant_cli_data_idx"),
                    models.Index(fields=["tenant", "status"], name="reuniao_tenant_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ResultadoReuniao",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Data de criação")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Data de atualização")),
                ("resultado", models.CharField(choices=[("SUCESSO", "Sucesso"), ("CONVERSAO", "Conversão"), ("SEM_INTERESSE", "Sem interesse"), ("FOLLOW_UP", "Follow-up"), ("PROPOSTA_ENVIADA", "Proposta enviada")], max_length=20)),
                ("valor_estimado_negocio", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("proximos_passos", models.TextField(blank=True, default="")),
                ("data_follow_up", models.DateField(blank=True, null=True)),
                ("observacoes", models.TextField(blank=True, default="")),
                ("reuniao", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="resultado", to="agendamentos.reuniao")),
            ],
            options={
                "verbose_name": "Resultado de Reunião",
                "verbose_name_plural": "Resultados de Reuniões",
            },
        ),
        migrations.CreateModel(
            name="HistoricoReuniao",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Data de criação")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Data de atualização")),
                ("tipo_evento", models.CharField(max_length=30)),
                ("de_status", models.CharField(blank=True, max_length=20, null=True)),
                ("para_status", models.CharField(blank=True, max_length=20, null=True)),
                ("motivo", models.TextField(blank=True, null=True)),
                ("diff", models.JSONField(blank=True, null=True)),
                ("reuniao", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="historico", to="agendamentos.reuniao")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Histórico de Reunião",
                "verbose_name_plural": "Históricos de Reunião",
                "ordering": ["-created_at", "-id"],
            },
        ),
    ]
