# comercial/settings.py

"""Django settings do back-office comercial (agenda de vendedores e reservas)."""

from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "django-insecure-key-for-development-only")
DEBUG = os.environ.get("DJANGO_DEBUG", "True") == "True"
TESTING = bool(os.environ.get("PYTEST_CURRENT_TEST"))

ALLOWED_HOSTS = [h for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h]

INSTALLED_APPS = [
    # Aplicações do Django
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Aplicações de terceiros
    "rest_framework",
    # Aplicações do projeto
    "core.apps.CoreConfig",
    "clientes.apps.ClientesConfig",
    "agendamentos.apps.AgendamentosConfig",
    "reservas.apps.ReservasConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "comercial.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "APP_DIRS": True,
        "DIRS": [],
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "comercial.wsgi.application"

REDIS_URL = os.environ.get("REDIS_URL") or os.environ.get("REDIS_HOST")
if REDIS_URL and not REDIS_URL.startswith("redis://"):
    REDIS_URL = f"redis://{REDIS_URL}:{os.environ.get('REDIS_PORT', '6379')}/0"


def montar_caches(redis_url: str | None, *, testing: bool = False) -> dict:
    """Redis compartilhado entre workers quando configurado; locmem caso contrário."""
    if redis_url and not testing:
        return {
            "default": {
                "BACKEND": "django.core.cache.backends.redis.RedisCache",
                "LOCATION": redis_url,
                "KEY_PREFIX": "comercial",
            },
        }
    return {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "comercial-default",
        },
    }


CACHES = montar_caches(REDIS_URL, testing=TESTING)

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
        "OPTIONS": {
            "timeout": 30,
        },
    },
}

# Configuração específica para habilitar foreign keys no SQLite
engine_val = DATABASES["default"].get("ENGINE")
if isinstance(engine_val, str) and "sqlite" in engine_val:
    import sqlite3

    def enable_foreign_keys(connection: sqlite3.Connection, **_kwargs: object) -> None:
        """Enable SQLite foreign keys pragma when using sqlite backend."""
        if isinstance(connection, sqlite3.Connection):
            connection.execute("PRAGMA foreign_keys = ON;")

    from django.db.backends.signals import connection_created

    connection_created.connect(enable_foreign_keys)

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]
AUTH_USER_MODEL = "core.CustomUser"

LANGUAGE_CODE = "pt-br"
TIME_ZONE = "America/Sao_Paulo"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

EMAIL_BACKEND = os.environ.get("EMAIL_BACKEND", "django.core.mail.backends.smtp.EmailBackend")
EMAIL_HOST = os.environ.get("EMAIL_HOST", "smtp.gmail.com")
EMAIL_PORT = int(os.environ.get("EMAIL_PORT", "587"))
EMAIL_USE_TLS = os.environ.get("EMAIL_USE_TLS", "True") == "True"
EMAIL_HOST_USER = os.environ.get("EMAIL_HOST_USER", "")
EMAIL_HOST_PASSWORD = os.environ.get("EMAIL_HOST_PASSWORD", "")
DEFAULT_FROM_EMAIL = os.environ.get("DEFAULT_FROM_EMAIL", EMAIL_HOST_USER or "agenda@localhost")

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.IsAuthenticated"],
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 20,
    # Traduz AgendaError e falhas de banco em respostas com ``codigo`` estável
    "EXCEPTION_HANDLER": "shared.api.exception_handler",
}

# =============================
# OTIMIZAÇÕES EM AMBIENTE DE TESTE (pytest)
if TESTING:
    # Hash de senha mais rápido para acelerar criação de usuários nos testes.
    PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
    AUTH_PASSWORD_VALIDATORS = []
    # Evitar envio real / tentativa de conexão SMTP em testes.
    EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
    CELERY_TASK_ALWAYS_EAGER = True
    CELERY_TASK_EAGER_PROPAGATES = True

# ============================================================================
# AGENDA DE VENDEDORES
# ============================================================================
# Exige que a reunião caiba numa regra semanal (quando o vendedor possui regras no dia)
AGENDAMENTOS_EXIGIR_DISPONIBILIDADE = os.environ.get("AGENDAMENTOS_EXIGIR_DISPONIBILIDADE", "False") == "True"
AGENDAMENTOS_REGRAS_CACHE_TTL = int(os.environ.get("AGENDAMENTOS_REGRAS_CACHE_TTL", "60"))
# Base das sugestões quando o vendedor não tem regras no dia
AGENDAMENTOS_HORARIO_COMERCIAL_INICIO = os.environ.get("AGENDAMENTOS_HORARIO_COMERCIAL_INICIO", "08:00")
AGENDAMENTOS_HORARIO_COMERCIAL_FIM = os.environ.get("AGENDAMENTOS_HORARIO_COMERCIAL_FIM", "18:00")
AGENDAMENTOS_CONFLITOS_JANELA_DIAS = int(os.environ.get("AGENDAMENTOS_CONFLITOS_JANELA_DIAS", "30"))

# ============================================================================
# RESERVAS TEMPORÁRIAS E FILA DE ESPERA
# ============================================================================
RESERVAS_TTL_PADRAO_MINUTOS = int(os.environ.get("RESERVAS_TTL_PADRAO_MINUTOS", str(48 * 60)))
# TTL da reserva criada na promoção da fila (0 = usa o padrão)
RESERVAS_TTL_PROMOCAO_MINUTOS = int(os.environ.get("RESERVAS_TTL_PROMOCAO_MINUTOS", "0"))
# Intervalo da varredura periódica de reservas vencidas
RESERVAS_VARREDURA_MINUTOS = int(os.environ.get("RESERVAS_VARREDURA_MINUTOS", "5"))
RESERVAS_AVISO_EXPIRACAO_HORAS = int(os.environ.get("RESERVAS_AVISO_EXPIRACAO_HORAS", "24"))
FILA_ESPERA_ESTRATEGIA_PONTUACAO = os.environ.get(
    "FILA_ESPERA_ESTRATEGIA_PONTUACAO", "reservas.fila.PontuacaoInformada"
)

# ============================================================================
# NOTIFICAÇÕES
# ============================================================================
ENABLE_NOTIFICATIONS = os.environ.get("ENABLE_NOTIFICATIONS", "True") == "True"
NOTIFICACOES_DISPATCHER = os.environ.get("NOTIFICACOES_DISPATCHER", "shared.notificacoes.EmailDispatcher")

# Métricas Prometheus expostas em /metrics
ENABLE_METRICS_ENDPOINT = os.environ.get("ENABLE_METRICS_ENDPOINT", "True") == "True"

# Configuração de SECRET_KEY mais robusta
if not DEBUG and SECRET_KEY.startswith("django-insecure-"):
    import warnings

    warnings.warn(
        "ATENÇÃO: Usando SECRET_KEY insegura em produção! Configure a variável de ambiente DJANGO_SECRET_KEY.",
        RuntimeWarning,
        stacklevel=2,
    )

# Logging estruturado opcional
if os.environ.get("STRUCTURED_LOG_JSON", "False") == "True":
    LOGGING = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "django.utils.log.ServerFormatter",
                "format": '{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}',
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
            },
        },
        "loggers": {
            "": {"handlers": ["console"], "level": "INFO"},
            "django.request": {"handlers": ["console"], "level": "WARNING", "propagate": False},
        },
    }


"""
=============================================================================
CELERY / TAREFAS ASSÍNCRONAS
=============================================================================
Usa Redis como broker/result backend quando REDIS_URL está definido. Sem
Redis cai para um broker em memória (apenas desenvolvimento).
"""

if REDIS_URL:
    CELERY_BROKER_URL = REDIS_URL
    CELERY_RESULT_BACKEND = REDIS_URL
else:
    CELERY_BROKER_URL = "memory://"
    CELERY_RESULT_BACKEND = "rpc://"

CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_ENABLE_UTC = True
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TIME_LIMIT = 60 * 5  # 5 minutos hard limit
CELERY_TASK_SOFT_TIME_LIMIT = 60 * 4  # 4 minutos soft
CELERY_TASK_ACKS_LATE = True
CELERY_WORKER_PREFETCH_MULTIPLIER = 1
CELERY_TASK_DEFAULT_QUEUE = "default"

# Agendamentos periódicos (Celery Beat)
CELERY_BEAT_SCHEDULE = {
    # Persiste EXPIRADA e promove a fila; limita o atraso entre expiração e promoção
    "reservas-varrer-expiradas": {
        "task": "reservas.tasks.varrer_reservas_expiradas",
        "schedule": timedelta(minutes=RESERVAS_VARREDURA_MINUTOS),
    },
    "reservas-avisar-expirando": {
        "task": "reservas.tasks.avisar_reservas_expirando",
        "schedule": timedelta(hours=1),
    },
    "agendamentos-detectar-conflitos-diario": {
        "task": "agendamentos.tasks.detectar_conflitos_agenda",
        "schedule": timedelta(days=1),
    },
}

# Flag para desabilitar agendamentos em certos ambientes (ex: testes)
CELERY_BEAT_DISABLE = os.environ.get("CELERY_BEAT_DISABLE", "False") == "True"
if CELERY_BEAT_DISABLE:
    CELERY_BEAT_SCHEDULE = {}
