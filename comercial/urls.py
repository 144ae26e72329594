"""Configuração principal de URLs do back-office comercial.

Inclui as APIs de agenda e reservas, o admin e o endpoint /metrics (Prometheus).
"""

from __future__ import annotations

import json

from django.conf import settings
from django.contrib import admin
from django.http import HttpRequest, HttpResponse
from django.urls import include, path
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest


def metrics_view(_request: HttpRequest) -> HttpResponse:
    """Endpoint de métricas Prometheus (desligável por ``ENABLE_METRICS_ENDPOINT``)."""
    if not getattr(settings, "ENABLE_METRICS_ENDPOINT", True):
        return HttpResponse(
            json.dumps({"status": "disabled"}),
            status=404,
            content_type="application/json",
        )
    try:
        output = generate_latest()
        return HttpResponse(output, content_type=CONTENT_TYPE_LATEST)
    except (ValueError, RuntimeError):  # falhas previsíveis ao gerar métricas
        return HttpResponse(
            json.dumps({"status": "error", "detail": "Falha ao gerar métricas"}),
            status=500,
            content_type="application/json",
        )


urlpatterns = [
    path("admin/", admin.site.urls),
    path("metrics/", metrics_view, name="metrics"),
    path("api/agendamentos/", include("agendamentos.urls", namespace="agendamentos")),
    path("api/reservas/", include("reservas.urls", namespace="reservas")),
]
