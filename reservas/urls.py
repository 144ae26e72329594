from django.urls import include, path
from rest_framework import routers

from .api_views import EspacoEventoViewSet, FilaEsperaViewSet, ReservaTemporariaViewSet

router = routers.DefaultRouter()
router.register(r"espacos", EspacoEventoViewSet, basename="espaco")
router.register(r"fila-espera", FilaEsperaViewSet, basename="fila-espera")
router.register(r"temporarias", ReservaTemporariaViewSet, basename="reserva")

app_name = "reservas"
urlpatterns = [
    path("", include(router.urls)),
]
