from django.urls import include, path
from rest_framework import routers

from .api_views import BloqueioViewSet, DisponibilidadeViewSet, ReuniaoViewSet

router = routers.DefaultRouter()
router.register(r"reunioes", ReuniaoViewSet, basename="reuniao")
router.register(r"disponibilidades", DisponibilidadeViewSet, basename="disponibilidade")
router.register(r"bloqueios", BloqueioViewSet, basename="bloqueio")

app_name = "agendamentos"
urlpatterns = [
    path("", include(router.urls)),
]
