import logging
from collections import defaultdict
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from core.models import CustomUser
from shared.notificacoes import notificar

from .conflitos import ConflictDetector

logger = logging.getLogger(__name__)


@shared_task
def detectar_conflitos_agenda(dias=None):
    """Varre as reuniões ativas dos próximos dias em busca de sobreposições legadas.

    Cada vendedor afetado recebe um aviso com os pares conflitantes.
    Retorna o número de pares conflitantes encontrados.
    """
    if dias is None:
        dias = getattr(settings, "AGENDAMENTOS_CONFLITOS_JANELA_DIAS", 30)
    desde = timezone.localdate() - timedelta(days=1)
    conflitos = ConflictDetector.detectar_conflitos_existentes(desde=desde, dias=dias)
    por_vendedor = defaultdict(list)
    for item in conflitos:
        logger.warning(
            "Conflito legado: vendedor %s em %s reuniões %s (%s)",
            item["vendedor_id"],
            item["data"],
            item["reunioes"],
            ", ".join(item["horarios"]),
        )
        por_vendedor[item["vendedor_id"]].append(item)

    emails = dict(CustomUser.objects.filter(pk__in=por_vendedor).values_list("pk", "email"))
    for vendedor_id, itens in por_vendedor.items():
        linhas = [f"{i['data']:%d/%m/%Y}: {' x '.join(i['horarios'])}" for i in itens]
        notificar(
            "conflito_agenda",
            destinatarios=[emails.get(vendedor_id)],
            titulo="Conflitos na sua agenda",
            mensagem="Reuniões sobrepostas encontradas:\n" + "\n".join(linhas),
            contexto={"vendedor_id": vendedor_id, "reunioes": [i["reunioes"] for i in itens]},
        )
    return len(conflitos)
