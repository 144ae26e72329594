import logging

from celery import shared_task

from .services import ReservaTemporariaService

logger = logging.getLogger(__name__)


@shared_task
def varrer_reservas_expiradas():
    """Persiste EXPIRADA nas reservas vencidas e promove a fila de espera.

    Idempotente: rodadas concorrentes ou repetidas não promovem em dobro.
    """
    total = ReservaTemporariaService.varrer_expiradas()
    if total:
        logger.info("varrer_reservas_expiradas: %s reserva(s) expirada(s)", total)
    return total


@shared_task
def avisar_reservas_expirando(horas=None):
    """Notifica titulares de reservas que vencem nas próximas ``horas``."""
    return ReservaTemporariaService.avisar_expiracao(horas=horas)
