from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .disponibilidade import bump_regras_cache_version
from .models import BloqueioVendedor, DisponibilidadeVendedor


@receiver(post_save, sender=DisponibilidadeVendedor)
@receiver(post_delete, sender=DisponibilidadeVendedor)
@receiver(post_save, sender=BloqueioVendedor)
@receiver(post_delete, sender=BloqueioVendedor)
def invalidar_cache_regras(sender, instance, **kwargs):
    """Qualquer escrita em regras/bloqueios (inclusive pelo admin) invalida o cache de leitura."""
    bump_regras_cache_version()
