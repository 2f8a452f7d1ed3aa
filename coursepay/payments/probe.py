"""
Sonde préalable du stockage des inscriptions.

Si la table n'existe pas (migrations non jouées), on échoue avant tout
paiement: inutile de débiter un utilisateur si l'inscription ne peut pas
être enregistrée.
"""
from typing import Callable, Optional
import logging

from postgrest.exceptions import APIError
from starlette.concurrency import run_in_threadpool

from coursepay.enrollment.errors import SetupRequired
from . import repository

logger = logging.getLogger(__name__)

# PGRST205: table absente du cache de schéma, 42P01: undefined_table (Postgres)
NOT_PROVISIONED_CODES = {"PGRST116", "PGRST205", "42P01"}

async def check_enrollment_storage(probe: Optional[Callable[[], None]] = None) -> None:
    probe = probe or repository.probe_enrollments_table
    try:
        await run_in_threadpool(probe)
    except APIError as e:
        if e.code in NOT_PROVISIONED_CODES:
            logger.error("payments.probe enrollment storage not provisioned code=%s", e.code)
            raise SetupRequired()
        logger.warning("payments.probe unexpected storage error code=%s: %s", e.code, e.message)
    except Exception:
        # Sonde best-effort: seul le signal "non provisionné" bloque le paiement
        logger.exception("payments.probe enrollment storage check failed")
