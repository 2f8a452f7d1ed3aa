"""
Accès aux données pour les inscriptions (table student_enrollments).
"""
from decimal import Decimal
from typing import Any, Dict, Optional
import logging

import coursepay.infra.supabase_client as supabase_client
from coursepay.config import ENROLLMENTS_TABLE

logger = logging.getLogger(__name__)

# module coursepay.payments.repository
def probe_enrollments_table() -> None:
    """
    Sonde d'existence (lecture d'une ligne au plus).
    - Laisse remonter postgrest.exceptions.APIError: le code d'erreur est interprété par la sonde.
    """
    (
        supabase_client.get_supabase()
        .table(ENROLLMENTS_TABLE)
        .select("id")
        .limit(1)
        .execute()
    )

def create_enrollment(
    *,
    user_id: str,
    course_id: str,
    amount_paid: Decimal,
    payment_method: str,
    payment_status: str,
) -> Optional[Dict[str, Any]]:
    """
    Insert via service-role; retourne la ligne créée (avec id) ou None si échec.
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ENROLLMENTS_TABLE)
            .insert({
                "user_id": user_id,
                "course_id": course_id,
                "amount_paid": float(amount_paid),
                "payment_method": payment_method,
                "payment_status": payment_status,
            })
            .execute()
        )
        rows = res.data or []
        return rows[0] if isinstance(rows, list) and rows else None
    except Exception:
        logger.exception("payments.repository.create_enrollment failed user_id=%s course_id=%s", user_id, course_id)
        return None

def update_enrollment(enrollment_id: str, fields: Dict[str, Any]) -> bool:
    """Met à jour une inscription (retourne True si au moins une ligne mise à jour)."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ENROLLMENTS_TABLE)
            .update(fields)
            .eq("id", enrollment_id)
            .execute()
        )
        return len(res.data or []) > 0
    except Exception:
        logger.exception("payments.repository.update_enrollment failed enrollment_id=%s", enrollment_id)
        return False
