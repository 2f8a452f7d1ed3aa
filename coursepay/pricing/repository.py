"""
Lecture du prix de base d'un cours (collaborateur catalogue).
"""
from typing import Any

import coursepay.infra.supabase_client as supabase_client
from coursepay.config import COURSE_PRICE_TABLE

# module coursepay.pricing.repository
def fetch_course_price(course_id: str) -> Any:
    """
    Retourne la valeur brute de course_price pour le cours.
    - Lève en cas d'erreur (ligne absente, réseau): la politique de repli est dans le service.
    """
    res = (
        supabase_client.get_supabase()
        .table(COURSE_PRICE_TABLE)
        .select("course_price")
        .eq("id", course_id)
        .single()
        .execute()
    )
    return (res.data or {}).get("course_price")
