"""
Appel du service externe de validation des codes promo (RPC Supabase).
"""
from decimal import Decimal
from typing import Any, Dict

import coursepay.infra.supabase_client as supabase_client
from coursepay.config import PROMO_VALIDATE_RPC

# module coursepay.promo.repository
def call_validate_promo_code(code: str, course_id: str, base_price: Decimal) -> Dict[str, Any]:
    """
    Exécute la RPC de validation.
    - Paramètres: p_code (déjà normalisé), p_course_id, p_base_price
    - Retour brut: {valid, discount_percentage, discount_amount, final_price, error}
    - Les erreurs réseau/PostgREST remontent à l'appelant (le client décide de la politique).
    """
    res = (
        supabase_client.get_supabase()
        .rpc(
            PROMO_VALIDATE_RPC,
            {"p_code": code, "p_course_id": course_id, "p_base_price": float(base_price)},
        )
        .execute()
    )
    data = res.data
    # Une fonction SQL "returns table" renvoie une liste d'une ligne
    if isinstance(data, list):
        data = data[0] if data else {}
    return data or {}
