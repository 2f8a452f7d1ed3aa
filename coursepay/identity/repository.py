"""
Accès aux données d'identité (Supabase Auth + table des profils).
"""
from typing import Any, Dict, Optional
import logging

import coursepay.infra.supabase_client as supabase_client
from coursepay.config import PROFILES_TABLE

logger = logging.getLogger(__name__)

# module coursepay.identity.repository
def get_user_from_access_token(access_token: str) -> Dict[str, Any]:
    """Récupère et normalise l'utilisateur depuis supabase.auth.get_user(access_token)."""
    res = supabase_client.get_supabase().auth.get_user(access_token)
    user = getattr(res, "user", None)
    if user is None:
        return {}
    return {
        "id": getattr(user, "id", None),
        "email": getattr(user, "email", None),
        "user_metadata": getattr(user, "user_metadata", None) or {},
    }

def get_profile(user_id: str) -> Optional[dict]:
    """
    Profil applicatif (nom, email) de l'utilisateur.
    - Retour: dict ou None si introuvable/erreur
    """
    if not user_id:
        return None
    try:
        res = (
            supabase_client.get_supabase()
            .table(PROFILES_TABLE)
            .select("id, name, email")
            .eq("id", user_id)
            .single()
            .execute()
        )
        return res.data or None
    except Exception:
        logger.exception("identity.repository.get_profile failed user_id=%s", user_id)
        return None
