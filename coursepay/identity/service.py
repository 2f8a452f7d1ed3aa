"""
Collaborateur d'identité: utilisateur authentifié + valeurs de pré-remplissage.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from . import repository


@dataclass(frozen=True)
class Identity:
    user_id: str
    name: str = ""
    email: str = ""


def get_user_from_token(access_token: str) -> Dict[str, Any]:
    """Normalise l'utilisateur issu de supabase.auth.get_user(access_token):
    - Retourne {id, email, metadata, token}
    """
    raw = repository.get_user_from_access_token(access_token)
    return {
        "id": raw.get("id"),
        "email": raw.get("email"),
        "metadata": raw.get("user_metadata") or {},
        "token": access_token,
    }

def identity_from_user(user: Optional[Dict[str, Any]]) -> Optional[Identity]:
    """
    Construit l'identité du workflow à partir de l'utilisateur authentifié.
    - Le profil applicatif (table profiles) est prioritaire pour nom/email
    - Fallback: metadata.full_name et email du compte Auth
    - None si aucun utilisateur (la phase de paiement échouera en NotAuthenticated)
    """
    if not user or not user.get("id"):
        return None
    user_id = str(user["id"])
    profile = repository.get_profile(user_id) or {}
    metadata = user.get("metadata") or {}
    name = profile.get("name") or metadata.get("full_name") or ""
    email = profile.get("email") or user.get("email") or ""
    return Identity(user_id=user_id, name=name, email=email)
