# coursepay.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du service d'inscription.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, prestataires de paiement)
- Sécurité cookies/session, CORS/hosts
- Paramètres du workflow (délai d'affichage du succès, devise, tables)
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _float_env(name: str, default: float) -> float:
    try:
        return float(_clean_env(os.getenv(name) or "") or default)
    except ValueError:
        return default

# Supabase: URLs et clés (public/anon/service)
# - SUPABASE_URL peut parfois être sans schéma: on préfixe en https:// si nécessaire
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or os.getenv("NEXT_PUBLIC_SUPABASE_URL") or "")
SUPABASE_KEY = _clean_env(os.getenv("SUPABASE_KEY") or os.getenv("SUPABASE_ANON_KEY") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or SUPABASE_KEY)
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Tables / RPC utilisées par le workflow
COURSE_PRICE_TABLE = os.getenv("COURSE_PRICE_TABLE", "masterclass_page_content")
ENROLLMENTS_TABLE = os.getenv("ENROLLMENTS_TABLE", "student_enrollments")
PROFILES_TABLE = os.getenv("PROFILES_TABLE", "profiles")
PROMO_VALIDATE_RPC = os.getenv("PROMO_VALIDATE_RPC", "validate_promo_code")

# Cookies / session signée (porte aussi l'inscription en attente pendant la redirection)
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")
SESSION_SECRET_KEY = _clean_env(os.getenv("SESSION_SECRET_KEY") or "replace_me_with_a_long_random_secret")

# CORS (dev)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]

BASE_URL = _clean_env(os.getenv("BASE_URL") or "http://localhost:8000")

# Retour depuis la page hébergée du prestataire
PAYMENT_CALLBACK_PATH = os.getenv("PAYMENT_CALLBACK_PATH", "/enrollment/callback")
PAYMENT_CURRENCY = _clean_env(os.getenv("PAYMENT_CURRENCY") or "UGX")

# Prestataires de paiement
EVERSEND_API_URL = _clean_env(os.getenv("EVERSEND_API_URL") or "https://api.eversend.co/v1")
EVERSEND_API_KEY = _clean_env(os.getenv("EVERSEND_API_KEY") or "")
FLUTTERWAVE_API_URL = _clean_env(os.getenv("FLUTTERWAVE_API_URL") or "https://api.flutterwave.com/v3")
FLUTTERWAVE_SECRET_KEY = _clean_env(os.getenv("FLUTTERWAVE_SECRET_KEY") or "")
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
PROVIDER_HTTP_TIMEOUT = _float_env("PROVIDER_HTTP_TIMEOUT", 30.0)

# Délai d'affichage de l'écran de succès avant notification + fermeture
SUCCESS_CLOSE_DELAY_SECONDS = _float_env("SUCCESS_CLOSE_DELAY_SECONDS", 2.0)

# Sessions d'inscription abandonnées (onglet fermé): éviction après inactivité, plafond par utilisateur
ENROLLMENT_SESSION_IDLE_SECONDS = _float_env("ENROLLMENT_SESSION_IDLE_SECONDS", 1800.0)
ENROLLMENT_SESSIONS_PER_USER = int(_float_env("ENROLLMENT_SESSIONS_PER_USER", 5))
