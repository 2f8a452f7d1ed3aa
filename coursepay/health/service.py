from urllib.parse import urlparse
import socket

from coursepay.config import SUPABASE_URL, COURSE_PRICE_TABLE, ENROLLMENTS_TABLE, PROFILES_TABLE
from coursepay.infra.supabase_client import get_supabase

# Tables lues ou écrites par le workflow d'inscription
CHECKED_TABLES = (COURSE_PRICE_TABLE, ENROLLMENTS_TABLE, PROFILES_TABLE)

def _check_table(client, name: str):
    try:
        res = client.table(name).select("id").limit(1).execute()
        return {"ok": True, "rows": len(res.data or [])}
    except Exception as e:
        return {"ok": False, "error": str(e)}

def health_supabase_info():
    """
    Diagnostic Supabase: résolution DNS de l'hôte puis lecture d'une ligne
    par table du workflow (catalogue, inscriptions, profils).
    - Une table absente apparaît avec ok=False (même cas que SetupRequired au paiement)
    """
    parsed = urlparse(SUPABASE_URL) if SUPABASE_URL else None
    hostname = parsed.hostname if parsed else None
    info = {
        "supabase_url": SUPABASE_URL,
        "hostname": hostname,
        "dns_ok": None,
        "dns_error": None,
        "connect_ok": False,
        "error": None,
        "tables": {},
    }
    if hostname:
        try:
            socket.getaddrinfo(hostname, 443)
            info["dns_ok"] = True
        except OSError as e:
            info["dns_ok"] = False
            info["dns_error"] = str(e)

    try:
        client = get_supabase()
        for table in CHECKED_TABLES:
            info["tables"][table] = _check_table(client, table)
        info["connect_ok"] = True
    except Exception as e:
        info["error"] = str(e)
    return info
