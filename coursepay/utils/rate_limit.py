from typing import Dict, Any
from fastapi import Request, Response, HTTPException
import hashlib
import os
import time

from coursepay.utils.security import COOKIE_NAME

def _credential_fingerprint(req: Request) -> str | None:
    # Bearer prioritaire (clients API), puis cookie de session
    auth_header = req.headers.get("Authorization", "")
    token = auth_header[7:].strip() if auth_header.startswith("Bearer ") else req.cookies.get(COOKIE_NAME)
    if not token:
        return None
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]

def rate_limit_key(req: Request) -> str:
    """
    Clé de limitation: utilisateur (token hashé) sinon IP, et route *templatée*
    (/sessions/{session_id}/pay) pour qu'un même utilisateur ne contourne pas
    la limite en ouvrant plusieurs sessions d'inscription.
    """
    route = req.scope.get("route")
    path = getattr(route, "path", None) or req.url.path
    fingerprint = _credential_fingerprint(req)
    if fingerprint:
        return f"user:{fingerprint}:{path}"
    ip = req.client.host if req.client else "local"
    return f"ip:{ip}:{path}"

def optional_rate_limit(times: int, seconds: int):
    async def _dep(request: Request, response: Response):
        # Forcer le fallback mémoire en DEV si demandé
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            now = time.time()
            key = rate_limit_key(request)
            store = getattr(request.app.state, "_rl_store", {})
            hits = [t for t in store.get(key, []) if now - t < seconds]
            if len(hits) >= times:
                raise HTTPException(status_code=429, detail="Too Many Requests")
            hits.append(now)
            store[key] = hits
            request.app.state._rl_store = store
            return

        if getattr(request.app.state, "rate_limit_enabled", None) is False:
            return

        try:
            from fastapi_limiter.depends import RateLimiter
            async def _identifier(req: Request) -> str:
                return rate_limit_key(req)
            return await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request, response)
        except HTTPException:
            raise
        except Exception:
            # fastapi-limiter indisponible (Redis down, SCRIPT non supporté): pas de 429
            return
    return _dep

def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    try:
        from fastapi_limiter import FastAPILimiter
        ready = getattr(FastAPILimiter, "redis", None) is not None
    except Exception:
        ready = False
    return {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": ready,
        "backend": "redis" if ready else ("memory" if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1" else None),
    }
