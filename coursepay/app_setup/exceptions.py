"""
Gestionnaires d'exceptions enregistrés par la factory.
- HTTPException: corps JSON standard {"detail": ...}
- InvalidTransition / CloseNotAllowed: action incompatible avec l'état courant -> 409
"""
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from coursepay.enrollment.errors import InvalidTransition

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def json_http_exception(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))

    @app.exception_handler(InvalidTransition)
    async def invalid_transition(request: Request, exc: InvalidTransition):
        logger.info("enrollment.invalid_transition path=%s action=%s state=%s", request.url.path, exc.action, exc.state_name)
        return JSONResponse(status_code=409, content={"detail": str(exc), "state": exc.state_name})
