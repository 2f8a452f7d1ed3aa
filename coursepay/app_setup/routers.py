"""
Registre central des routers.
- API v1: enrollment (sessions d'inscription, reprise après redirection)
- Health: health_router
"""
from fastapi import FastAPI

from coursepay.enrollment.views import router as enrollment_router
from coursepay.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    app.include_router(enrollment_router)
    app.include_router(health_router)
