# streamgate/services/api/routers/health.py
from __future__ import annotations
from fastapi import APIRouter, Depends
from streamgate.common.settings import Settings
from streamgate.services.api.deps import get_app_settings

router = APIRouter(tags=["health"])


@router.get("/health")
def health(s: Settings = Depends(get_app_settings)):
    return {
        "status": "ok",
        "app": s.app_name,
        "env": s.app_env,
    }
