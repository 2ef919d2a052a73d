from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, AsyncIterator, Dict, Union

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, StrictInt, StrictStr

from confvault.config import StoreConfig
from confvault.settings.json_settings import JsonSettings

CONFIG = StoreConfig.from_env()

logging.basicConfig(level=CONFIG.log_level)
logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_settings() -> JsonSettings:
    settings = JsonSettings.for_scope(
        CONFIG.api_scope,
        CONFIG.api_application,
        CONFIG.api_file_name,
        encrypted=CONFIG.api_encrypted,
        max_file_size=CONFIG.max_file_size,
        config=CONFIG,
    )
    logger.info("Serving settings file %s", settings.path)
    return settings


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    if get_settings.cache_info().currsize:
        get_settings().close()


app = FastAPI(lifespan=lifespan)


class SettingValueRequest(BaseModel):
    value: Union[StrictInt, StrictStr]


@app.get("/settings")
async def list_settings(
    prefix: str | None = None, settings: JsonSettings = Depends(get_settings)
) -> Dict[str, Any]:
    try:
        return dict(settings.items(prefix))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/settings-file")
async def describe_settings_file(settings: JsonSettings = Depends(get_settings)) -> Dict[str, Any]:
    return {
        "path": str(settings.path) if settings.path else None,
        "enabled": settings.is_enabled,
        "encrypted": settings.is_encrypted,
        "changed": settings.is_changed,
        "has_backup": settings.has_backup(),
        "entries": len(settings),
    }


@app.post("/settings/flush")
async def flush_settings(settings: JsonSettings = Depends(get_settings)) -> Dict[str, bool]:
    if not settings.flush():
        raise HTTPException(status_code=500, detail="Settings could not be written")
    return {"flushed": True}


@app.post("/settings/sync")
async def sync_settings(settings: JsonSettings = Depends(get_settings)) -> Dict[str, int]:
    settings.sync()
    return {"entries": len(settings)}


@app.get("/settings/{key:path}")
async def get_setting(key: str, settings: JsonSettings = Depends(get_settings)) -> Dict[str, Any]:
    try:
        value = settings.get(key)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if value is None:
        raise HTTPException(status_code=404, detail="Setting not found")
    return {"key": key, "value": value}


@app.put("/settings/{key:path}")
async def put_setting(
    key: str, payload: SettingValueRequest, settings: JsonSettings = Depends(get_settings)
) -> Dict[str, Any]:
    try:
        settings.set(key, payload.value)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"key": key, "value": payload.value, "changed": settings.is_changed}


@app.delete("/settings/{key:path}")
async def delete_setting(key: str, settings: JsonSettings = Depends(get_settings)) -> Dict[str, Any]:
    try:
        removed = settings.remove(key)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if not removed:
        raise HTTPException(status_code=404, detail="Setting not found")
    return {"key": key, "removed": True}
