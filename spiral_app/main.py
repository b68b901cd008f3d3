# spiral_app/main.py

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from spiral_app import __version__
from spiral_app.config.constants import EPISODE_PAGE_SIZE
from spiral_app.config.settings import settings
from spiral_app.core.content_gate import ContentGate
from spiral_app.core.episode_service import EpisodeService
from spiral_app.core.errors import (
    AccessDenied,
    LimitReached,
    SpiralError,
    UnknownWidget,
    ValidationFailed,
)
from spiral_app.core.membership import MembershipManager
from spiral_app.core.registry import default_registry
from spiral_app.core.utils import get_client_ip
from spiral_app.persistence import init_db
from spiral_app.persistence.database import get_db

# Configure logging
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        init_db()
        logger.info("Database initialized check complete.")
    except Exception as db_init_e:
        logger.exception("Error during database initialization check: %s", db_init_e)
    yield


app = FastAPI(title="SpiralEngine API", version=__version__, lifespan=lifespan)

# Widgets are stateless; one registry serves every request
registry = default_registry()


# --- Pydantic models ---
class EpisodeRequest(BaseModel):
    user_id: int
    data: Dict[str, Any] = Field(default_factory=dict, description="Raw widget form values.")


class EpisodeResponse(BaseModel):
    message: str
    episode_id: int
    severity: int


class EpisodePage(BaseModel):
    episodes: List[Dict[str, Any]]
    has_more: bool


class MembershipRequest(BaseModel):
    tier: str
    expires_at: Optional[datetime] = None
    custom_limits: Optional[Dict[str, Any]] = None
    membership_level: Optional[str] = Field(
        None, description="Content ladder level (discovery, explorer, navigator, voyager)."
    )


class MembershipResponse(BaseModel):
    user_id: int
    tier: str
    status: str
    expires_at: Optional[datetime] = None
    membership_level: str


class WidgetToggleRequest(BaseModel):
    enabled: bool


class WidgetSettingsRequest(BaseModel):
    settings: Dict[str, Any]


# --- Helpers ---
def get_service(db: Session = Depends(get_db)) -> EpisodeService:
    return EpisodeService(db, registry)


def to_http_error(error: SpiralError) -> HTTPException:
    """Maps a domain error onto the HTTP status the client expects."""
    detail = {"message": error.message, "code": error.code}
    if isinstance(error, ValidationFailed):
        detail["errors"] = error.errors
        return HTTPException(status_code=400, detail=detail)
    if isinstance(error, UnknownWidget):
        return HTTPException(status_code=404, detail=detail)
    if isinstance(error, AccessDenied):
        return HTTPException(status_code=403, detail=detail)
    if isinstance(error, LimitReached):
        return HTTPException(status_code=429, detail=detail)
    return HTTPException(status_code=400, detail=detail)


# --- Widgets ---
@app.get("/widgets")
async def list_widgets_endpoint(
    user_id: Optional[int] = None, service: EpisodeService = Depends(get_service)
):
    try:
        return {"widgets": service.list_widgets(user_id)}
    except Exception as e:
        logger.exception("Error listing widgets for user %s: %s", user_id, e)
        raise HTTPException(status_code=500, detail=f"Failed to list widgets: {e}")


@app.get("/widgets/{widget_id}/schema")
async def widget_schema_endpoint(
    widget_id: str,
    user_id: Optional[int] = None,
    service: EpisodeService = Depends(get_service),
):
    try:
        return service.get_schema(widget_id, user_id)
    except SpiralError as e:
        raise to_http_error(e)
    except Exception as e:
        logger.exception("Error building schema for %s: %s", widget_id, e)
        raise HTTPException(status_code=500, detail=f"Failed to build schema: {e}")


@app.post("/widgets/{widget_id}/episodes", response_model=EpisodeResponse)
async def save_episode_endpoint(
    widget_id: str,
    payload: EpisodeRequest,
    request: Request,
    service: EpisodeService = Depends(get_service),
):
    """
    Validates and stores one widget submission. Validation problems come
    back as 400 with per-field messages under ``detail.errors``.
    """
    client_ip = get_client_ip(request.headers, request.client.host if request.client else None)
    try:
        episode = service.save_episode(
            widget_id,
            payload.user_id,
            payload.data,
            client_ip=client_ip,
            user_agent=request.headers.get("user-agent", ""),
        )
        return EpisodeResponse(
            message="Episode saved successfully!",
            episode_id=episode.id,
            severity=episode.severity,
        )
    except SpiralError as e:
        logger.info("Episode for %s rejected (user %s): %s", widget_id, payload.user_id, e.code)
        raise to_http_error(e)
    except Exception as e:
        logger.exception("Error saving %s episode for user %s: %s", widget_id, payload.user_id, e)
        raise HTTPException(status_code=500, detail=f"Failed to save episode: {e}")


@app.get("/widgets/{widget_id}/episodes", response_model=EpisodePage)
async def list_episodes_endpoint(
    widget_id: str,
    user_id: int,
    limit: int = Query(EPISODE_PAGE_SIZE, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: EpisodeService = Depends(get_service),
):
    try:
        episodes, has_more = service.list_episodes(user_id, widget_id, limit=limit, offset=offset)
        return EpisodePage(episodes=episodes, has_more=has_more)
    except SpiralError as e:
        raise to_http_error(e)
    except Exception as e:
        logger.exception("Error listing %s episodes for user %s: %s", widget_id, user_id, e)
        raise HTTPException(status_code=500, detail=f"Failed to load episodes: {e}")


@app.put("/widgets/{widget_id}/enabled")
async def toggle_widget_endpoint(
    widget_id: str,
    payload: WidgetToggleRequest,
    service: EpisodeService = Depends(get_service),
):
    try:
        service.registry.get(widget_id)
        if payload.enabled:
            service.widget_settings.enable(widget_id)
        else:
            service.widget_settings.disable(widget_id)
        return {"widget_id": widget_id, "enabled": service.widget_settings.is_enabled(widget_id)}
    except SpiralError as e:
        raise to_http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Error toggling widget %s: %s", widget_id, e)
        raise HTTPException(status_code=500, detail=str(e))


@app.put("/widgets/{widget_id}/settings")
async def widget_settings_endpoint(
    widget_id: str,
    payload: WidgetSettingsRequest,
    service: EpisodeService = Depends(get_service),
):
    try:
        service.registry.get(widget_id)
        return {"widget_id": widget_id, "settings": service.widget_settings.update_settings(widget_id, payload.settings)}
    except SpiralError as e:
        raise to_http_error(e)
    except Exception as e:
        logger.exception("Error updating settings for %s: %s", widget_id, e)
        raise HTTPException(status_code=500, detail=str(e))


# --- Episodes ---
@app.delete("/episodes/{episode_id}")
async def delete_episode_endpoint(
    episode_id: int, user_id: int, service: EpisodeService = Depends(get_service)
):
    try:
        deleted = service.delete_episode(user_id, episode_id)
    except SpiralError as e:
        raise to_http_error(e)
    except Exception as e:
        logger.exception("Error deleting episode %s for user %s: %s", episode_id, user_id, e)
        raise HTTPException(status_code=500, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Episode {episode_id} not found.")
    return {"detail": "Episode deleted", "episode_id": episode_id}


# --- Users ---
@app.get("/users/{user_id}/export")
async def export_endpoint(
    user_id: int,
    widget_id: Optional[str] = None,
    service: EpisodeService = Depends(get_service),
):
    try:
        if widget_id:
            service.registry.get(widget_id)
        content = service.export_csv(user_id, widget_id)
    except SpiralError as e:
        raise to_http_error(e)
    except Exception as e:
        logger.exception("Error exporting episodes for user %s: %s", user_id, e)
        raise HTTPException(status_code=500, detail=str(e))
    filename = "spiral-%s-%s.csv" % (user_id, widget_id or "all")
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="%s"' % filename},
    )


@app.get("/users/{user_id}/analytics/{widget_id}")
async def analytics_endpoint(
    user_id: int,
    widget_id: str,
    days: int = Query(30, ge=1, le=365),
    service: EpisodeService = Depends(get_service),
):
    try:
        return service.analytics(user_id, widget_id, days=days)
    except SpiralError as e:
        raise to_http_error(e)
    except Exception as e:
        logger.exception("Error analysing %s for user %s: %s", widget_id, user_id, e)
        raise HTTPException(status_code=500, detail=str(e))


@app.put("/users/{user_id}/membership", response_model=MembershipResponse)
async def membership_endpoint(
    user_id: int, payload: MembershipRequest, db: Session = Depends(get_db)
):
    manager = MembershipManager(db)
    try:
        membership = manager.update_tier(
            user_id,
            payload.tier,
            expires_at=payload.expires_at,
            custom_limits=payload.custom_limits,
        )
        if payload.membership_level:
            manager.set_membership_level(user_id, payload.membership_level)
        return MembershipResponse(
            user_id=user_id,
            tier=membership.tier,
            status=membership.status,
            expires_at=membership.expires_at,
            membership_level=manager.get_membership_level(user_id),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Error updating membership for user %s: %s", user_id, e)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/memberships/expire")
async def expire_memberships_endpoint(db: Session = Depends(get_db)):
    try:
        expired = MembershipManager(db).check_expirations()
        return {"expired_user_ids": expired, "count": len(expired)}
    except Exception as e:
        logger.exception("Error expiring memberships: %s", e)
        raise HTTPException(status_code=500, detail=str(e))


# --- Content ---
@app.get("/content/{tag}/access")
async def content_access_endpoint(
    tag: str,
    user_id: Optional[int] = None,
    level: Optional[str] = None,
    db: Session = Depends(get_db),
):
    try:
        return ContentGate(db).check_access(user_id, tag, required_level=level)
    except Exception as e:
        logger.exception("Error checking access to '%s' for user %s: %s", tag, user_id, e)
        raise HTTPException(status_code=500, detail=str(e))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("spiral_app.main:app", host="0.0.0.0", port=8000, reload=True)
