"""Page cache routes: administrator activation flow and host event intake."""

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from core.container import container
from core.logging import get_logger
from services.page_cache.activation import ActivationManager
from services.page_cache.config_store import ConfigStore
from services.page_cache.exceptions import ActivationError
from services.page_cache.hooks import HookRegistry
from services.page_cache.models import EventEnvelope
from services.page_cache.subscriber import EventSubscriber

logger = get_logger(__name__)
router = APIRouter(prefix="/api/page-cache", tags=["page-cache"])


class ActivationRequest(BaseModel):
    enabled: bool


def get_activation() -> ActivationManager:
    return container.activation()


def get_config_store() -> ConfigStore:
    return container.config_store()


def get_subscriber() -> EventSubscriber:
    return container.subscriber()


def get_hooks() -> HookRegistry:
    return container.hooks()


def activation_failed(e: ActivationError) -> JSONResponse:
    logger.warning("Activation failed", error=str(e), path=e.path)
    return JSONResponse(
        status_code=409,
        content={"success": False, "error": str(e)}
    )


@router.get("/status")
def get_status(activation: ActivationManager = Depends(get_activation)):
    """Boot flag and dropin state, with any problems to fix."""
    return activation.status().model_dump()


@router.post("/activation")
def set_activation(
    request: ActivationRequest,
    activation: ActivationManager = Depends(get_activation)
):
    """Switch page caching on or off: dropin and boot flag together."""
    try:
        rewritten = activation.activate(request.enabled)
    except ActivationError as e:
        return activation_failed(e)

    return {
        "success": True,
        "rewritten": rewritten,
        "state": activation.status().model_dump()
    }


@router.post("/fix")
def fix_activation(activation: ActivationManager = Depends(get_activation)):
    """Bring the dropin and boot flag back in line with the configuration."""
    try:
        rewritten = activation.apply()
    except ActivationError as e:
        return activation_failed(e)

    return {
        "success": True,
        "rewritten": rewritten,
        "state": activation.status().model_dump()
    }


@router.delete("/")
def clean_up(activation: ActivationManager = Depends(get_activation)):
    """Remove the dropin and every cached page."""
    return {"success": activation.clean_up()}


@router.post("/config/reload")
def reload_config(config_store: ConfigStore = Depends(get_config_store)):
    """Pick up settings the host's settings screen just saved."""
    return {"success": True, "config": config_store.reload().model_dump()}


@router.post("/events")
def receive_event(
    envelope: EventEnvelope,
    response: Response,
    subscriber: EventSubscriber = Depends(get_subscriber),
    hooks: HookRegistry = Depends(get_hooks)
):
    """Handle a content event raised by the host."""
    outcome = subscriber.dispatch(hooks, envelope)

    # Bracketed cookie names are illegal keys for the stdlib cookie jar
    for cookie in outcome["cookies"]:
        response.headers.append("set-cookie", cookie.header_value())

    logger.info("Content event handled",
                event_type=envelope.event.type,
                actions=[action.to_dict()["action"] for action in outcome["actions"]])
    return {
        "success": True,
        "actions": [action.to_dict() for action in outcome["actions"]],
        "cookies": [cookie.to_dict() for cookie in outcome["cookies"]]
    }
