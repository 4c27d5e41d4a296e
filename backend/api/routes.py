"""REST API routes for Stream Booth."""

import logging

from fastapi import APIRouter, HTTPException, Response
from pydantic import BaseModel, Field

from gamestream.errors import (
    GameStreamError,
    HostError,
    HostIOError,
    InvalidResponseError,
    NotSupported4KError,
    OperationFailedError,
    PairingFailedError,
    UnsupportedVersionError,
    WrongStateError,
)
from gamestream.models import StreamLaunchRequest
from gamestream.pairing import generate_pin
from hosts.manager import UnknownHostError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

# Injected by main.py at startup
_host_manager = None

ERROR_STATUS = (
    (WrongStateError, 409),
    (PairingFailedError, 403),
    (UnsupportedVersionError, 422),
    (NotSupported4KError, 422),
    (HostIOError, 504),
    (HostError, 502),
    (InvalidResponseError, 502),
    (OperationFailedError, 502),
)


def init_routes(host_manager) -> None:
    """Inject service dependencies into the routes module."""
    global _host_manager
    _host_manager = host_manager


def _call(operation, *args):
    """Run a manager operation, translating failures into HTTP errors."""
    try:
        return operation(*args)
    except UnknownHostError:
        raise HTTPException(status_code=404, detail="Host not found")
    except GameStreamError as e:
        status = next(
            (code for error_type, code in ERROR_STATUS if isinstance(e, error_type)), 500
        )
        logger.warning(f"{getattr(operation, '__name__', 'operation')} failed: {e}")
        raise HTTPException(status_code=status, detail=str(e))


def _host_payload(host_id, record) -> dict:
    return {"host_id": host_id, **record.model_dump(mode="json")}


# --- Status ---

@router.get("/status")
def get_status():
    client = _host_manager.client
    return {
        "unique_id": client.identity.unique_id,
        "last_error": client.last_error,
    }


# --- Hosts ---

class AddHostBody(BaseModel):
    address: str = Field(min_length=1)


@router.get("/hosts")
def list_hosts():
    """Return all known hosts."""
    hosts = _host_manager.get_hosts()
    return {"hosts": [_host_payload(h, r) for h, r in hosts.items()]}


@router.post("/hosts")
def add_host(body: AddHostBody):
    try:
        host_id, record = _call(_host_manager.add_host, body.address)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _host_payload(host_id, record)


@router.delete("/hosts/{host_id}")
def remove_host(host_id: str):
    _call(_host_manager.remove_host, host_id)
    return {"status": "removed"}


@router.post("/hosts/{host_id}/refresh")
def refresh_host(host_id: str):
    return _host_payload(host_id, _call(_host_manager.refresh, host_id))


# --- Pairing ---

class PairBody(BaseModel):
    pin: str = Field(pattern=r"^\d{4}$")


@router.post("/hosts/{host_id}/pin")
def new_pin(host_id: str):
    """Generate a PIN for the user to type on the host before calling /pair."""
    if host_id not in _host_manager.get_hosts():
        raise HTTPException(status_code=404, detail="Host not found")
    return {"pin": generate_pin()}


@router.post("/hosts/{host_id}/pair")
def pair_host(host_id: str, body: PairBody):
    return _host_payload(host_id, _call(_host_manager.pair, host_id, body.pin))


@router.post("/hosts/{host_id}/unpair")
def unpair_host(host_id: str):
    return _host_payload(host_id, _call(_host_manager.unpair, host_id))


# --- Apps & streams ---

@router.get("/hosts/{host_id}/apps")
def list_apps(host_id: str):
    apps = _call(_host_manager.list_apps, host_id)
    return {"apps": [a.model_dump() for a in apps]}


@router.get("/hosts/{host_id}/apps/{app_id}/boxart")
def box_art(host_id: str, app_id: int):
    data = _call(_host_manager.fetch_box_art, host_id, app_id)
    return Response(content=data, media_type="image/png")


class LaunchBody(BaseModel):
    app_id: int
    stream: StreamLaunchRequest = StreamLaunchRequest()


@router.post("/hosts/{host_id}/launch")
def launch_app(host_id: str, body: LaunchBody):
    session = _call(_host_manager.start_app, host_id, body.stream, body.app_id)
    return session.model_dump(mode="json")


@router.post("/hosts/{host_id}/quit")
def quit_app(host_id: str):
    return _host_payload(host_id, _call(_host_manager.quit_app, host_id))
