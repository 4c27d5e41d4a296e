"""App enumeration and stream launch, resume and quit."""

import logging
import os

from config import LAUNCH_QUERY_PARAMETERS, UNIQUE_ID
from gamestream.document import HostDocument
from gamestream.errors import NotSupported4KError, OperationFailedError
from gamestream.models import App, HostRecord, StreamLaunchRequest, StreamSession
from gamestream.transport import RequestTimeout, base_url

logger = logging.getLogger(__name__)

UHD_HEIGHT = 2160
OPTIMIZED_MAX_FPS = 60
REMOTE_INPUT_KEY_SIZE = 16
REMOTE_INPUT_KEY_ID = 0

BOX_ART_ASSET_TYPE = 2
BOX_ART_ASSET_INDEX = 0


class SessionController:
    """Everything done against an already discovered (and usually paired) host."""

    def __init__(
        self,
        transport,
        unique_id: str = UNIQUE_ID,
        launch_query_parameters: dict[str, str] | None = None,
    ) -> None:
        self._transport = transport
        self._unique_id = unique_id
        self._extra_params = dict(
            LAUNCH_QUERY_PARAMETERS if launch_query_parameters is None
            else launch_query_parameters
        )

    def _get(self, host: HostRecord, path: str, timeout: RequestTimeout, **params) -> bytes:
        return self._transport.get(
            f"{base_url(host, https=True)}/{path}",
            {"uniqueid": self._unique_id, **params},
            timeout,
        )

    def list_apps(self, host: HostRecord) -> list[App]:
        body = self._get(host, "applist", RequestTimeout.MEDIUM)
        return HostDocument.parse(body).check_status().apps()

    def fetch_box_art(self, host: HostRecord, app_id: int) -> bytes:
        """Raw box art image bytes for one app."""
        return self._get(
            host,
            "appasset",
            RequestTimeout.MEDIUM,
            appid=app_id,
            AssetType=BOX_ART_ASSET_TYPE,
            AssetIdx=BOX_ART_ASSET_INDEX,
        )

    def start_app(
        self, host: HostRecord, request: StreamLaunchRequest, app_id: int
    ) -> StreamSession:
        """
        Launch ``app_id``, or resume the running app if the host has one.

        A fresh remote input key is generated for every call and returned
        in the StreamSession; it is not kept anywhere else.
        """
        if request.height >= UHD_HEIGHT and not host.supports_4k:
            raise NotSupported4KError("4K not supported")

        rikey = os.urandom(REMOTE_INPUT_KEY_SIZE)
        resumed = host.active_app != 0

        if resumed:
            logger.info(f"Resuming app {host.active_app} on {host.address}")
            body = self._get(
                host,
                "resume",
                RequestTimeout.LONG,
                rikey=rikey.hex(),
                rikeyid=REMOTE_INPUT_KEY_ID,
                **self._extra_params,
            )
        else:
            fps = request.fps
            if request.optimize and fps > OPTIMIZED_MAX_FPS:
                fps = OPTIMIZED_MAX_FPS
            logger.info(
                f"Launching app {app_id} on {host.address} at "
                f"{request.width}x{request.height}x{fps}"
            )
            body = self._get(
                host,
                "launch",
                RequestTimeout.LONG,
                appid=app_id,
                mode=f"{request.width}x{request.height}x{fps}",
                additionalStates=1,
                sops=int(request.optimize),
                rikey=rikey.hex(),
                rikeyid=REMOTE_INPUT_KEY_ID,
                localAudioPlayMode=int(request.local_audio),
                surroundAudioInfo=request.audio.surround_info,
                remoteControllersBitmap=request.gamepad_mask,
                gcmap=request.gamepad_mask,
                **self._extra_params,
            )

        doc = HostDocument.parse(body).check_status()
        if doc.require("gamesession") == "0":
            raise OperationFailedError("The host failed to start the stream")

        host.active_app = app_id
        host.session_url = doc.search("sessionUrl0")
        if host.session_url is None:
            logger.warning("sessionUrl0 not found")

        return StreamSession(
            app_id=app_id,
            remote_input_key=rikey,
            remote_input_key_id=REMOTE_INPUT_KEY_ID,
            session_url=host.session_url,
            resumed=resumed,
        )

    def quit_app(self, host: HostRecord) -> HostRecord:
        body = self._get(host, "cancel", RequestTimeout.MEDIUM)
        doc = HostDocument.parse(body).check_status()
        if doc.require("cancel") == "0":
            raise OperationFailedError("The host failed to stop the stream")
        host.active_app = 0
        host.session_url = None
        return host
