"""Pydantic models for hosts, apps and stream launches."""

from enum import Enum, IntFlag

from pydantic import BaseModel, Field, computed_field, field_serializer

from config import DEFAULT_HTTP_PORT, SUNSHINE_BUILD_THRESHOLD
from gamestream.version import parse_version_quad


class CodecMode(IntFlag):
    """Bits of the host's ServerCodecModeSupport mask."""
    H264 = 0x00001
    HEVC = 0x00100
    HEVC_MAIN10 = 0x00200
    AV1_MAIN8 = 0x10000
    AV1_MAIN10 = 0x20000


class HostFamily(str, Enum):
    GEFORCE_EXPERIENCE = "geforce_experience"
    SUNSHINE = "sunshine"


class HostRecord(BaseModel):
    """Everything the client knows about one streaming host."""
    address: str
    http_port: int = DEFAULT_HTTP_PORT
    https_port: int = 0  # learned from the first successful status fetch
    paired: bool = False
    active_app: int = 0
    app_version: str = ""
    codec_mode_support: int = 0
    gpu_type: str = ""
    gs_version: str = ""
    hostname: str = ""
    gfe_version: str = ""
    mac: str = ""
    session_url: str | None = None
    status_over_https: bool = False
    server_cert: str | None = None  # PEM, learned while pairing

    @computed_field
    @property
    def version_quad(self) -> list[int]:
        return parse_version_quad(self.app_version)

    @computed_field
    @property
    def major_version(self) -> int:
        return self.version_quad[0]

    @computed_field
    @property
    def supports_4k(self) -> bool:
        return self.codec_mode_support != 0

    @property
    def supports_hevc(self) -> bool:
        return bool(self.codec_mode_support & CodecMode.HEVC)

    @property
    def supports_av1(self) -> bool:
        return bool(self.codec_mode_support & (CodecMode.AV1_MAIN8 | CodecMode.AV1_MAIN10))

    @computed_field
    @property
    def host_family(self) -> HostFamily:
        if self.version_quad[3] < SUNSHINE_BUILD_THRESHOLD:
            return HostFamily.SUNSHINE
        return HostFamily.GEFORCE_EXPERIENCE


class App(BaseModel):
    """An application the host can stream."""
    id: int
    title: str
    hdr_supported: bool = False


class AudioConfiguration(str, Enum):
    STEREO = "stereo"
    SURROUND_51 = "surround51"

    @property
    def channel_count(self) -> int:
        return 2 if self is AudioConfiguration.STEREO else 6

    @property
    def channel_mask(self) -> int:
        return 0x3 if self is AudioConfiguration.STEREO else 0xFC

    @property
    def surround_info(self) -> int:
        """Packed value sent as surroundAudioInfo."""
        return (self.channel_mask << 16) + self.channel_count


class StreamLaunchRequest(BaseModel):
    """Caller-supplied settings for one launch or resume."""
    width: int = Field(1280, gt=0)
    height: int = Field(720, gt=0)
    fps: int = Field(60, gt=0)
    audio: AudioConfiguration = AudioConfiguration.STEREO
    optimize: bool = True  # sops
    local_audio: bool = False
    gamepad_mask: int = Field(0, ge=0)


class StreamSession(BaseModel):
    """What the media pipeline needs after a successful launch or resume."""
    app_id: int
    remote_input_key: bytes
    remote_input_key_id: int = 0
    session_url: str | None = None
    resumed: bool = False

    @field_serializer("remote_input_key", when_used="json")
    def _serialize_key(self, key: bytes) -> str:
        return key.hex()
