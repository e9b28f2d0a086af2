"""Text command identifiers, parameter types and the command encoder.

Every command is rendered as a comma-joined ASCII body that starts with
``HUASI`` and is then wrapped by :func:`~.framing.build_frame`. Commands
that need arguments take a dedicated frozen parameter dataclass, which
checks its fields on construction.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import MISSING, dataclass, fields
from datetime import datetime
from enum import Enum, IntEnum
from numbers import Real
from typing import Any, ClassVar

from ..errors import (
    InvalidInputError,
    InvalidParameterError,
    MissingParameterError,
    UnknownCommandError,
)
from .framing import build_frame

logger = logging.getLogger(__name__)

PREFIX = "HUASI"
FIELD_SEPARATOR = ","
GLIMIT_MAX = 1
GLIMIT_MIN = 0.0001
HISTORY_TIME_FORMAT = "%y,%m,%d,%H,%M,%S"
CLOCK_TIME_FORMAT = "%Y,%m,%d,%H,%M,%S"


class TxtCommand(str, Enum):
    """Text command identifiers accepted by :meth:`TxtCommandCreator.create`."""

    # Queries
    GET_MODE = "GET_MODE"
    GET_DATA = "GET_DATA"
    GET_MDATA = "GET_MDATA"
    GET_NODES = "GET_NODES"
    GET_TWIST = "GET_TWIST"
    GET_TIME = "GET_TIME"
    GET_INTERVAL = "GET_INTERVAL"
    GET_VERSION = "GET_VERSION"
    GET_DEVICES = "GET_DEVICES"
    GET_GLIMIT = "GET_GLIMIT"
    GET_HISTORY = "GET_HISTORY"
    GET_UPLOAD_MODE = "GET_UPLOAD_MODE"
    # Settings
    RESET = "RESET"
    SAVE = "SAVE"
    UPDATE_TIME = "UPDATE_TIME"
    SET_MODE = "SET_MODE"
    SET_INTERVAL = "SET_INTERVAL"
    SET_TWIST = "SET_TWIST"
    SET_UPLOAD_MODE = "SET_UPLOAD_MODE"
    SET_GLIMIT = "SET_GLIMIT"
    INACTIVE_UPLOAD = "INACTIVE_UPLOAD"
    ACTIVE_MDATA_UPLOAD = "ACTIVE_MDATA_UPLOAD"
    ACTIVE_TMDATA_UPLOAD = "ACTIVE_TMDATA_UPLOAD"
    ACTIVE_DATA_UPLOAD = "ACTIVE_DATA_UPLOAD"
    UPDATE_NODES = "UPDATE_NODES"
    # Acknowledge a received packet
    OK = "OK"


class CalType(IntEnum):
    """End of the array that displacement is computed from."""

    NEAR_END = 0
    FAR_END = 1


class LayType(IntEnum):
    """How the array is installed."""

    HORIZONTAL = 0
    VERTICAL = 1
    RING = 2


class UploadMode(IntEnum):
    """Data channel the collector streams without being polled."""

    NONE = 0
    MDATA = 1
    TMDATA = 2
    DATA = 3


def resolve_command(command: TxtCommand | str) -> TxtCommand:
    """Map a command name onto :class:`TxtCommand`.

    Raises:
        UnknownCommandError: If the name is not a known command.
    """
    try:
        return TxtCommand(command)
    except (ValueError, TypeError):
        raise UnknownCommandError(command) from None


def format_value(value: Any) -> str:
    """Render a field the way the collector expects numbers to look.

    Integral floats lose their fractional part (``15.0`` -> ``"15"``) and
    int enums render as plain digits. Exponents drop their leading zeros
    (``1e-07`` -> ``"1e-7"``).
    """
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, int):
        return str(int(value))
    if isinstance(value, float) and "e" in repr(value):
        mantissa, exponent = repr(value).split("e")
        return f"{mantissa}e{exponent[0]}{exponent[1:].lstrip('0') or '0'}"
    return str(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _is_finite_number(value: Any) -> bool:
    return _is_number(value) and math.isfinite(value)


# ─── PARAMETER TYPES ─────────────────────────────────────────────────

class CommandParams:
    """Base for per-command parameter dataclasses.

    Subclasses set ``COMMAND`` and ``OPTIONS`` (field name -> option bag
    key). Option bags may use either the option key or the field name.
    """

    COMMAND: ClassVar[TxtCommand]
    OPTIONS: ClassVar[dict[str, str]] = {}

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> CommandParams:
        """Build the parameters from a loosely-typed option bag.

        ``None`` counts as absent, so fields with a default fall back to it.

        Raises:
            MissingParameterError: If a required option is absent.
            InvalidParameterError: If a present option is out of range.
        """
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            key = cls.OPTIONS.get(f.name, f.name)
            value = options.get(key)
            if value is None:
                value = options.get(f.name)
            if value is None:
                if f.default is MISSING:
                    raise MissingParameterError(cls.COMMAND.value, key)
                continue
            kwargs[f.name] = value
        return cls(**kwargs)

    def _invalid(self, name: str, value: Any, reason: str = "") -> InvalidParameterError:
        key = self.OPTIONS.get(name, name)
        return InvalidParameterError(self.COMMAND.value, key, value, reason)


@dataclass(frozen=True)
class SetModeParams(CommandParams):
    """Calculation and installation mode of a device."""

    COMMAND: ClassVar[TxtCommand] = TxtCommand.SET_MODE
    OPTIONS: ClassVar[dict[str, str]] = {"cal_type": "calType", "lay_type": "layType"}

    cal_type: int
    lay_type: int

    def __post_init__(self) -> None:
        if isinstance(self.cal_type, bool) or self.cal_type not in (0, 1):
            raise self._invalid("cal_type", self.cal_type, "expected 0 or 1")
        if isinstance(self.lay_type, bool) or self.lay_type not in (0, 1, 2):
            raise self._invalid("lay_type", self.lay_type, "expected 0, 1 or 2")


@dataclass(frozen=True)
class SetIntervalParams(CommandParams):
    """Sampling interval of the collector, in seconds."""

    COMMAND: ClassVar[TxtCommand] = TxtCommand.SET_INTERVAL
    OPTIONS: ClassVar[dict[str, str]] = {"interval": "interval"}

    interval: Any


@dataclass(frozen=True)
class SetTwistParams(CommandParams):
    """Per-node twist angles plus the installation twist of the whole device.

    ``nodes_twist`` is an ordered sequence of ``(node_name, angle)`` pairs;
    the order decides node indexing on the device.
    """

    COMMAND: ClassVar[TxtCommand] = TxtCommand.SET_TWIST
    OPTIONS: ClassVar[dict[str, str]] = {
        "nodes_twist": "nodesTwist",
        "init_twist": "initTwist",
    }

    nodes_twist: Sequence[Sequence[Any]]
    init_twist: float = 0

    def __post_init__(self) -> None:
        if isinstance(self.nodes_twist, (str, bytes)) or not isinstance(
            self.nodes_twist, Sequence
        ):
            raise self._invalid("nodes_twist", self.nodes_twist, "expected a list of pairs")
        if not self.nodes_twist:
            raise self._invalid("nodes_twist", self.nodes_twist, "no nodes given")
        for entry in self.nodes_twist:
            if isinstance(entry, (str, bytes)) or not isinstance(entry, Sequence) or len(entry) != 2:
                raise self._invalid("nodes_twist", entry, "expected a (node, angle) pair")
            node, angle = entry
            if not isinstance(node, str) or not node:
                raise self._invalid("nodes_twist", entry, "node name must be a non-empty string")
            if FIELD_SEPARATOR in node:
                raise self._invalid("nodes_twist", entry, "node name must not contain a comma")
            if not _is_finite_number(angle):
                raise self._invalid("nodes_twist", entry, "angle must be a finite number")
        if not _is_finite_number(self.init_twist):
            raise self._invalid("init_twist", self.init_twist, "expected a finite number")
        for node, angle in self.angles():
            if not math.isfinite(angle):
                raise self._invalid("nodes_twist", (node, angle), "angle out of range")

    def angles(self) -> list[tuple[str, float]]:
        """Node angles with the installation twist added, in input order."""
        return [(node, angle + self.init_twist) for node, angle in self.nodes_twist]


@dataclass(frozen=True)
class SetUploadModeParams(CommandParams):
    """Raw upload mode value, see :class:`UploadMode`."""

    COMMAND: ClassVar[TxtCommand] = TxtCommand.SET_UPLOAD_MODE
    OPTIONS: ClassVar[dict[str, str]] = {"upload_mode": "uploadMode"}

    upload_mode: Any


@dataclass(frozen=True)
class SetGlimitParams(CommandParams):
    """Alarm/reporting threshold; clamped to [0.0001, 1] when rendered."""

    COMMAND: ClassVar[TxtCommand] = TxtCommand.SET_GLIMIT
    OPTIONS: ClassVar[dict[str, str]] = {"glimit": "glimit"}

    glimit: float

    def __post_init__(self) -> None:
        if not _is_finite_number(self.glimit):
            raise self._invalid("glimit", self.glimit, "expected a finite number")

    def clamped(self) -> float:
        limit = GLIMIT_MAX if self.glimit > GLIMIT_MAX else self.glimit
        return GLIMIT_MIN if limit < GLIMIT_MIN else limit


@dataclass(frozen=True)
class GetHistoryParams(CommandParams):
    """Time range of stored readings to replay.

    Bounds are ``datetime`` objects or epoch timestamps in milliseconds.
    Naive datetimes are taken as local time; aware ones are converted to it.
    """

    COMMAND: ClassVar[TxtCommand] = TxtCommand.GET_HISTORY
    OPTIONS: ClassVar[dict[str, str]] = {
        "history_from": "historyFrom",
        "history_to": "historyTo",
    }

    history_from: datetime | float
    history_to: datetime | float

    def __post_init__(self) -> None:
        for name in ("history_from", "history_to"):
            self._local_time(name)

    def _local_time(self, name: str) -> datetime:
        value = getattr(self, name)
        if isinstance(value, datetime):
            return value.astimezone() if value.tzinfo is not None else value
        if _is_number(value):
            try:
                return datetime.fromtimestamp(value / 1000)
            except (OverflowError, OSError, ValueError) as e:
                raise self._invalid(name, value, str(e)) from e
        raise self._invalid(name, value, "expected a datetime or epoch milliseconds")

    def time_range(self) -> tuple[str, str]:
        """Both bounds formatted as ``YY,MM,DD,HH,mm,ss``."""
        return (
            self._local_time("history_from").strftime(HISTORY_TIME_FORMAT),
            self._local_time("history_to").strftime(HISTORY_TIME_FORMAT),
        )


# Commands that take arguments, and the parameter type each expects
COMMAND_PARAMS: dict[TxtCommand, type[CommandParams]] = {
    cls.COMMAND: cls
    for cls in (
        SetModeParams,
        SetIntervalParams,
        SetTwistParams,
        SetUploadModeParams,
        SetGlimitParams,
        GetHistoryParams,
    )
}


def describe_commands() -> list[dict[str, Any]]:
    """List every command with the option keys it reads."""
    catalog = []
    for command in TxtCommand:
        params_type = COMMAND_PARAMS.get(command)
        options = []
        if params_type is not None:
            for f in fields(params_type):
                options.append({
                    "name": params_type.OPTIONS.get(f.name, f.name),
                    "required": f.default is MISSING,
                })
        catalog.append({
            "command": command.value,
            "takes_params": params_type is not None,
            "options": options,
        })
    return catalog


# ─── ENCODER ─────────────────────────────────────────────────────────

class TxtCommandCreator:
    """Encodes text commands for one collector.

    Usage::

        creator = TxtCommandCreator("280537")
        frame = creator.create("SET_MODE", {"calType": 0, "layType": 1})
        frame = creator.build(TxtCommand.SET_GLIMIT, SetGlimitParams(0.5))

    The instance holds only the serial number and a clock, so one creator
    can be shared freely.
    """

    def __init__(
        self,
        sncode: str,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        if not isinstance(sncode, str) or not sncode:
            raise InvalidInputError(f"Device serial number must be a non-empty string, got {sncode!r}")
        self._sncode = sncode
        self._clock = clock
        self._renderers: dict[TxtCommand, Callable[..., str]] = {
            TxtCommand.GET_MODE: self._get_mode,
            TxtCommand.GET_DATA: self._get_data,
            TxtCommand.GET_MDATA: self._get_mdata,
            TxtCommand.GET_NODES: self._get_nodes,
            TxtCommand.GET_TWIST: self._get_twist,
            TxtCommand.GET_TIME: self._get_time,
            TxtCommand.GET_INTERVAL: self._get_interval,
            TxtCommand.GET_VERSION: self._get_version,
            TxtCommand.GET_DEVICES: self._get_devices,
            TxtCommand.GET_GLIMIT: self._get_glimit,
            TxtCommand.GET_HISTORY: self._get_history,
            TxtCommand.GET_UPLOAD_MODE: self._get_upload_mode,
            TxtCommand.RESET: self._reset,
            TxtCommand.SAVE: self._save,
            TxtCommand.UPDATE_TIME: self._update_time,
            TxtCommand.SET_MODE: self._set_mode,
            TxtCommand.SET_INTERVAL: self._set_interval,
            TxtCommand.SET_TWIST: self._set_twist,
            TxtCommand.SET_UPLOAD_MODE: self._set_upload_mode,
            TxtCommand.SET_GLIMIT: self._set_glimit,
            TxtCommand.INACTIVE_UPLOAD: lambda: self._upload_mode(UploadMode.NONE),
            TxtCommand.ACTIVE_MDATA_UPLOAD: lambda: self._upload_mode(UploadMode.MDATA),
            TxtCommand.ACTIVE_TMDATA_UPLOAD: lambda: self._upload_mode(UploadMode.TMDATA),
            TxtCommand.ACTIVE_DATA_UPLOAD: lambda: self._upload_mode(UploadMode.DATA),
            TxtCommand.OK: self._ok,
            TxtCommand.UPDATE_NODES: self._update_nodes,
        }

    @property
    def sncode(self) -> str:
        return self._sncode

    def create(
        self,
        command: TxtCommand | str,
        options: Mapping[str, Any] | None = None,
    ) -> bytes:
        """Encode a command from an option bag into a ready-to-send frame.

        Args:
            command: A :class:`TxtCommand` or its name, e.g. ``"GET_DATA"``.
            options: Option bag; only the keys the command reads matter.

        Raises:
            UnknownCommandError: If ``command`` is not a known command.
            MissingParameterError: If a required option is absent.
            InvalidParameterError: If an option violates its constraint.
        """
        return build_frame(self.body(command, options))

    def body(
        self,
        command: TxtCommand | str,
        options: Mapping[str, Any] | None = None,
    ) -> str:
        """Like :meth:`create`, but return the unframed command body."""
        cmd = resolve_command(command)
        params_type = COMMAND_PARAMS.get(cmd)
        params = params_type.from_options(options or {}) if params_type else None
        return self._render(cmd, params)

    def build(
        self,
        command: TxtCommand | str,
        params: CommandParams | None = None,
    ) -> bytes:
        """Encode a command from its typed parameter object."""
        cmd = resolve_command(command)
        expected = COMMAND_PARAMS.get(cmd)
        if expected is None:
            if params is not None:
                raise InvalidParameterError(
                    cmd.value, "params", params, "command takes no parameters"
                )
        elif params is None:
            raise MissingParameterError(cmd.value, "params")
        elif not isinstance(params, expected):
            raise InvalidParameterError(
                cmd.value, "params", params, f"expected {expected.__name__}"
            )
        return build_frame(self._render(cmd, params))

    def _render(self, command: TxtCommand, params: CommandParams | None) -> str:
        renderer = self._renderers[command]
        body = renderer(params) if params is not None else renderer()
        logger.debug("Encoded %s for %s: %s", command.value, self._sncode, body)
        return body

    @staticmethod
    def _join(*tokens: Any) -> str:
        return FIELD_SEPARATOR.join(format_value(t) for t in (PREFIX, *tokens))

    # ─── QUERIES ─────────────────────────────────────────────────────

    def _get_mode(self) -> str:
        return self._join("GET", "MODEL", self._sncode)

    def _get_data(self) -> str:
        return self._join("GET", "DATA", self._sncode)

    def _get_mdata(self) -> str:
        """Device data, delivered in packets."""
        return self._join("GET", "MDATA", self._sncode)

    def _get_nodes(self) -> str:
        return self._join("GET", "DEVICE", self._sncode)

    def _get_twist(self) -> str:
        return self._join("GET", "AZIMUTH", self._sncode)

    def _get_time(self) -> str:
        return self._join("GET", "DATE")

    def _get_interval(self) -> str:
        return self._join("GET", "NODE", "TIMER")

    def _get_version(self) -> str:
        return self._join("GET", "VERSION")

    def _get_devices(self) -> str:
        """Devices mounted on the collector."""
        return self._join("GET", "DEVICES")

    def _get_glimit(self) -> str:
        # GLIMINT is the spelling the firmware expects
        return self._join("GET", "GLIMINT", self._sncode)

    def _get_upload_mode(self) -> str:
        return self._join("GET", "UPLOADMODEL", self._sncode)

    def _get_history(self, params: GetHistoryParams) -> str:
        history_from, history_to = params.time_range()
        return self._join("GET", "HISTORY", self._sncode, history_from, history_to)

    # ─── SETTINGS ────────────────────────────────────────────────────

    def _reset(self) -> str:
        """Restart the collector."""
        return self._join("SET", "RESET")

    def _save(self) -> str:
        return self._join("SET", "SAVE")

    def _update_time(self) -> str:
        """Sync the collector clock to the current local time."""
        now = self._clock().strftime(CLOCK_TIME_FORMAT)
        return self._join("SET", "DATE", now)

    def _set_mode(self, params: SetModeParams) -> str:
        return self._join("SET", "MODEL", self._sncode, params.cal_type, params.lay_type)

    def _set_interval(self, params: SetIntervalParams) -> str:
        # Applies to the whole collector, not per device
        return self._join("SET", "NODE", "TIMER", params.interval)

    def _set_twist(self, params: SetTwistParams) -> str:
        angles = params.angles()
        pairs = [token for pair in angles for token in pair]
        return self._join("SET", "AZIMUTH", self._sncode, len(angles), *pairs)

    def _set_upload_mode(self, params: SetUploadModeParams) -> str:
        return self._upload_mode(params.upload_mode)

    def _upload_mode(self, mode: Any) -> str:
        return self._join("SET", "UPLOADMODEL", self._sncode, mode)

    def _set_glimit(self, params: SetGlimitParams) -> str:
        return self._join("SET", "GLIMINT", self._sncode, params.clamped())

    def _ok(self) -> str:
        """Acknowledge data received from the collector."""
        return self._join("OK")

    def _update_nodes(self) -> str:
        """Re-enumerate the nodes on the bus."""
        return self._join("SET", "GETCAL")
