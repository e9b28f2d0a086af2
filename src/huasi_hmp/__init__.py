"""Command encoder for HUASI array displacement-sensor collectors."""

from .errors import (
    HmpError,
    InvalidInputError,
    InvalidParameterError,
    MissingParameterError,
    UnknownCommandError,
)
from .protocol.commands import (
    CalType,
    GetHistoryParams,
    LayType,
    SetGlimitParams,
    SetIntervalParams,
    SetModeParams,
    SetTwistParams,
    SetUploadModeParams,
    TxtCommand,
    TxtCommandCreator,
    UploadMode,
)
from .protocol.framing import build_frame
from .utils.checksum import checksum, checksum_hex

__version__ = "0.1.0"
