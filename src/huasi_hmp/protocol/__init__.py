"""Protocol layer: message framing and text command encoding."""

from .framing import build_frame
from .commands import TxtCommand, TxtCommandCreator
