"""Run programs under valgrind memcheck and classify the reported memory errors."""

from .config import Config
from .classifier import classify
from .main import run
from .models import ClassifiedReport, ErrorEntry, Kind, Leak, Report
from .valgrind import (
    DecodeError,
    MalformedOutputError,
    ProcessSignalError,
    SocketConnectionError,
    ToolInvocationFailedError,
    ToolNotInstalledError,
    ValgrindError,
    ValgrindSupervisor,
    decode,
    execute,
)

__version__ = "0.1.0"

__all__ = [
    "Config",
    "classify",
    "run",
    "ClassifiedReport",
    "ErrorEntry",
    "Kind",
    "Leak",
    "Report",
    "DecodeError",
    "MalformedOutputError",
    "ProcessSignalError",
    "SocketConnectionError",
    "ToolInvocationFailedError",
    "ToolNotInstalledError",
    "ValgrindError",
    "ValgrindSupervisor",
    "decode",
    "execute",
]
