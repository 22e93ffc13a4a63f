"""Data models for memcheck reports."""

from .report import (
    ErrorEntry,
    Frame,
    Kind,
    ProtocolVersion,
    Report,
    Resources,
    Stack,
    Tool,
)
from .classification import ClassifiedReport, Leak

__all__ = [
    "ErrorEntry",
    "Frame",
    "Kind",
    "ProtocolVersion",
    "Report",
    "Resources",
    "Stack",
    "Tool",
    "ClassifiedReport",
    "Leak",
]
