from __future__ import annotations

from typing import List

from ..core.config import Settings
from ..core.safety import Safety
from . import file_ops, shell
from .registry import Tool, ToolRegistry


def builtin_tools(settings: Settings) -> List[Tool]:
    safety = Safety(settings.workspace, strict=settings.safety_strict)
    return file_ops.make(safety) + shell.make(safety, timeout=settings.command_timeout)


def build_registry(settings: Settings) -> ToolRegistry:
    return ToolRegistry(settings.workspace, builtin_tools(settings))
