"""External tool integrations for devrun.

This package wraps the command line tools a run drives:
- tools: subprocess runner shared by all integrations
- android: gradle wrapper, adb and emulator
- ios: simctl, xcodebuild, xcparse and xcresulttool
- media: ffprobe and ffmpeg
"""

from .tools import ToolResult, format_command, run_tool, spawn_tool

__all__ = [
    "ToolResult",
    "format_command",
    "run_tool",
    "spawn_tool",
]
