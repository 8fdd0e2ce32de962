"""ffprobe/ffmpeg integration for screen recordings."""

from pathlib import Path

from ..config import FramesConfig, TimeoutsConfig, ToolsConfig
from ..errors import ToolError
from .tools import run_tool


def probe_duration(video: Path, tools: ToolsConfig, timeouts: TimeoutsConfig) -> float:
    """Return the container duration of a video in seconds.

    Raises:
        ToolError: If ffprobe fails or prints something that isn't a number
    """
    result = run_tool(
        [
            tools.ffprobe,
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            str(video),
        ],
        timeout=timeouts.media,
        check=True,
    )
    try:
        return float(result.stdout.strip())
    except ValueError:
        raise ToolError(f"ffprobe returned no duration for {video.name}") from None


def sample_frames(
    video: Path,
    output_pattern: Path,
    frames: FramesConfig,
    tools: ToolsConfig,
    timeouts: TimeoutsConfig,
    fps: int | None = None,
) -> None:
    """Write scaled JPEG frames from a video.

    Args:
        video: Source recording
        output_pattern: printf-style output path, e.g. frames/frame_%05d.jpg
        frames: Scale and quality settings
        tools: Executables
        timeouts: Subprocess timeouts
        fps: Fixed sampling rate, or None to emit frames at variable rate

    Raises:
        ToolError: If ffmpeg fails
    """
    scale = f"scale={frames.width}:-1"
    cmd = [tools.ffmpeg, "-y", "-i", str(video)]
    if fps is None:
        cmd += ["-vf", scale, "-vsync", "vfr"]
    else:
        cmd += ["-vf", f"fps={fps},{scale}"]
    cmd += ["-q:v", str(frames.quality), str(output_pattern)]
    run_tool(cmd, timeout=timeouts.media, check=True)
