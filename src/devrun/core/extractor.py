"""Still frame extraction from screen recordings.

Sampling depends on the clip length:

- Under one second the recording shows a single interaction, so frames are
  emitted at variable rate and only the last one is kept.
- Otherwise (including an unknown duration) one frame per second is kept.
- If that produced nothing, the keep-last strategy runs as a fallback so a
  decodable recording always yields at least one frame.

Frame files use a fixed-width counter, so sorting names sorts by time.
"""

import logging
from pathlib import Path

from ..config import FramesConfig, TimeoutsConfig, ToolsConfig
from ..errors import MediaError, ToolError
from ..services import media

logger = logging.getLogger(__name__)

FRAME_PREFIX = "frame_"
FRAME_SUFFIX = ".jpg"
FRAME_PATTERN = f"{FRAME_PREFIX}%05d{FRAME_SUFFIX}"
SHORT_CLIP_SECONDS = 1.0


class FrameExtractor:
    """Turn a recording into a small set of JPEG frames."""

    def __init__(
        self,
        frames: FramesConfig | None = None,
        tools: ToolsConfig | None = None,
        timeouts: TimeoutsConfig | None = None,
    ) -> None:
        self.frames = frames or FramesConfig()
        self.tools = tools or ToolsConfig()
        self.timeouts = timeouts or TimeoutsConfig()

    def probe_duration(self, video: Path) -> float:
        """Duration in seconds, or 0 if it can't be probed."""
        try:
            return media.probe_duration(video, self.tools, self.timeouts)
        except ToolError as e:
            logger.debug(f"Could not probe duration of {video.name}: {e}")
            return 0.0

    def extract(self, video: Path, output_dir: Path) -> int:
        """Extract frames from ``video`` into ``output_dir``.

        Frames left in ``output_dir`` by an earlier run are removed first.

        Returns:
            Number of frames kept

        Raises:
            MediaError: If the fallback pass fails too
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        for stale in list_frames(output_dir):
            stale.unlink()

        duration = self.probe_duration(video)
        logger.debug(f"Recording duration: {duration:.2f}s")

        if 0 < duration < SHORT_CLIP_SECONDS:
            frame_count = self._keep_last_frame(video, output_dir, strict=False)
        else:
            frame_count = self._sample_fixed_rate(video, output_dir)

        if frame_count == 0:
            logger.debug("No frames sampled, falling back to last frame")
            frame_count = self._keep_last_frame(video, output_dir, strict=True)
        return frame_count

    def _sample_fixed_rate(self, video: Path, output_dir: Path) -> int:
        try:
            media.sample_frames(
                video,
                output_dir / FRAME_PATTERN,
                self.frames,
                self.tools,
                self.timeouts,
                fps=self.frames.fps,
            )
        except ToolError as e:
            logger.debug(f"Fixed-rate sampling failed: {e}")
        return len(list_frames(output_dir))

    def _keep_last_frame(self, video: Path, output_dir: Path, strict: bool) -> int:
        try:
            media.sample_frames(video, output_dir / FRAME_PATTERN, self.frames, self.tools, self.timeouts)
        except ToolError as e:
            if strict:
                raise MediaError(f"Could not extract frames from {video.name}: {e}") from e
            logger.debug(f"Variable-rate sampling failed: {e}")

        frame_files = list_frames(output_dir)
        for frame in frame_files[:-1]:
            frame.unlink()
        return 1 if frame_files else 0


def list_frames(output_dir: Path) -> list[Path]:
    """Frame files in chronological order."""
    if not output_dir.is_dir():
        return []
    return sorted(output_dir.glob(f"{FRAME_PREFIX}*{FRAME_SUFFIX}"))
