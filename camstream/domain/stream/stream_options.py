"""Stream options and transcoder command assembly.

Three layers write into the same :class:`OptionSet`, later layers winning:

1. the camera's static :class:`CameraStreamConfig` (``StreamOptions.from_camera_config``)
2. the persisted per-camera setting (``apply_camera_setting``)
3. runtime mutations (``set_options`` / ``delete_options``)

``build_args`` turns the result into the exact argument list handed to the
transcoder.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from camstream.schemas import CameraSetting, CameraStreamConfig

from .option_set import OptionSet

INPUT_MARKER = "-i"
NO_AUDIO_FLAG = "-an"

AUDIO_OPTIONS: dict[str, str] = {
    "-codec:a": "mp2",
    "-ar": "44100",
    "-ac": "1",
    "-b:a": "128k",
}

OUTPUT_FORMAT_ARGS = ["-f", "mpegts", "-codec:v", "mpeg1video"]
OUTPUT_TRAILER_ARGS = ["-q", "1", "-hide_banner", "-max_muxing_queue_size", "1024", "-"]


def is_valid_source(source: str | None) -> bool:
    """A source must name an input with a standalone ``-i`` token."""
    return bool(source) and INPUT_MARKER in source.split()


@dataclass
class StreamOptions:
    """Mutable input source plus transcoder flags of one camera session."""

    source: str
    flags: OptionSet = field(default_factory=OptionSet)
    # Input stream mapped as a second -map while audio is enabled
    audio_map: str | None = None

    @classmethod
    def from_camera_config(cls, video_config: CameraStreamConfig) -> "StreamOptions":
        flags = OptionSet(
            {
                "-s": f"{video_config.max_width}x{video_config.max_height}",
                "-b:v": video_config.max_bitrate,
                "-r": video_config.max_fps,
                "-bf": 0,
                "-preset": video_config.encoder_options,
                "-threads": "1",
                "-loglevel": "error",
            }
        )

        if video_config.map_video:
            flags["-map"] = video_config.map_video

        if video_config.video_filter:
            flags["-filter:v"] = video_config.video_filter

        options = cls(source=video_config.source, flags=flags, audio_map=video_config.map_audio)

        if video_config.audio:
            options.enable_audio()

        return options

    def enable_audio(self) -> None:
        self.flags.delete([NO_AUDIO_FLAG])
        self.flags.merge(AUDIO_OPTIONS)
        if self.audio_map and self.audio_map not in self.flags.values_of("-map"):
            self.flags.append("-map", self.audio_map)

    def disable_audio(self) -> None:
        self.flags.delete(AUDIO_OPTIONS)
        if self.audio_map:
            self.flags.discard("-map", self.audio_map)
        self.flags[NO_AUDIO_FLAG] = ""

    def apply_camera_setting(self, setting: CameraSetting) -> None:
        """Apply a persisted override record on top of the current flags."""
        if setting.resolution:
            self.flags["-s"] = setting.resolution

        if setting.audio:
            self.enable_audio()
        else:
            self.disable_audio()

    def set_source(self, source: str) -> bool:
        if not is_valid_source(source):
            return False
        self.source = source
        return True

    def set_options(self, options: Mapping[str, object]) -> None:
        self.flags.merge(options)

    def delete_options(self, flags: Iterable[str]) -> None:
        self.flags.delete(flags)

    def build_args(self) -> list[str]:
        """Assemble the full argument list; empty tokens are dropped."""
        args = [
            *self.source.split(),
            *OUTPUT_FORMAT_ARGS,
            *self.flags.to_args(),
            *OUTPUT_TRAILER_ARGS,
        ]
        return [arg for arg in args if arg != ""]
