"""vchan: ffmpeg invocation builder and process supervisor for virtual channels."""

__version__ = "0.1.0"

APP_NAME = "vchan"
