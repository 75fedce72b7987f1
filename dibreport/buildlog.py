"""Clean up raw image build logs for display."""
import re
from typing import Union

ANSI_COLORS_PATTERN = re.compile(r"\x1B\[([0-9]{1,3}(;[0-9]{1,2})?)?[mGK]")
KANIKO_LOG_PATTERN = re.compile(r'time=".*" level=.* msg="(?P<message>.*)"')


def remove_terminal_colors(text: str) -> str:
    return ANSI_COLORS_PATTERN.sub("", text)


def strip_kaniko_logs(text: str) -> str:
    """Reduce logrus lines (time="..." level=... msg="...") to their message."""
    return KANIKO_LOG_PATTERN.sub(r"\g<message>", text)


def beautify_build_logs(raw: Union[str, bytes]) -> str:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    return strip_kaniko_logs(remove_terminal_colors(raw))
