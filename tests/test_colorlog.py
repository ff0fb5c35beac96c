from __future__ import annotations

import io
import logging

from gwtopo.colorlog import COLORS, RESET, CustomFormatter, banner


def test_banner_colors() -> None:
    stream = io.StringIO()
    banner("ready", "green", stream=stream)
    assert stream.getvalue() == f"{COLORS['green']}ready{RESET}\n"


def test_banner_unknown_color_is_white() -> None:
    stream = io.StringIO()
    banner("ready", "magenta", stream=stream)
    assert stream.getvalue().startswith(COLORS["white"])


def test_formatter_colors_by_level() -> None:
    record = logging.LogRecord("gwtopo", logging.ERROR, __file__, 7, "boom %s", ("x",), None)
    text = CustomFormatter().format(record)
    assert text.startswith(CustomFormatter.red)
    assert "boom x" in text
    assert text.endswith(RESET)
