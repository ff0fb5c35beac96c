"""
File Chain:
Doc Version: v1.0.0

- Called by: main.py, recipes.py, bridges.py
- Purpose: ANSI color-coded console output

gwtopo Color Output - Colored Log Records and Banners

PURPOSE:
    Color-codes log output by severity and prints colored banner lines that
    separate the phases of a setup run (bridge blocks, service sections).

KEY EXPORTS:
    - CustomFormatter: logging.Formatter subclass with color support
    - banner(text, color): print a colored line to stdout

COLOR SCHEME:
    - DEBUG: Grey
    - INFO: Cyan
    - WARNING: Yellow
    - ERROR: Red
    - CRITICAL: Bold Red

LOG FORMAT:
    %(asctime)s - %(message)s - (%(filename)s:%(lineno)d)

ATTRIBUTION:
    Based on: https://stackoverflow.com/questions/384076/how-can-i-color-python-logging-output
"""

import logging
import sys

RESET = "\x1b[0m"
COLORS = {
    "grey": "\x1b[30m",
    "red": "\x1b[31m",
    "green": "\x1b[32m",
    "yellow": "\x1b[33m",
    "blue": "\x1b[34m",
    "white": "\x1b[37m",
}
SEPARATOR = "-" * 54


class CustomFormatter(logging.Formatter):
    """return a formatter that prints log messages with color"""

    grey = "\x1b[38;20m"
    yellow = "\x1b[33;20m"
    red = "\x1b[31;20m"
    cyan = "\x1b[36;20m"
    bold_red = "\x1b[31;1m"
    template = "%(asctime)s - %(message)s - (%(filename)s:%(lineno)d)"

    FORMATS = {
        logging.DEBUG: grey + template + RESET,
        logging.INFO: cyan + template + RESET,
        logging.WARNING: yellow + template + RESET,
        logging.ERROR: red + template + RESET,
        logging.CRITICAL: bold_red + template + RESET,
    }

    def format(self, record):
        log_fmt = self.FORMATS.get(record.levelno, self.template)
        formatter = logging.Formatter(log_fmt)
        return formatter.format(record)


def banner(text: str, color: str = "white", stream=None) -> None:
    """print text in the given color, unknown colors print white"""
    code = COLORS.get(color, COLORS["white"])
    print(f"{code}{text}{RESET}", file=stream or sys.stdout)
