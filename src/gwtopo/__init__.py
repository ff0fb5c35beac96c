"""
File Chain:
Doc Version: v1.0.0

- Called by: Python import system (when `import gwtopo` is executed), entry_points (CLI commands)
- Reads from: importlib.metadata (package metadata), config.py, main.py
- Writes to: None (package initialization only, exports public API)

Purpose: Package initialization for gwtopo. Defines public API exports and
         loads package metadata (__version__, __description__).

Package Structure:
    - main.py: CLI entry point and argument parsing
    - config.py: Configuration management
    - models.py: Data models and errors
    - naming.py: Device identifier grammar and its packed VLAN form
    - macaddr.py: Deterministic MAC addresses for container names
    - cmd.py: External command runner
    - controllers.py: Bridge, firewall and container control planes
    - inmemory.py: In-memory control planes for --dry-run and tests
    - bridges.py: Bridge reconciler
    - containers.py: Container reconciler
    - render.py: Jinja2 descriptor rendering
    - recipes.py: LAN client and GenieACS setup sequences
    - preflight.py: LXD, directory layout and virtual wlan checks
    - colorlog.py: Colored log output formatter
    - templates/: Jinja2 templates for LXD profiles and netplan descriptors

Entry Points:
    - gwtopo: CLI command (calls main.main())
    - python -m gwtopo: Direct module execution
"""

import importlib.metadata as importlib_metadata

from .config import Config
from .main import main

_metadata = importlib_metadata.metadata("gwtopo")
__version__ = _metadata["Version"]
__description__ = _metadata["Summary"]


__all__ = ["Config", "main"]
