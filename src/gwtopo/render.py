"""descriptor renderer"""

import importlib.resources as pkg_resources
import logging
from pathlib import Path

from jinja2 import (
    Environment,
    PackageLoader,
    StrictUndefined,
    TemplateNotFound,
    select_autoescape,
)

from gwtopo import templates
from gwtopo.config import Config
from gwtopo.macaddr import primary_address
from gwtopo.models import GwtopoError

_LOGGER = logging.getLogger(__name__)

J2SUFFIX = ".jinja2"

# (device name, TCP port) of the GenieACS proxy devices
GENIEACS_PORTS = (
    ("cwmp-port", 7547),
    ("ui-port", 3000),
    ("nbi-port", 7557),
    ("fs-port", 7567),
)


def get_templates() -> list[str]:
    """get all available templates in the package"""
    return sorted(
        t.name[: -len(J2SUFFIX)]
        for t in pkg_resources.files(templates).iterdir()
        if t.name.endswith(J2SUFFIX)
    )


def _environment() -> Environment:
    return Environment(
        loader=PackageLoader("gwtopo"),
        autoescape=select_autoescape(),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )


def render_template(template: str, /, **context) -> str:
    """render a packaged template by its name without suffix, the context
    may carry a variable called template or name"""
    try:
        tpl = _environment().get_template(f"{template}{J2SUFFIX}")
    except TemplateNotFound as exc:
        raise GwtopoError(f"template does not exist: {template}") from exc
    return tpl.render(**context)


def genieacs_profile(cfg: Config, name: str = "genieacs", bridge: str = "lxdbr1") -> str:
    """the LXD profile of the ACS container"""
    return render_template(
        "genieacs-profile.yaml",
        name=name,
        bridge=bridge,
        pool=cfg.storage_pool,
        hwaddr=primary_address(name),
        ports=[{"name": dev, "number": port} for dev, port in GENIEACS_PORTS],
    )


def static_netplan(
    ipv4: str,
    gateway4: str,
    nameservers: list[str],
    ipv6: str | None = None,
    gateway6: str | None = None,
    routes: list[tuple[str, str]] | None = None,
    interface: str = "eth0",
) -> str:
    """a netplan descriptor with static addresses and no DHCP"""
    return render_template(
        "netplan-static.yaml",
        interface=interface,
        ipv4=ipv4,
        ipv6=ipv6,
        gateway4=gateway4,
        gateway6=gateway6,
        nameservers=nameservers,
        routes=[{"to": to, "via": via} for to, via in routes or []],
    )


def write_descriptor(cfg: Config, filename: str, content: str) -> Path:
    """write a rendered descriptor below the project tmp directory"""
    outfile = Path(cfg.root) / "tmp" / filename
    outfile.parent.mkdir(parents=True, exist_ok=True)
    outfile.write_text(content, encoding="utf-8")
    _LOGGER.info("Descriptor written to %s", outfile)
    return outfile
