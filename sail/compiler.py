"""Compile `service add` flags into a ServiceSpec.

Every parser here is pure and raises InputError on malformed input, so a bad
flag always stops the command before anything is sent to the API.

Parsers run in a fixed order (see `compile_spec`): later stages look up keys
inserted by earlier ones. In particular `apply_whitelist` must run after
`parse_published_ports`, because an address without a port is attached to
the port rules that exist at that moment.

Networks named by publish rules are joined automatically, like gateway ends.
"""
from __future__ import annotations

import re
import shlex
from typing import Iterable

from pydantic import ValidationError

from .errors import InputError
from .events import log_event
from .models import AddOptions, PortConfig, ServiceSpec, VolumeConfig
from .names import check_name, check_tag


DEFAULT_VOLUME_SIZE = "10"
GATEWAY_RELATION = "gateway_to"

_INT_RE = re.compile(r"^[+-]?[0-9]+$")

Networks = dict[str, dict[str, list[str]]]
Ports = dict[str, list[PortConfig]]


def _is_int(raw: str) -> bool:
    return bool(_INT_RE.match(raw))


def parse_port(raw: str) -> int:
    if not _is_int(raw) or not 1 <= int(raw) <= 65535:
        raise InputError(f"Invalid port number '{raw}': should be between 1 and 65535")
    return int(raw)


def port_key(port: int) -> str:
    return f"{port}/tcp"


def split_command(raw: str) -> list[str] | None:
    """Shell-split a command/entrypoint override. Empty means not overridden."""
    if not raw:
        return None
    try:
        return shlex.split(raw)
    except ValueError as e:
        raise InputError(f"Fatal, cannot split command '{raw}': {e}") from e


def parse_volumes(volumes: Iterable[str]) -> dict[str, VolumeConfig] | None:
    out: dict[str, VolumeConfig] = {}
    for vol in volumes:
        t = vol.split(":")
        if len(t) == 1 and t[0]:
            out[t[0]] = VolumeConfig(size=DEFAULT_VOLUME_SIZE)
        elif len(t) == 2 and t[0] and t[1]:
            out[t[0]] = VolumeConfig(size=t[1])
        else:
            raise InputError(f"Volume parameter '{vol}' not formatted correctly, expected /path[:size]")
    return out or None


def parse_links(links: Iterable[str]) -> dict[str, str]:
    out: dict[str, str] = {}
    for link in links:
        t = link.split(":")
        if len(t) > 2 or not t[0] or (len(t) == 2 and not t[1]):
            raise InputError(f"Invalid link '{link}', expected name[:alias]")
        out[t[0]] = t[-1]
    return out


def parse_networks(networks: Iterable[str]) -> Networks:
    out: Networks = {}
    for network in networks:
        if not network:
            raise InputError("Empty network name")
        out.setdefault(network, {})
    return out


def apply_gateways(gateways: Iterable[str], networks: Networks) -> Networks:
    """Translate deprecated `--gateway input:output` into network relations."""
    for gat in gateways:
        log_event("WARN", "--gateway parameter is deprecated, use --network instead")
        t = gat.split(":")
        if len(t) != 2 or not t[0] or not t[1]:
            raise InputError(
                f"Invalid gateway parameter '{gat}', should be \"input:output\". "
                "Typically, output will be one of 'predictor', 'public'"
            )
        src, dst = t
        for name in (src, dst):
            _ensure_network(networks, name)
        networks[src].setdefault(GATEWAY_RELATION, []).append(dst)
    return networks


def add_port_networks(ports: Ports, networks: Networks) -> Networks:
    """Join every network a port is published on."""
    for cfgs in ports.values():
        for cfg in cfgs:
            if cfg.network:
                _ensure_network(networks, cfg.network)
    return networks


def _ensure_network(networks: Networks, name: str) -> None:
    if name not in networks:
        log_event("WARN", f"Automatically adding {name} to network list")
        networks[name] = {}


def parse_publish_rule(rule: str) -> tuple[int, PortConfig]:
    """Return (container_port, PortConfig) for one --publish value.

    Shapes: N | published:N | network:N | network::N | network:published:N.
    In the two-token form a numeric first token always means a published
    port, never a network name.
    """
    t = rule.split(":")
    if len(t) == 1:
        container = parse_port(t[0])
        return container, PortConfig(published_port=container)

    if len(t) == 2:
        if _is_int(t[0]):
            published = parse_port(t[0])
            container = parse_port(t[1])
            return container, PortConfig(published_port=published)
        if not t[0]:
            raise InputError(f"Invalid port expose rule '{rule}': empty network")
        container = parse_port(t[1])
        return container, PortConfig(published_port=container, network=t[0])

    if len(t) == 3:
        network, published_raw, container_raw = t
        if not network:
            raise InputError(f"Invalid port expose rule '{rule}': empty network")
        container = parse_port(container_raw)
        published = parse_port(published_raw) if published_raw else container
        return container, PortConfig(published_port=published, network=network)

    raise InputError(f"Invalid port expose rule '{rule}'")


def parse_published_ports(rules: Iterable[str]) -> Ports:
    ports: Ports = {}
    for rule in rules:
        container, cfg = parse_publish_rule(rule)
        # One container port may be published on several networks.
        ports.setdefault(port_key(container), []).append(cfg)
    return ports


def apply_whitelist(entries: Iterable[str], ports: Ports) -> Ports:
    """Attach `address[/mask][:port]` entries to already-parsed port rules."""
    for entry in entries:
        t = entry.split(":")
        if len(t) > 2 or not t[0]:
            raise InputError(f"Invalid allowed network '{entry}', should be 1.2.3.4[/24][:80]")
        addr = t[0]
        if len(t) == 1:
            keys = list(ports)
        else:
            key = port_key(parse_port(t[1]))
            keys = [key] if key in ports else []
        for key in keys:
            # PortConfig is frozen: swap in extended copies.
            ports[key] = [
                cfg.model_copy(update={"whitelisted_cidrs": (*cfg.whitelisted_cidrs, addr)}) for cfg in ports[key]
            ]
    return ports


def compile_spec(application: str, repository: str, tag: str | None, service: str | None, options: AddOptions) -> ServiceSpec:
    """Build the document POSTed to /applications/{application}/services/{service}."""
    service = service or repository
    for name in (application, repository, service):
        check_name(name)
    tag = tag or options.tag or "latest"
    check_tag(tag)
    if options.number < 1:
        raise InputError(f"Invalid container number {options.number}: must be at least 1")

    command = split_command(options.command)
    entrypoint = split_command(options.entrypoint)
    volumes = parse_volumes(options.volumes)
    links = parse_links(options.links)
    networks = parse_networks(options.networks)
    networks = apply_gateways(options.gateways, networks)
    ports = parse_published_ports(options.publish)
    networks = add_port_networks(ports, networks)
    ports = apply_whitelist(options.network_allow, ports)

    try:
        return ServiceSpec(
            application=application,
            service=service,
            repository=repository,
            repository_tag=tag,
            container_model=options.model,
            container_number=options.number,
            restart_policy=options.restart,
            container_command=command,
            container_entrypoint=entrypoint,
            container_user=options.user or None,
            container_workdir=options.workdir or None,
            container_environment=options.environment,
            volumes=volumes,
            links=links,
            container_network=networks,
            container_ports=ports,
            pool=options.pool or None,
        )
    except ValidationError as e:
        raise InputError(str(e)) from e
