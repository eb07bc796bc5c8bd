from __future__ import annotations

import argparse
import csv
import sys
from dataclasses import replace

from sail import __version__
from sail.api import ApiClient
from sail.compiler import compile_spec
from sail.config import resolve_base_url
from sail.deploy import Deployer
from sail.errors import InputError, SailError, ServerError
from sail.events import configure_logging
from sail.models import AddOptions
from sail.names import check_host_consistent, check_name, parse_resource_name
from sail.output import format_output, format_output_error
from sail.redeploy import redeploy_service
from sail.settings import Settings, settings
from sail.start import start_service
from sail.webhook import webhook_add, webhook_delete, webhook_list


def make_client(s: Settings) -> ApiClient:
    return ApiClient.from_settings(s, resolve_base_url(s))


def _slice(values: list[str] | None) -> tuple[str, ...]:
    """Repeatable flags also take comma-separated values: -p 80,443 -p 8080:80.

    Values are read as one CSV record, so a quoted field keeps its commas:
    -e '"JAVA_OPTS=-Xmx1g,-Xms512m",DEBUG=1'.
    """
    out: list[str] = []
    for v in values or []:
        out.extend(x for x in next(csv.reader([v]), []) if x)
    return tuple(out)


def _add_spec_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument("resource", help="[<application>/]<repository>[:tag]")
    p.add_argument("service", nargs="?", help="Service name, defaults to the repository name")
    p.add_argument("--model", default="x1", help="Container model")
    p.add_argument("--number", type=int, default=1, help="Number of containers to run")
    p.add_argument("--link", action="append", help="name[:alias]")
    p.add_argument("--network", action="append", help="public|private|<network name>")
    p.add_argument("--network-allow", action="append", help="ip[/mask][:port] IPs whitelist")
    p.add_argument(
        "-p",
        "--publish",
        action="append",
        help="Publish a container port: network:published:container, network::container, published:container, container",
    )
    p.add_argument("--gateway", action="append", help="DEPRECATED: network-input:network-output")
    p.add_argument("--restart", default="no", help="{no|always[:<max>]|on-failure[:<max>]}")
    p.add_argument("--volume", action="append", help="/path[:size] (size in GB)")
    p.add_argument("--pool", default="", help="Deploy on dedicated host pool <name>")
    p.add_argument("--tag", default="", help="Deploy from another image version")
    p.add_argument("--batch", action="store_true", help="Do not attach console on start")
    # Docker overrides
    p.add_argument("--user", dest="container_user", default="", help="Override docker user")
    p.add_argument("--entrypoint", default="", help="Override docker entrypoint")
    p.add_argument("--command", default="", help="Override docker run command")
    p.add_argument("--workdir", default="", help="Override docker workdir")
    p.add_argument("-e", "--env", action="append", help="Override docker environment: KEY=val")


def _add_options(args: argparse.Namespace) -> AddOptions:
    return AddOptions(
        model=args.model,
        number=args.number,
        restart=args.restart,
        command=args.command,
        entrypoint=args.entrypoint,
        user=args.container_user,
        workdir=args.workdir,
        tag=args.tag,
        pool=args.pool,
        environment=_slice(args.env),
        volumes=_slice(args.volume),
        links=_slice(args.link),
        networks=_slice(args.network),
        network_allow=_slice(args.network_allow),
        publish=_slice(args.publish),
        gateways=_slice(args.gateway),
        batch=args.batch,
        redeploy=getattr(args, "redeploy", False),
    )


def _compile(args: argparse.Namespace, s: Settings):
    name = parse_resource_name(args.resource, default_application=s.user)
    check_host_consistent(name.host, s.host)
    opts = _add_options(args)
    return compile_spec(name.application, name.repository, name.tag, args.service, opts), opts


def cmd_service_add(args: argparse.Namespace, s: Settings) -> int:
    # Everything is validated before the first request.
    spec, opts = _compile(args, s)
    with make_client(s) as client:
        outcome = Deployer(client, pretty=s.pretty).deploy(spec, batch=opts.batch, redeploy=opts.redeploy)
    return 0 if outcome.ok else 1


def cmd_service_redeploy(args: argparse.Namespace, s: Settings) -> int:
    spec, opts = _compile(args, s)
    with make_client(s) as client:
        redeploy_service(client, spec.reduced(), spec.application, spec.service, opts.batch, pretty=s.pretty)
    return 0


def cmd_service_start(args: argparse.Namespace, s: Settings) -> int:
    name = parse_resource_name(args.service, default_application=s.user)
    check_host_consistent(name.host, s.host)
    check_name(name.application)
    check_name(name.repository)
    with make_client(s) as client:
        start_service(client, name.application, name.repository, args.batch, pretty=s.pretty)
    return 0


def _webhook_target(args: argparse.Namespace, s: Settings, want_url: bool) -> tuple[str, str | None]:
    positional = [x for x in (args.first, args.second) if x]
    if want_url:
        if len(positional) == 1:
            application, url = s.user, positional[0]
        elif len(positional) == 2:
            application, url = positional
        else:
            raise InputError(f"Invalid usage. sail application webhook {args.action} [<application>] <url>")
    else:
        if args.second:
            raise InputError("Invalid usage. sail application webhook list [<application>]")
        application, url = args.first or s.user, None
    if not application:
        raise InputError("No application given and no default user configured.")
    check_name(application)
    return application, url


def cmd_webhook(args: argparse.Namespace, s: Settings) -> int:
    application, url = _webhook_target(args, s, want_url=args.action != "list")
    with make_client(s) as client:
        if args.action == "list":
            result = webhook_list(client, application)
        elif args.action == "add":
            result = webhook_add(client, application, url)
        else:
            result = webhook_delete(client, application, url)
    if result is not None:
        format_output(result, pretty=s.pretty)
    return 0


def cmd_config_show(args: argparse.Namespace, s: Settings) -> int:
    print(f"username:{s.user or ''}")
    print(f"host:{s.host}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="sail", description="Container service hosting CLI")
    p.add_argument("--host", help="API host (env SAIL_HOST)")
    p.add_argument("--user", help="Account user name (env SAIL_USER)")
    p.add_argument("--password", help="Account password (env SAIL_PASSWORD)")
    p.add_argument("--format", choices=["pretty", "json"], help="Output format (env SAIL_FORMAT)")
    p.add_argument("-v", "--verbose", action="store_true", default=None)
    p.add_argument("--version", action="version", version=f"sail {__version__}")
    sub = p.add_subparsers(dest="group", required=True)

    svc = sub.add_parser("service", aliases=["services", "s"], help="Service commands")
    svc_sub = svc.add_subparsers(dest="cmd", required=True)

    s_add = svc_sub.add_parser("add", aliases=["create", "a", "c"], help="Add a new docker service")
    _add_spec_flags(s_add)
    s_add.add_argument("--redeploy", action="store_true", help="If the service already exists, redeploy instead")
    s_add.set_defaults(func=cmd_service_add)

    s_redeploy = svc_sub.add_parser("redeploy", help="Redeploy an existing service")
    _add_spec_flags(s_redeploy)
    s_redeploy.set_defaults(func=cmd_service_redeploy)

    s_start = svc_sub.add_parser("start", help="Start a service")
    s_start.add_argument("service", help="[<application>/]<service>")
    s_start.add_argument("--batch", action="store_true", help="Do not attach console on start")
    s_start.set_defaults(func=cmd_service_start)

    app = sub.add_parser("application", aliases=["app"], help="Application commands")
    app_sub = app.add_subparsers(dest="cmd", required=True)
    hook = app_sub.add_parser("webhook", help="Application webhooks, events are POSTed as JSON")
    hook.add_argument("action", choices=["list", "ls", "add", "delete", "del", "rm"])
    hook.add_argument("first", nargs="?")
    hook.add_argument("second", nargs="?")
    hook.set_defaults(func=cmd_webhook)

    cfg = sub.add_parser("config", help="Configuration commands")
    cfg_sub = cfg.add_subparsers(dest="cmd", required=True)
    cfg_sub.add_parser("show", help="Show configuration").set_defaults(func=cmd_config_show)

    return p


_ACTION_ALIASES = {"ls": "list", "del": "delete", "rm": "delete"}


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    if getattr(args, "action", None):
        args.action = _ACTION_ALIASES.get(args.action, args.action)

    overrides = {
        "host": args.host,
        "user": args.user,
        "password": args.password,
        "output_format": args.format,
        "verbose": args.verbose,
    }
    s = replace(settings, **{k: v for k, v in overrides.items() if v is not None})
    configure_logging(s.verbose)

    try:
        return args.func(args, s)
    except InputError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except ServerError as e:
        format_output_error(e.body)
        return 1
    except SailError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
