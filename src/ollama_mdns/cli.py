#
# Ollama mDNS
#
# advertise an Ollama API endpoint on the local network with mDNS/DNS-SD
#
# Copyright (c) 2022 Carnegie Mellon University
#
# SPDX-License-Identifier: MIT
#

import logging

import click
from plumbum.colors import warn

from .advertisement import (
    DEFAULT_INSTANCE,
    DEFAULT_PORT,
    DEFAULT_TLS_PORT,
    AdvertisementConfig,
    build,
    resolve_hostname,
)
from .errors import AdvertiserError
from .interfaces import (
    VIRTUAL_INTERFACE_NAMES,
    VIRTUAL_INTERFACE_PREFIXES,
    collect_addresses,
)
from .responder import RESPONDERS
from .session import SessionController, shutdown_event

CONTEXT_SETTINGS = {
    "help_option_names": ["-h", "--help"],
    "auto_envvar_prefix": "OLLAMA_MDNS",
}

PORT_RANGE = click.IntRange(1, 65535)


@click.command(context_settings=CONTEXT_SETTINGS)
@click.version_option()
@click.option(
    "--host",
    type=str,
    default=None,
    help="Hostname to advertise  [default: system hostname]",
    show_envvar=True,
)
@click.option(
    "-p",
    "--port",
    type=PORT_RANGE,
    default=DEFAULT_PORT,
    help="Ollama HTTP port to advertise",
    show_default=True,
    show_envvar=True,
)
@click.option(
    "--instance",
    type=str,
    default=DEFAULT_INSTANCE,
    help="Service instance name",
    show_default=True,
    show_envvar=True,
)
@click.option(
    "--tls",
    type=click.BOOL,
    is_flag=False,
    flag_value=True,
    default=False,
    metavar="[BOOL]",
    help="Also advertise TLS/HTTPS endpoint, a bare --tls means true",
    show_default=True,
    show_envvar=True,
)
@click.option(
    "--tls-port",
    type=PORT_RANGE,
    default=DEFAULT_TLS_PORT,
    help="Ollama HTTPS port to advertise (requires --tls)",
    show_default=True,
    show_envvar=True,
)
@click.option(
    "--backend",
    type=click.Choice(sorted(RESPONDERS)),
    default="zeroconf",
    help="Publish with python-zeroconf or an avahi-publish process",
    show_default=True,
    show_envvar=True,
)
@click.option(
    "ignore_interfaces",
    "--ignore-interface",
    type=str,
    multiple=True,
    metavar="PREFIX",
    help="Skip interfaces starting with PREFIX (may be repeated)",
)
@click.option("--debug/--no-debug", default=False, help="Print logs for debugging")
def main(host, port, instance, tls, tls_port, backend, ignore_interfaces, debug):
    """Advertise an Ollama API endpoint on the local network with mDNS."""
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)

    if not tls and tls_port != DEFAULT_TLS_PORT:
        logging.warning(warn | "--tls-port is ignored unless --tls is given")

    controller = SessionController(RESPONDERS[backend]())
    try:
        hostname = resolve_hostname(host)
        addresses = collect_addresses(
            deny_prefixes=VIRTUAL_INTERFACE_PREFIXES + ignore_interfaces,
            deny_names=VIRTUAL_INTERFACE_NAMES,
        )
        config = AdvertisementConfig(
            host=hostname,
            addresses=addresses,
            port=port,
            instance=instance,
            tls=tls,
            tls_port=tls_port,
        )
        specs = build(config)

        controller.run(specs, shutdown_event())
    except AdvertiserError as e:
        raise click.ClickException(f"{e.phase} failed: {e}")
    except ValueError as e:
        raise click.UsageError(str(e))
