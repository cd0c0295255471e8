#
# Ollama mDNS
#
# look for Ollama API endpoints advertised on the local network
#
# Copyright (c) 2022 Carnegie Mellon University
#
# SPDX-License-Identifier: MIT
#

import typer

from .advertisement import SERVICE_TYPE
from .discovery import DEFAULT_TIMEOUT, ServiceEntry, discover
from .errors import QueryTransportError

app = typer.Typer()

timeout_option = typer.Option(DEFAULT_TIMEOUT, help="Seconds to wait for answers")
service_type_option = typer.Option(SERVICE_TYPE, help="DNS-SD service type to query")


def format_entry(entry: ServiceEntry) -> str:
    return "\n".join(
        [
            f"Found: {entry.name}",
            f"  Host: {entry.host}",
            f"  Port: {entry.port}",
            f"  IPs:  {list(entry.addresses_v4)} {list(entry.addresses_v6)}",
            f"  TXT:  {list(entry.txt)}",
        ]
    )


@app.command()
def main(
    timeout: float = timeout_option,
    service_type: str = service_type_option,
) -> None:
    """Print Ollama endpoints as they answer our mDNS query."""
    try:
        for entry in discover(service_type, timeout):
            typer.echo(format_entry(entry))
    except QueryTransportError as e:
        typer.echo(f"Query error: {e}")
