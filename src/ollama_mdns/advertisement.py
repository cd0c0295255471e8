#
# Ollama mDNS
#
# Copyright (c) 2022 Carnegie Mellon University
#
# SPDX-License-Identifier: MIT
#
"""The set of service records we announce for an Ollama endpoint.

There is always a plain HTTP record. When the endpoint is also reachable
over TLS a second record is added with a '-tls' suffix on the instance name,
two records with the same name and service type would collide.
"""

from __future__ import annotations

import socket
from typing import Sequence

from attrs import define, field, frozen
from attrs.validators import in_
from yarl import URL

from .errors import HostnameResolutionError
from .interfaces import NetworkAddress

SERVICE_TYPE = "_ollama._tcp"
SERVICE_DOMAIN = "local"
DEFAULT_PORT = 11434
DEFAULT_TLS_PORT = 443
DEFAULT_INSTANCE = "ollama"
DEFAULT_TAGS = ("ollama", "llm", "ai")
TLS_SUFFIX = "-tls"


def qualified_type(
    service_type: str = SERVICE_TYPE, domain: str = SERVICE_DOMAIN
) -> str:
    """'_ollama._tcp' -> '_ollama._tcp.local.'"""
    return f"{service_type.rstrip('.')}.{domain.strip('.')}."


def normalize_host(host: str) -> str:
    """Hostnames are advertised fully qualified, with a trailing dot"""
    return host if host.endswith(".") else f"{host}."


def resolve_hostname(host: str | None = None) -> str:
    """Return the hostname to advertise, defaults to the system hostname."""
    if host:
        return host
    try:
        hostname = socket.gethostname()
    except OSError as e:
        raise HostnameResolutionError(f"failed to get hostname: {e}") from e
    if not hostname:
        raise HostnameResolutionError("system hostname is empty")
    return hostname


def _valid_port(_instance, attribute, value):
    if not 1 <= int(value) <= 65535:
        raise ValueError(f"{attribute.name} out of range: {value}")


def _nonempty(_instance, attribute, value):
    if not value:
        raise ValueError(f"{attribute.name} must not be empty")


@frozen
class AdvertisementSpec:
    """A single service record, ready to be handed to a responder"""

    instance_name: str = field(validator=_nonempty)
    host: str = field(converter=normalize_host)
    port: int = field(validator=_valid_port)
    addresses: frozenset[NetworkAddress] = field(
        converter=frozenset, validator=_nonempty
    )
    txt_records: tuple[str, ...] = field(converter=tuple)
    protocol_tag: str = field(validator=in_(("http", "https")))
    service_type: str = SERVICE_TYPE
    domain: str = SERVICE_DOMAIN

    @property
    def qualified_type(self) -> str:
        return qualified_type(self.service_type, self.domain)

    @property
    def qualified_name(self) -> str:
        return f"{self.instance_name}.{self.qualified_type}"

    @property
    def properties(self) -> dict[str, str | None]:
        """TXT records as zeroconf properties, a bare tag maps to None"""
        properties: dict[str, str | None] = {}
        for record in self.txt_records:
            key, sep, value = record.partition("=")
            properties.setdefault(key, value if sep else None)
        return properties

    @property
    def url(self) -> URL:
        return URL.build(
            scheme=self.protocol_tag, host=self.host.rstrip("."), port=self.port
        )

    def sorted_addresses(self) -> list[str]:
        return [str(address) for address in sorted(self.addresses)]


@define
class AdvertisementConfig:
    """Everything needed to build the advertisement set"""

    host: str
    addresses: frozenset[NetworkAddress] = field(converter=frozenset)
    port: int = DEFAULT_PORT
    instance: str = DEFAULT_INSTANCE
    tls: bool = False
    tls_port: int = DEFAULT_TLS_PORT
    tags: Sequence[str] = DEFAULT_TAGS


def build(config: AdvertisementConfig) -> list[AdvertisementSpec]:
    """Construct the HTTP record, and the HTTPS record when tls is requested.

    Raises ValueError for an empty address set or a port out of range.
    """
    specs = [
        AdvertisementSpec(
            instance_name=config.instance,
            host=config.host,
            port=config.port,
            addresses=config.addresses,
            txt_records=["proto=http", *config.tags],
            protocol_tag="http",
        )
    ]
    if config.tls:
        specs.append(
            AdvertisementSpec(
                instance_name=config.instance + TLS_SUFFIX,
                host=config.host,
                port=config.tls_port,
                addresses=config.addresses,
                txt_records=["proto=https", *config.tags],
                protocol_tag="https",
            )
        )
    return specs
