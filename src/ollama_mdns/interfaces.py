#
# Ollama mDNS
#
# Copyright (c) 2022 Carnegie Mellon University
#
# SPDX-License-Identifier: MIT
#
"""Select the local IPv4 addresses that are worth advertising.

Container, bridge and VPN interfaces carry addresses that peers on the
physical LAN cannot reach. If we advertise those, a browser may well resolve
our record to an address it cannot connect to, so those interfaces are
skipped based on their name. IPv6 addresses are skipped as well, the records
we publish only carry IPv4 addresses.
"""

from __future__ import annotations

import logging
import socket
from ipaddress import IPv4Address
from typing import Iterable

import psutil
from attrs import field, frozen

from .errors import InterfaceEnumerationError, NoAddressError

logging.basicConfig(format="%(levelname)s:%(message)s", level=logging.INFO)
logger = logging.getLogger(__name__)

VIRTUAL_INTERFACE_PREFIXES = (
    "docker",
    "br-",
    "veth",
    "virbr",
    "lxc",
    "lxd",
    "flannel",
    "cni",
    "calico",
    "weave",
    "podman",
)
VIRTUAL_INTERFACE_NAMES = ("docker0",)


@frozen(order=True)
class NetworkAddress:
    """An IPv4 address found on an eligible interface.

    The interface name is only kept for logging, two interfaces sharing the
    same address compare equal.
    """

    address: IPv4Address = field(converter=IPv4Address)
    interface: str = field(default="", eq=False, order=False)

    def __str__(self) -> str:
        return str(self.address)


def is_virtual_interface(
    name: str,
    deny_prefixes: Iterable[str] = VIRTUAL_INTERFACE_PREFIXES,
    deny_names: Iterable[str] = VIRTUAL_INTERFACE_NAMES,
) -> bool:
    """True for interface names that look like container/bridge/vpn networks"""
    if any(name.startswith(prefix) for prefix in deny_prefixes):
        return True
    return name in deny_names


def _flags(stats) -> list[str]:
    # psutil only reports interface flags on some platforms
    flags = getattr(stats, "flags", "") or ""
    return [flag for flag in flags.split(",") if flag]


def _ipv4_addresses(
    name: str, addrs, skip_loopback: bool = False
) -> Iterable[NetworkAddress]:
    for addr in addrs:
        if addr.family != socket.AF_INET:
            continue
        try:
            address = NetworkAddress(addr.address, name)
        except ValueError:
            logger.debug("Ignoring invalid address %s on %s", addr.address, name)
            continue
        if skip_loopback and address.address.is_loopback:
            continue
        yield address


def collect_addresses(
    deny_prefixes: Iterable[str] = VIRTUAL_INTERFACE_PREFIXES,
    deny_names: Iterable[str] = VIRTUAL_INTERFACE_NAMES,
) -> frozenset[NetworkAddress]:
    """Return IPv4 addresses of all up, non-loopback, non-virtual interfaces.

    Raises InterfaceEnumerationError when the interfaces cannot be listed and
    NoAddressError when no address survives the filtering.
    """
    deny_prefixes = tuple(deny_prefixes)
    deny_names = tuple(deny_names)

    try:
        interfaces = psutil.net_if_addrs()
        interface_stats = psutil.net_if_stats()
    except (OSError, psutil.Error) as e:
        raise InterfaceEnumerationError(
            f"unable to list network interfaces: {e}"
        ) from e

    addresses: set[NetworkAddress] = set()
    for name, addrs in interfaces.items():
        stats = interface_stats.get(name)
        if stats is None or not stats.isup:
            logger.debug("Skipping interface %s (down)", name)
            continue

        flags = _flags(stats)
        if "loopback" in flags:
            logger.debug("Skipping interface %s (loopback)", name)
            continue

        if is_virtual_interface(name, deny_prefixes, deny_names):
            logger.debug("Skipping interface %s (virtual)", name)
            continue

        # without flags, loopback can only be told apart by address
        addresses.update(_ipv4_addresses(name, addrs, skip_loopback=not flags))

    if not addresses:
        raise NoAddressError("no usable IPv4 address found on any network interface")

    return frozenset(addresses)
