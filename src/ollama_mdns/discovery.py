#
# Ollama mDNS
#
# Copyright (c) 2022 Carnegie Mellon University
#
# SPDX-License-Identifier: MIT
#
"""Browse the local network for advertised Ollama endpoints.

The zeroconf browser runs in the background and hands us the names of any
services it sees. Each one is resolved and yielded right away, the caller
gets a stream of entries that ends when the timeout expires.
"""

from __future__ import annotations

import logging
import queue
import time
from typing import Iterator

from attrs import frozen
from zeroconf import Error as ZeroconfError
from zeroconf import (
    IPVersion,
    ServiceBrowser,
    ServiceInfo,
    ServiceStateChange,
    Zeroconf,
)

from .advertisement import SERVICE_DOMAIN, SERVICE_TYPE, qualified_type
from .errors import QueryTransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 2.0


def _txt_record(key: bytes, value: bytes | None) -> str:
    record = key.decode("utf-8", "replace")
    if value is None:
        return record
    return f"{record}={value.decode('utf-8', 'replace')}"


@frozen
class ServiceEntry:
    name: str
    host: str
    port: int
    addresses_v4: tuple[str, ...]
    addresses_v6: tuple[str, ...]
    txt: tuple[str, ...]

    @classmethod
    def from_service_info(cls, info: ServiceInfo) -> ServiceEntry:
        return cls(
            name=info.name,
            host=info.server or "",
            port=info.port or 0,
            addresses_v4=tuple(info.parsed_addresses(IPVersion.V4Only)),
            addresses_v6=tuple(info.parsed_addresses(IPVersion.V6Only)),
            txt=tuple(
                _txt_record(key, value) for key, value in info.properties.items()
            ),
        )


def discover(
    service_type: str = SERVICE_TYPE,
    timeout: float = DEFAULT_TIMEOUT,
    domain: str = SERVICE_DOMAIN,
) -> Iterator[ServiceEntry]:
    """Yield services of the given type as they are found, until timeout.

    Every announcement is passed on, entries are not filtered or deduplicated.
    Raises QueryTransportError when we cannot open the multicast sockets.
    """
    type_ = qualified_type(service_type, domain)
    deadline = time.monotonic() + timeout

    try:
        zeroconf = Zeroconf()
    except (OSError, ZeroconfError) as e:
        raise QueryTransportError(f"unable to open mDNS sockets: {e}") from e

    found: queue.Queue[str] = queue.Queue()

    def on_service_state_change(
        zeroconf: Zeroconf,
        service_type: str,
        name: str,
        state_change: ServiceStateChange,
    ) -> None:
        if state_change in (ServiceStateChange.Added, ServiceStateChange.Updated):
            found.put(name)

    try:
        browser = ServiceBrowser(zeroconf, type_, handlers=[on_service_state_change])
    except (OSError, ZeroconfError) as e:
        zeroconf.close()
        raise QueryTransportError(f"unable to browse for {type_}: {e}") from e

    try:
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            try:
                name = found.get(timeout=remaining)
            except queue.Empty:
                return

            remaining_ms = max(int((deadline - time.monotonic()) * 1000), 1)
            info = zeroconf.get_service_info(type_, name, timeout=remaining_ms)
            if info is None:
                logger.debug("Unable to resolve %s", name)
                continue
            yield ServiceEntry.from_service_info(info)
    finally:
        browser.cancel()
        zeroconf.close()
