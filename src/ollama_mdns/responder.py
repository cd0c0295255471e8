#
# Ollama mDNS
#
# Copyright (c) 2022 Carnegie Mellon University
#
# SPDX-License-Identifier: MIT
#
"""Responders answer mDNS queries for the records we advertise.

Two interchangeable implementations are provided. ZeroconfResponder answers
queries from within this process with python-zeroconf. AvahiResponder hands
each record to an avahi-publish child process, which relies on the system's
avahi-daemon to do the actual work.
"""

from __future__ import annotations

import logging
import subprocess
from typing import Any, Protocol

from attrs import define, field
from plumbum import CommandNotFound, local
from zeroconf import Error as ZeroconfError
from zeroconf import IPVersion, ServiceInfo, Zeroconf

from .advertisement import AdvertisementSpec
from .errors import ResponderStartError, ResponderStopError

logging.basicConfig(format="%(levelname)s:%(message)s", level=logging.INFO)
logger = logging.getLogger(__name__)


class Responder(Protocol):
    def start(self, spec: AdvertisementSpec) -> Any:
        """Start answering for spec, returns an opaque handle"""

    def stop(self, handle: Any) -> None:
        """Withdraw the advertisement, stopping a stopped handle is a no-op"""


def service_info(spec: AdvertisementSpec) -> ServiceInfo:
    """create the zeroconf service record for an advertisement"""
    return ServiceInfo(
        spec.qualified_type,
        spec.qualified_name,
        port=spec.port,
        properties=spec.properties,
        server=spec.host,
        parsed_addresses=spec.sorted_addresses(),
    )


@define
class ZeroconfResponder:
    """Wrapper helping with zeroconf service registration.

    All advertisements share a single Zeroconf instance which is created on
    the first registration and closed when the last one is withdrawn.
    """

    zeroconf: Zeroconf | None = None
    registered: dict[str, ServiceInfo] = field(factory=dict)

    def start(self, spec: AdvertisementSpec) -> ServiceInfo:
        try:
            info = service_info(spec)
            if self.zeroconf is None:
                self.zeroconf = Zeroconf(
                    interfaces=spec.sorted_addresses(), ip_version=IPVersion.V4Only
                )
            self.zeroconf.register_service(info, allow_name_change=True)
        except (OSError, ValueError, ZeroconfError) as e:
            if not self.registered:
                self._close()
            raise ResponderStartError(
                f"failed to register {spec.qualified_name}: {e}"
            ) from e

        if info.name != spec.qualified_name:
            logger.warning("Name conflict, advertising as %s", info.name)

        self.registered[info.name] = info
        return info

    def stop(self, handle: ServiceInfo) -> None:
        info = self.registered.pop(handle.name, None)
        if info is None or self.zeroconf is None:
            return
        try:
            self.zeroconf.unregister_service(info)
        except (OSError, ZeroconfError) as e:
            raise ResponderStopError(f"failed to withdraw {info.name}: {e}") from e
        finally:
            if not self.registered:
                self._close()

    def _close(self) -> None:
        if self.zeroconf is not None:
            self.zeroconf.close()
            self.zeroconf = None


def publish_args(spec: AdvertisementSpec) -> list[str]:
    """avahi-publish arguments for a service record"""
    return [
        "-s",
        spec.instance_name,
        spec.service_type,
        str(spec.port),
        *spec.txt_records,
    ]


@define
class AvahiResponder:
    """Publish records by running avahi-publish, one process per record"""

    executable: str = "avahi-publish"
    grace_period: float = 5.0
    startup_delay: float = 0.2

    def start(self, spec: AdvertisementSpec) -> subprocess.Popen:
        try:
            avahi_publish = local[self.executable]
        except CommandNotFound as e:
            raise ResponderStartError(
                f"{self.executable} not found. "
                "Install avahi-utils: apt install avahi-utils"
            ) from e

        logger.debug(
            "avahi-publish can not bind to addresses, ignoring %s",
            ", ".join(spec.sorted_addresses()),
        )

        try:
            process = avahi_publish[publish_args(spec)].popen(
                stdout=None, stderr=None
            )
        except OSError as e:
            raise ResponderStartError(f"failed to run {self.executable}: {e}") from e

        try:
            returncode = process.wait(timeout=self.startup_delay)
        except subprocess.TimeoutExpired:
            return process

        raise ResponderStartError(
            f"{self.executable} exited with status {returncode} "
            f"while publishing {spec.instance_name}"
        )

    def stop(self, handle: subprocess.Popen) -> None:
        if handle.poll() is not None:
            return
        try:
            handle.terminate()
            try:
                handle.wait(timeout=self.grace_period)
            except subprocess.TimeoutExpired:
                logger.warning("%s did not exit, killing it", self.executable)
                handle.kill()
                handle.wait()
        except OSError as e:
            raise ResponderStopError(f"failed to stop {self.executable}: {e}") from e


RESPONDERS = {
    "zeroconf": ZeroconfResponder,
    "avahi": AvahiResponder,
}
