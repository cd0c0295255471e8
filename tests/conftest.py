# Copyright (c) 2022 Carnegie Mellon University
# SPDX-License-Identifier: MIT

import socket
from types import SimpleNamespace

import psutil
import pytest

from ollama_mdns.advertisement import AdvertisementConfig, build
from ollama_mdns.errors import ResponderStartError, ResponderStopError
from ollama_mdns.interfaces import NetworkAddress

LAN_ADDRESS = "192.168.1.10"


def nic(*addresses, isup=True, loopback=False):
    """Status and addresses of a fake network interface"""
    flags = "up,loopback,running" if loopback else "up,broadcast,running,multicast"
    stats = SimpleNamespace(isup=isup, duplex=0, speed=0, mtu=1500, flags=flags)
    addrs = [
        SimpleNamespace(
            family=socket.AF_INET6 if ":" in address else socket.AF_INET,
            address=address,
            netmask=None,
            broadcast=None,
            ptp=None,
        )
        for address in addresses
    ]
    return stats, addrs


class FakeResponder:
    """Records start/stop calls, fails for the configured instance names"""

    def __init__(
        self,
        fail_start=(),
        fail_stop=(),
        start_error=ResponderStartError,
        stop_error=ResponderStopError,
    ):
        self.fail_start = set(fail_start)
        self.fail_stop = set(fail_stop)
        self.start_error = start_error
        self.stop_error = stop_error
        self.specs = []
        self.started = []
        self.stopped = []

    def start(self, spec):
        if spec.instance_name in self.fail_start:
            raise self.start_error(f"cannot start {spec.instance_name}")
        self.specs.append(spec)
        self.started.append(spec.instance_name)
        return spec.instance_name

    def stop(self, handle):
        self.stopped.append(handle)
        if handle in self.fail_stop:
            raise self.stop_error(f"cannot stop {handle}")

    @property
    def running(self):
        return [name for name in self.started if name not in self.stopped]


@pytest.fixture
def fake_interfaces(monkeypatch):
    """Replace the host's interfaces, takes a mapping of name -> nic(...)"""

    def set_interfaces(table):
        def net_if_addrs():
            return {name: addrs for name, (_stats, addrs) in table.items()}

        def net_if_stats():
            return {
                name: stats
                for name, (stats, _addrs) in table.items()
                if stats is not None
            }

        monkeypatch.setattr(psutil, "net_if_addrs", net_if_addrs)
        monkeypatch.setattr(psutil, "net_if_stats", net_if_stats)

    return set_interfaces


@pytest.fixture
def lan_interfaces(fake_interfaces):
    fake_interfaces(
        {
            "lo": nic("127.0.0.1", "::1", loopback=True),
            "eth0": nic(LAN_ADDRESS, "fe80::1"),
            "docker0": nic("172.17.0.1"),
        }
    )


@pytest.fixture
def addresses():
    return frozenset([NetworkAddress(LAN_ADDRESS, "eth0")])


@pytest.fixture
def http_specs(addresses):
    return build(AdvertisementConfig(host="myhost", addresses=addresses))


@pytest.fixture
def all_specs(addresses):
    return build(
        AdvertisementConfig(host="myhost", addresses=addresses, tls=True, tls_port=8443)
    )
