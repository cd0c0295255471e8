# Copyright (c) 2022 Carnegie Mellon University
# SPDX-License-Identifier: MIT

from ipaddress import IPv4Address

import psutil
import pytest

from ollama_mdns.errors import InterfaceEnumerationError, NoAddressError
from ollama_mdns.interfaces import (
    NetworkAddress,
    collect_addresses,
    is_virtual_interface,
)

from .conftest import LAN_ADDRESS, nic


@pytest.mark.parametrize(
    "name",
    [
        "docker0",
        "docker_gwbridge",
        "veth12ab",
        "br-abc",
        "virbr0",
        "lxcbr0",
        "lxdbr0",
        "flannel.1",
        "cni0",
        "calico123",
        "weave",
        "podman0",
    ],
)
def test_virtual_interface(name):
    assert is_virtual_interface(name)


@pytest.mark.parametrize("name", ["eth0", "wlan0", "enp3s0", "bridge0", "wg0"])
def test_physical_interface(name):
    assert not is_virtual_interface(name)


def test_extra_deny_prefix():
    assert not is_virtual_interface("tailscale0")
    assert is_virtual_interface("tailscale0", deny_prefixes=["tailscale"])
    assert is_virtual_interface("docker0", deny_prefixes=[])


class TestCollectAddresses:
    def test_excludes_virtual(self, fake_interfaces):
        fake_interfaces(
            {
                "eth0": nic(LAN_ADDRESS),
                "docker0": nic("172.17.0.1"),
                "veth12ab": nic("10.0.0.5"),
                "br-abc": nic("172.18.0.1"),
            }
        )
        addresses = collect_addresses()
        assert addresses == {NetworkAddress(LAN_ADDRESS)}

    def test_excludes_loopback_and_down(self, fake_interfaces):
        fake_interfaces(
            {
                "lo": nic("127.0.0.1", loopback=True),
                "eth0": nic(LAN_ADDRESS),
                "eth1": nic("10.1.0.2", isup=False),
                "wlan0": nic("10.2.0.3"),
            }
        )
        addresses = collect_addresses()
        assert {str(address) for address in addresses} == {LAN_ADDRESS, "10.2.0.3"}

    def test_loopback_address_without_flags(self, fake_interfaces):
        stats, addrs = nic("127.0.0.1", LAN_ADDRESS)
        stats.flags = ""
        fake_interfaces({"lo0": (stats, addrs)})
        assert collect_addresses() == {NetworkAddress(LAN_ADDRESS)}

    def test_loopback_range_on_regular_interface(self, fake_interfaces):
        fake_interfaces({"eth0": nic("127.0.1.1", LAN_ADDRESS)})
        assert collect_addresses() == {
            NetworkAddress("127.0.1.1"),
            NetworkAddress(LAN_ADDRESS),
        }

    def test_missing_stats_treated_as_down(self, fake_interfaces):
        _stats, addrs = nic(LAN_ADDRESS)
        fake_interfaces({"eth0": (None, addrs), "eth1": nic("10.1.0.2")})
        assert collect_addresses() == {NetworkAddress("10.1.0.2")}

    def test_ipv4_only(self, fake_interfaces):
        fake_interfaces({"eth0": nic("fe80::1", "2001:db8::1", LAN_ADDRESS)})
        addresses = collect_addresses()
        assert addresses == {NetworkAddress(LAN_ADDRESS)}
        assert all(isinstance(a.address, IPv4Address) for a in addresses)

    def test_duplicates_collapse(self, fake_interfaces):
        fake_interfaces({"eth0": nic(LAN_ADDRESS), "wlan0": nic(LAN_ADDRESS)})
        assert len(collect_addresses()) == 1

    def test_no_address(self, fake_interfaces):
        fake_interfaces(
            {
                "lo": nic("127.0.0.1", loopback=True),
                "docker0": nic("172.17.0.1"),
                "eth0": nic("fe80::1"),
            }
        )
        with pytest.raises(NoAddressError):
            collect_addresses()

    def test_no_interfaces(self, fake_interfaces):
        fake_interfaces({})
        with pytest.raises(NoAddressError):
            collect_addresses()

    def test_extra_deny_prefixes(self, fake_interfaces):
        fake_interfaces({"eth0": nic(LAN_ADDRESS), "tailscale0": nic("100.64.0.1")})
        addresses = collect_addresses(deny_prefixes=["docker", "tailscale"])
        assert addresses == {NetworkAddress(LAN_ADDRESS)}

    @pytest.mark.parametrize(
        "error", [PermissionError("denied"), psutil.AccessDenied()]
    )
    def test_enumeration_error(self, monkeypatch, error):
        def net_if_addrs():
            raise error

        monkeypatch.setattr(psutil, "net_if_addrs", net_if_addrs)
        with pytest.raises(InterfaceEnumerationError):
            collect_addresses()


class TestNetworkAddress:
    def test_equality_ignores_interface(self):
        eth0 = NetworkAddress(LAN_ADDRESS, "eth0")
        assert eth0 == NetworkAddress(LAN_ADDRESS, "wlan0")
        assert len({eth0, NetworkAddress(LAN_ADDRESS)}) == 1

    def test_str(self):
        assert str(NetworkAddress(LAN_ADDRESS, "eth0")) == LAN_ADDRESS

    def test_invalid(self):
        with pytest.raises(ValueError):
            NetworkAddress("fe80::1")
        with pytest.raises(ValueError):
            NetworkAddress("not-an-address")
