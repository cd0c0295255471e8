#
# Ollama mDNS
#
# Copyright (c) 2022 Carnegie Mellon University
#
# SPDX-License-Identifier: MIT
#
"""Exceptions raised while advertising or discovering Ollama endpoints.

Every error carries the name of the phase that failed so the command line
tools can tell the user where things went wrong.
"""


class AdvertiserError(Exception):
    phase = "advertiser"


class HostnameResolutionError(AdvertiserError):
    phase = "hostname"


class InterfaceEnumerationError(AdvertiserError):
    phase = "interface enumeration"


class NoAddressError(AdvertiserError):
    phase = "address filtering"


class ResponderStartError(AdvertiserError):
    phase = "responder start"


class ResponderStopError(AdvertiserError):
    phase = "responder stop"


class QueryTransportError(AdvertiserError):
    phase = "query"


class SessionStateError(RuntimeError):
    """Session controller used out of order (it is single use)"""
