#
# Ollama mDNS
#
# Copyright (c) 2022 Carnegie Mellon University
#
# SPDX-License-Identifier: MIT
#
"""Keep a set of advertisements alive until we are asked to stop.

The controller is single use. Advertisements are started in order and if any
of them fails to start, the ones that already started are withdrawn before
the error is passed on, we never leave orphaned responders behind.
"""

from __future__ import annotations

import logging
import signal
import threading
from enum import Enum
from typing import Any, Sequence

from attrs import define, field

from .advertisement import AdvertisementSpec
from .errors import SessionStateError
from .responder import Responder

logging.basicConfig(format="%(levelname)s:%(message)s", level=logging.INFO)
logger = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    TERMINATED = "terminated"


@define
class RunningAdvertisement:
    spec: AdvertisementSpec
    handle: Any


def shutdown_event(signals: Sequence[int] = (signal.SIGINT, signal.SIGTERM)):
    """Return an event that is set when one of the signals is received"""
    event = threading.Event()

    def handler(signum, _frame):
        logger.debug("Received signal %d", signum)
        event.set()

    for signum in signals:
        signal.signal(signum, handler)
    return event


@define
class SessionController:
    responder: Responder
    running: list[RunningAdvertisement] = field(factory=list, init=False)
    state: SessionState = field(default=SessionState.IDLE, init=False)

    def start(self, specs: Sequence[AdvertisementSpec]) -> None:
        if self.state is not SessionState.IDLE:
            raise SessionStateError(
                f"cannot start a session that is {self.state.value}"
            )

        self.state = SessionState.STARTING
        for spec in specs:
            try:
                handle = self.responder.start(spec)
            except BaseException:
                logger.error("Failed to advertise %s", spec.instance_name)
                self.stop()
                raise
            self.running.append(RunningAdvertisement(spec, handle))
            log_advertisement(spec)

        self.state = SessionState.RUNNING

    def wait(self, shutdown: threading.Event) -> None:
        """Block until the shutdown event is set, there is no timeout"""
        if self.state is not SessionState.RUNNING:
            raise SessionStateError(
                f"cannot wait on a session that is {self.state.value}"
            )
        shutdown.wait()

    def stop(self) -> None:
        """Withdraw every running advertisement.

        A failure to stop one of them is logged and does not keep us from
        stopping the others.
        """
        if self.state is SessionState.TERMINATED:
            return

        self.state = SessionState.STOPPING
        while self.running:
            advertisement = self.running.pop()
            try:
                self.responder.stop(advertisement.handle)
            except Exception:
                logger.exception(
                    "Failed to withdraw %s", advertisement.spec.instance_name
                )
        self.state = SessionState.TERMINATED

    def run(
        self, specs: Sequence[AdvertisementSpec], shutdown: threading.Event
    ) -> None:
        """Advertise specs until shutdown is set, then withdraw them.

        Whatever was started is withdrawn again, also when starting or waiting
        fails.
        """
        self.start(specs)
        try:
            logger.info("Press Ctrl+C to stop...")
            self.wait(shutdown)
            logger.info("Shutting down mDNS advertisements...")
        finally:
            self.stop()


def log_advertisement(spec: AdvertisementSpec) -> None:
    logger.info("Advertising Ollama %s service:", spec.protocol_tag.upper())
    logger.info("  Instance: %s", spec.instance_name)
    logger.info("  Service:  %s", spec.qualified_type)
    logger.info("  Host:     %s", spec.host)
    logger.info("  Port:     %d", spec.port)
    logger.info("  Proto:    %s", spec.protocol_tag)
    logger.info("  URL:      %s", spec.url)
    logger.info("  IPs:      %s", ", ".join(spec.sorted_addresses()))
