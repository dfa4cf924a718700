"""Reporting loop of the agent and its command-line entry point."""

from __future__ import annotations

import itertools
import logging
import time
from collections.abc import Callable, Sequence
from typing import Any

from nezha_agent.args import parse_args
from nezha_agent.client import NezhaClient, ServerError, build_host, build_state
from nezha_agent.messages import Host, State
from nezha_agent.sysinfo import NetworkCounter

log = logging.getLogger(__name__)

# Status message the dashboard sends back when the token is rejected.
AUTH_FAILED = "客户端认证失败"
INTERVAL = 1.0
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(debug: bool = False) -> None:
    """Log to stderr at debug level when asked, otherwise at info level."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        force=True,
    )


class Agent:
    """Sends the host description once, then usage figures at a fixed interval."""

    def __init__(
        self,
        client: Any,
        *,
        interval: float = INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        host_factory: Callable[[], Host] = build_host,
        state_factory: Callable[[NetworkCounter], State] = build_state,
    ) -> None:
        self.client = client
        self.interval = interval
        self.counter = NetworkCounter()
        self._sleep = sleep
        self._host_factory = host_factory
        self._state_factory = state_factory

    def send_host(self) -> bool:
        """Report the host description.

        Returns whether it was accepted; a rejected token ends the process.
        """
        try:
            host = self._host_factory()
        except (OSError, ValueError) as exc:
            log.debug("could not describe the host: %s", exc)
            return False
        log.debug("host request: %r", host)
        try:
            receipt = self.client.report_system_info(host)
        except ServerError as exc:
            log.debug("host response: %r", exc)
            if exc.message == AUTH_FAILED:
                log.error("the connection token is incorrect")
                raise SystemExit(1) from exc
            log.error("could not send the host description")
            return False
        log.debug("host response: %r", receipt)
        log.info("host description sent")
        return True

    def send_state(self) -> bool:
        """Report the current usage figures; return whether it succeeded."""
        try:
            state = self._state_factory(self.counter)
        except (OSError, ValueError, RuntimeError) as exc:
            log.error("could not collect the host state: %s", exc)
            return False
        log.debug("state request: %r", state)
        try:
            receipt = self.client.report_system_state(state)
        except ServerError as exc:
            log.error("could not send the host state: %s", exc)
            return False
        log.debug("state response: %r", receipt)
        log.info("host state sent")
        return True

    def run(self, iterations: int | None = None) -> None:
        """Send the host once, then the state ``iterations`` times (forever if None)."""
        self.send_host()
        rounds = itertools.count() if iterations is None else range(iterations)
        for _ in rounds:
            self.send_state()
            self._sleep(self.interval)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the agent from the command line."""
    args = parse_args(argv)
    configure_logging(args.debug)
    try:
        client = NezhaClient.connect(args.server, args.password, tls=args.tls)
    except (ServerError, ValueError) as exc:
        log.error("could not connect to the server: %s", exc)
        raise SystemExit(1) from exc
    log.info("connected to the server")
    with client:
        try:
            Agent(client).run()
        except KeyboardInterrupt:
            return 0
    return 0