"""gRPC client for the dashboard and builders of the reports it accepts."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Any
from urllib.parse import urlsplit

import grpc
import psutil

from nezha_agent.args import VERSION
from nezha_agent.messages import Host, IoStreamData, Message, Receipt, State, Task, TaskResult
from nezha_agent.sysinfo import (
    NetworkCounter,
    get_boot_time,
    get_cpu_info,
    get_cpu_usage,
    get_disk_info,
    get_ip_info,
    get_mem_info,
    get_platform_info,
    get_uptime_info,
)

log = logging.getLogger(__name__)

SERVICE = "proto.NezhaService"
TIMEOUT = 5.0
METADATA_KEY = "client_secret"
ADDRESS_ERROR = "unable to parse server address"

_CHANNEL_OPTIONS = (
    ("grpc.keepalive_time_ms", 5000),
    ("grpc.keepalive_timeout_ms", 5000),
    ("grpc.keepalive_permit_without_calls", 1),
)


class ServerError(Exception):
    """A failed exchange with the dashboard."""

    def __init__(self, message: str, code: grpc.StatusCode | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    @classmethod
    def from_rpc(cls, error: grpc.RpcError) -> ServerError:
        code_of = getattr(error, "code", None)
        details_of = getattr(error, "details", None)
        code = code_of() if callable(code_of) else None
        details = details_of() if callable(details_of) else None
        return cls(details or str(error), code)


def build_target(server_url: str) -> str:
    """Turn a ``host:port`` address into a gRPC target, rejecting malformed ones."""
    try:
        parts = urlsplit("http://" + server_url)
        host = parts.hostname
        parts.port  # raises ValueError on a malformed port
    except ValueError as exc:
        log.error("%s: %s", ADDRESS_ERROR, exc)
        raise ServerError(ADDRESS_ERROR, grpc.StatusCode.ABORTED) from exc
    if not host:
        log.error("%s: %r", ADDRESS_ERROR, server_url)
        raise ServerError(ADDRESS_ERROR, grpc.StatusCode.ABORTED)
    return parts.netloc


def _metadata(token: str) -> tuple[tuple[str, str], ...]:
    if not (token.isascii() and token.isprintable()):
        raise ValueError("token is not a valid metadata value")
    return ((METADATA_KEY, token),)


def _serialize(message: Message) -> bytes:
    return message.to_bytes()


class NezhaClient:
    """Calls the dashboard's service methods, sending the token with each."""

    def __init__(self, channel: Any, token: str) -> None:
        self._metadata = _metadata(token)
        self._channel = channel

    @classmethod
    def connect(cls, server_url: str, token: str, tls: bool = False) -> NezhaClient:
        """Open a channel to the server and wait until it is ready."""
        _metadata(token)
        target = build_target(server_url)
        if tls:
            host = urlsplit("https://" + server_url).hostname
            options = _CHANNEL_OPTIONS + (("grpc.ssl_target_name_override", host),)
            channel = grpc.secure_channel(target, grpc.ssl_channel_credentials(), options=options)
        else:
            channel = grpc.insecure_channel(target, options=_CHANNEL_OPTIONS)
        try:
            grpc.channel_ready_future(channel).result(timeout=TIMEOUT)
        except grpc.FutureTimeoutError as exc:
            channel.close()
            raise ServerError(
                f"could not connect to {target}", grpc.StatusCode.UNAVAILABLE
            ) from exc
        return cls(channel, token)

    def _unary(self, method: str, message: Message) -> Receipt:
        call = self._channel.unary_unary(
            f"/{SERVICE}/{method}",
            request_serializer=_serialize,
            response_deserializer=Receipt.from_bytes,
        )
        try:
            return call(message, metadata=self._metadata, timeout=TIMEOUT)
        except grpc.RpcError as exc:
            raise ServerError.from_rpc(exc) from exc

    def report_system_state(self, state: State) -> Receipt:
        """Send the current usage figures."""
        return self._unary("ReportSystemState", state)

    def report_system_info(self, host: Host) -> Receipt:
        """Send the host description."""
        return self._unary("ReportSystemInfo", host)

    def report_task(self, result: TaskResult) -> Receipt:
        """Send the outcome of a task."""
        return self._unary("ReportTask", result)

    def request_task(self, host: Host) -> Iterator[Task]:
        """Yield the tasks the server streams for this host."""
        call = self._channel.unary_stream(
            f"/{SERVICE}/RequestTask",
            request_serializer=_serialize,
            response_deserializer=Task.from_bytes,
        )
        try:
            yield from call(host, metadata=self._metadata)
        except grpc.RpcError as exc:
            raise ServerError.from_rpc(exc) from exc

    def io_stream(self, requests: Iterable[IoStreamData]) -> Iterator[IoStreamData]:
        """Exchange a stream of raw data chunks with the server."""
        call = self._channel.stream_stream(
            f"/{SERVICE}/IOStream",
            request_serializer=_serialize,
            response_deserializer=IoStreamData.from_bytes,
        )
        try:
            yield from call(iter(requests), metadata=self._metadata)
        except grpc.RpcError as exc:
            raise ServerError.from_rpc(exc) from exc

    def close(self) -> None:
        """Close the underlying channel."""
        self._channel.close()

    def __enter__(self) -> NezhaClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def build_host() -> Host:
    """Describe this host for the dashboard."""
    memory = get_mem_info()
    distribution, kernel = get_platform_info()
    cpu = get_cpu_info()
    disk = get_disk_info()
    return Host(
        platform=distribution,
        platform_version=kernel,
        cpu=list(cpu.names),
        mem_total=memory.total_mem,
        disk_total=disk.total,
        swap_total=memory.total_swap,
        arch=cpu.arch,
        virtualization=cpu.virtualization,
        boot_time=get_boot_time(),
        ip=get_ip_info(),
        country_code="Dropped",
        version=VERSION,
        gpu=[],
    )


def build_state(counter: NetworkCounter) -> State:
    """Collect the current usage figures; network speed is relative to ``counter``."""
    memory = get_mem_info()
    disk = get_disk_info()
    network = counter.sample()
    uptime = get_uptime_info()
    return State(
        cpu=get_cpu_usage(psutil.cpu_percent(percpu=True)),
        mem_used=memory.used_mem,
        swap_used=memory.used_swap,
        disk_used=disk.used,
        net_in_transfer=network.rx_total,
        net_out_transfer=network.tx_total,
        net_in_speed=network.rx_speed,
        net_out_speed=network.tx_speed,
        uptime=uptime.uptime,
        load1=uptime.load1,
        load5=uptime.load5,
        load15=uptime.load15,
        tcp_conn_count=0,
        udp_conn_count=0,
        process_count=0,
        temperatures=[],
        gpu=0.0,
    )