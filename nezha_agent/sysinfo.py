"""Collection of host information and resource usage figures."""

from __future__ import annotations

import http.client
import logging
import math
import platform
import time
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from urllib import request
from urllib.error import HTTPError

import psutil

log = logging.getLogger(__name__)

IP_URL = "http://ip.sb"
USER_AGENT = "curl/8.0.0"
UNKNOWN = "unknown"
NO_FREQUENCY = "0.0GHz"

_VMS = frozenset(
    {
        "kvm", "qemu", "bochs", "xen", "uml", "vmware", "oracle", "microsoft",
        "zvm", "parallels", "bhyve", "qnx", "acrn", "powervm",
    }
)
_CONTAINERS = frozenset(
    {"systemd-nspawn", "lxc-libvirt", "lxc", "openvz", "docker", "podman", "rkt", "wsl"}
)
_DMI_MARKERS = (
    ("KVM", "kvm"),
    ("QEMU", "qemu"),
    ("VMware", "vmware"),
    ("VMW", "vmware"),
    ("innotek GmbH", "oracle"),
    ("VirtualBox", "oracle"),
    ("Xen", "xen"),
    ("Bochs", "bochs"),
    ("Parallels", "parallels"),
    ("BHYVE", "bhyve"),
    ("Microsoft Corporation", "microsoft"),
)


@dataclass(frozen=True)
class MemoryInfo:
    """Physical memory and swap figures in bytes."""

    total_mem: int
    free_mem: int
    used_mem: int
    total_swap: int
    free_swap: int
    used_swap: int


@dataclass(frozen=True)
class DiskInfo:
    """Summed space of all mounted disks in bytes."""

    total: int
    available: int
    used: int


@dataclass(frozen=True)
class CpuInfo:
    """Processor description as reported to the dashboard."""

    names: list[str]
    arch: str
    virtualization: str


@dataclass(frozen=True)
class UptimeInfo:
    """Seconds since boot and the load averages."""

    uptime: int
    load1: float
    load5: float
    load15: float


@dataclass(frozen=True)
class NetworkInfo:
    """Total bytes moved and the bytes moved since the previous sample."""

    rx_total: int
    tx_total: int
    rx_speed: int
    tx_speed: int


def get_mem_info() -> MemoryInfo:
    """Read memory and swap usage; used is total minus free."""
    memory = psutil.virtual_memory()
    swap = psutil.swap_memory()
    return MemoryInfo(
        total_mem=memory.total,
        free_mem=memory.free,
        used_mem=memory.total - memory.free,
        total_swap=swap.total,
        free_swap=swap.free,
        used_swap=swap.total - swap.free,
    )


def _distribution() -> str:
    try:
        release = platform.freedesktop_os_release()
    except OSError:
        release = {}
    name = release.get("PRETTY_NAME") or release.get("NAME")
    if name:
        return name
    if platform.system() == "Darwin":
        return f"macOS {platform.mac_ver()[0]}".strip()
    return f"{platform.system()} {platform.release()}".strip() or "Unknown"


def get_platform_info() -> tuple[str, str]:
    """Return the distribution name and the kernel version."""
    return _distribution(), platform.release() or "Unknown"


def format_frequency(hertz: float | None) -> str:
    """Format a clock rate in hertz as gigahertz with two decimals."""
    if hertz is None:
        return NO_FREQUENCY
    return f"{hertz / 1_000_000_000:.2f}GHz"


def format_cpu_names(brands: Iterable[str], frequency: str, virtual: bool) -> list[str]:
    """Group identical processor brands into one description each."""
    kind = "Virtual" if virtual else "Physical"
    return [
        f"{brand} @ {frequency} {count} {kind} Core"
        for brand, count in Counter(brands).items()
    ]


def _read(path: Path) -> str:
    try:
        return path.read_text(errors="replace").strip()
    except OSError:
        return ""


def _detect_container(root: Path) -> str | None:
    environ = _read(root / "proc/1/environ")
    for entry in environ.split("\0"):
        key, _, value = entry.partition("=")
        if key == "container" and value in _CONTAINERS:
            return value
    if (root / ".dockerenv").exists():
        return "docker"
    if (root / "run/.containerenv").exists():
        return "podman"
    osrelease = _read(root / "proc/sys/kernel/osrelease").lower()
    if "microsoft" in osrelease or "wsl" in osrelease:
        return "wsl"
    if (root / "proc/vz").exists() and not (root / "proc/bc").exists():
        return "openvz"
    return None


def _detect_vm(root: Path) -> str | None:
    dmi = root / "sys/class/dmi/id"
    for name in ("product_name", "sys_vendor", "board_vendor", "bios_vendor"):
        value = _read(dmi / name)
        for marker, virt in _DMI_MARKERS:
            if value.startswith(marker):
                return virt
    if (root / "proc/xen").exists():
        return "xen"
    return None


def _detect(root: Path) -> str:
    return _detect_container(root) or _detect_vm(root) or UNKNOWN


def _is_virtual(virtualization: str) -> bool:
    return virtualization in _VMS or virtualization in _CONTAINERS


def detect_virtualization() -> str:
    """Name the hypervisor or container runtime, or ``unknown``."""
    return _detect(Path("/"))


def _cpu_brands() -> list[str]:
    cpuinfo = _read(Path("/proc/cpuinfo"))
    brands = [
        line.split(":", 1)[1].strip()
        for line in cpuinfo.splitlines()
        if line.startswith("model name") and ":" in line
    ]
    if brands:
        return brands
    return [platform.processor()] * (psutil.cpu_count(logical=True) or 1)


def _max_frequency() -> float | None:
    try:
        freq = psutil.cpu_freq()
    except (OSError, NotImplementedError, AttributeError):
        return None
    if freq is None or not freq.max:
        return None
    return freq.max * 1_000_000


def get_cpu_info() -> CpuInfo:
    """Describe the processors, the architecture and the virtualization."""
    virtualization = detect_virtualization()
    names = format_cpu_names(
        _cpu_brands(), format_frequency(_max_frequency()), _is_virtual(virtualization)
    )
    return CpuInfo(names=names, arch=platform.machine(), virtualization=virtualization)


def get_disk_info() -> DiskInfo:
    """Sum the space of every mounted disk."""
    total = available = 0
    for partition in psutil.disk_partitions(all=False):
        try:
            usage = psutil.disk_usage(partition.mountpoint)
        except OSError:
            continue
        total += usage.total
        available += usage.free
    return DiskInfo(total=total, available=available, used=total - available)


def get_boot_time() -> int:
    """Return the boot time as a Unix timestamp, or 0 if it is unavailable."""
    try:
        return int(psutil.boot_time())
    except (OSError, RuntimeError):
        return 0


def get_ip_info(url: str = IP_URL, timeout: float = 5.0) -> str:
    """Ask a public service for this host's address; return '' on failure."""
    req = request.Request(url, headers={"User-Agent": USER_AGENT})
    try:
        try:
            with request.urlopen(req, timeout=timeout) as response:
                body = response.read()
        except HTTPError as error:
            body = error.read()
    except (OSError, ValueError, http.client.HTTPException) as exc:
        log.warning("could not obtain the IP address, none will be reported: %s", exc)
        return ""
    address = body.decode("utf-8", errors="replace")
    log.info("obtained IP address: %s", address)
    return address


def get_cpu_usage(percentages: Iterable[float]) -> float:
    """Average the per-processor usage; NaN when there are no processors."""
    values = [float(value) for value in percentages]
    if not values:
        return math.nan
    return sum(values) / len(values)


class NetworkCounter:
    """Keeps the previous totals so that each sample yields the bytes since the last."""

    def __init__(self) -> None:
        self._rx = 0
        self._tx = 0

    def sample(self) -> NetworkInfo:
        """Read the interface counters and record them."""
        counters = psutil.net_io_counters(pernic=True)
        rx = sum(counter.bytes_recv for counter in counters.values())
        tx = sum(counter.bytes_sent for counter in counters.values())
        return self.update(rx, tx)

    def update(self, rx: int, tx: int) -> NetworkInfo:
        """Record new totals and return them with the change since the last ones."""
        info = NetworkInfo(
            rx_total=rx,
            tx_total=tx,
            rx_speed=max(0, rx - self._rx),
            tx_speed=max(0, tx - self._tx),
        )
        self._rx, self._tx = rx, tx
        return info


def get_uptime_info() -> UptimeInfo:
    """Read the uptime in seconds and the 1, 5 and 15 minute load averages."""
    load1, load5, load15 = psutil.getloadavg()
    uptime = max(0, int(time.time() - psutil.boot_time()))
    return UptimeInfo(uptime=uptime, load1=float(load1), load5=float(load5), load15=float(load15))