import threading
import time
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from nezha_agent import sysinfo
from nezha_agent.sysinfo import (
    NetworkCounter,
    detect_virtualization,
    format_cpu_names,
    format_frequency,
    get_boot_time,
    get_cpu_info,
    get_cpu_usage,
    get_disk_info,
    get_ip_info,
    get_mem_info,
    get_platform_info,
    get_uptime_info,
)


@pytest.fixture
def ip_server():
    seen = {}
    body = b"203.0.113.7\n"

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            seen["agent"] = self.headers.get("User-Agent")
            self.send_response(200)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, *args):
            pass

    server = HTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_port}/", seen, body.decode()
    server.shutdown()
    server.server_close()


def test_format_frequency_without_value():
    assert format_frequency(None) == "0.0GHz"


def test_format_frequency_two_decimals():
    assert format_frequency(2_500_000_000) == "2.50GHz"


def test_format_cpu_names_groups_brands_in_order():
    names = format_cpu_names(["Alpha", "Beta", "Alpha"], "1.00GHz", False)
    assert names == ["Alpha @ 1.00GHz 2 Physical Core", "Beta @ 1.00GHz 1 Physical Core"]


def test_format_cpu_names_virtual():
    names = format_cpu_names(["Alpha"] * 4, "0.0GHz", True)
    assert len(names) == 1
    assert names[0].endswith("4 Virtual Core")


def test_format_cpu_names_empty():
    assert format_cpu_names([], "0.0GHz", False) == []


def test_cpu_usage_of_equal_values():
    assert get_cpu_usage([42.5] * 8) == pytest.approx(42.5)


def test_cpu_usage_is_between_bounds():
    usage = get_cpu_usage([0.0, 100.0, 50.0])
    assert 0.0 <= usage <= 100.0


def test_cpu_usage_without_processors_is_nan():
    usage = get_cpu_usage([])
    assert str(usage) == "nan"


def test_network_counter_first_update_counts_from_zero():
    counter = NetworkCounter()
    info = counter.update(100, 50)
    assert (info.rx_total, info.tx_total) == (100, 50)
    assert (info.rx_speed, info.tx_speed) == (100, 50)


def test_network_counter_reports_difference():
    counter = NetworkCounter()
    counter.update(100, 50)
    info = counter.update(150, 80)
    assert info.rx_speed == 150 - 100
    assert info.tx_speed == 80 - 50


def test_network_counter_reset_does_not_go_negative():
    counter = NetworkCounter()
    counter.update(1000, 1000)
    info = counter.update(10, 10)
    assert (info.rx_speed, info.tx_speed) == (0, 0)


def test_network_counter_sample_from_fresh_counter():
    info = NetworkCounter().sample()
    assert info.rx_speed == info.rx_total
    assert info.tx_speed == info.tx_total


def test_mem_info_invariants():
    mem = get_mem_info()
    assert mem.total_mem > 0
    assert mem.used_mem + mem.free_mem == mem.total_mem
    assert mem.used_swap + mem.free_swap == mem.total_swap


def test_disk_info_invariant():
    disk = get_disk_info()
    assert disk.used + disk.available == disk.total
    assert disk.available >= 0


def test_boot_time_is_in_the_past():
    boot = get_boot_time()
    assert 0 <= boot <= time.time()


def test_uptime_info():
    info = get_uptime_info()
    assert info.uptime >= 0
    assert min(info.load1, info.load5, info.load15) >= 0.0


def test_platform_info_is_filled():
    dist, kernel = get_platform_info()
    assert dist
    assert kernel


def test_cpu_info_descriptions():
    info = get_cpu_info()
    assert info.names
    assert all(name.endswith(("Physical Core", "Virtual Core")) for name in info.names)
    assert info.virtualization == detect_virtualization()


def test_detect_empty_root_is_unknown(tmp_path):
    assert sysinfo._detect(tmp_path) == sysinfo.UNKNOWN


def test_detect_docker(tmp_path):
    (tmp_path / ".dockerenv").touch()
    assert sysinfo._detect(tmp_path) == "docker"


def test_detect_vm_from_dmi(tmp_path):
    dmi = tmp_path / "sys/class/dmi/id"
    dmi.mkdir(parents=True)
    (dmi / "sys_vendor").write_text("QEMU\n")
    result = sysinfo._detect(tmp_path)
    assert result in sysinfo._VMS


def test_detect_container_from_environment(tmp_path):
    proc = tmp_path / "proc/1"
    proc.mkdir(parents=True)
    (proc / "environ").write_bytes(b"PATH=/bin\0container=lxc\0")
    assert sysinfo._detect(tmp_path) in sysinfo._CONTAINERS


def test_get_ip_info_reads_body(ip_server):
    url, seen, body = ip_server
    assert get_ip_info(url, 5.0) == body
    assert seen["agent"] == "curl/8.0.0"


def test_get_ip_info_failure_returns_empty():
    assert get_ip_info("not-a-url", 1.0) == ""