# nezha-agent

A small monitoring agent for a Nezha dashboard. It connects to the
dashboard's gRPC service (`proto.NezhaService`), reports a description of
the host once, and then reports the host's current usage figures every
second.

## Installation

```
pip install .
```

## Running

```
nezha-agent --server dashboard.example.com:5555 --password secret
```

Options:

| Option | Meaning |
| --- | --- |
| `-s`, `--server` | Address of the dashboard's gRPC endpoint, as `host:port` (required) |
| `-p`, `--password` | The agent's secret, sent as `client_secret` metadata with every call (required) |
| `--tls` | Connect over TLS using gRPC's default root certificates |
| `--debug` | Log at debug level, including every request and response |
| `-V`, `--version` | Print the version and exit |

At start-up the agent waits up to five seconds for the connection. If the
address cannot be parsed or the connection is not ready in time, it logs the
reason and exits with status 1. If the dashboard rejects the secret, it does
the same. Any other failure to collect or send a report is logged and the
agent carries on. Ctrl-C stops it.

## What is reported

Once, at start-up (`Host`):

- distribution name and kernel version
- CPU models with maximum frequency and core count, marked as virtual when a
  hypervisor or container is detected, physical otherwise
- total memory, swap and disk space (all mounted partitions summed)
- machine architecture and virtualisation type (`unknown` when none is found)
- boot time
- public IP address, as returned by `http://ip.sb` (empty if that fails)
- agent version

Every second (`State`):

- CPU usage, averaged over all processors
- memory and swap in use (total minus free) and disk space in use
- total bytes received and sent over all interfaces, and the bytes moved since
  the previous report
- uptime in seconds and the 1, 5 and 15 minute load averages

## What it does not do

- It does not count TCP or UDP connections or processes, read temperature
  sensors, or look at GPUs; those fields are always sent as zero or empty.
- The agent does not ask the dashboard for tasks or run them. `NezhaClient`
  can call `request_task`, `report_task` and `io_stream`, but nothing in the
  reporting loop uses them.
- Virtualisation detection reads Linux files under `/proc` and `/sys`; on
  other systems it reports `unknown`.

## Using it as a library

`nezha_agent.messages` holds the message types (`Host`, `State`,
`StateSensorTemperature`, `Task`, `TaskResult`, `Receipt`, `IoStreamData`)
as dataclasses that encode to and decode from the protobuf wire format.
Unknown fields are skipped when decoding; malformed input raises
`DecodeError`.

```python
from nezha_agent.messages import Receipt

payload = Receipt(proced=True).to_bytes()
assert Receipt.from_bytes(payload) == Receipt(proced=True)
```

`nezha_agent.sysinfo` holds the collectors: `get_mem_info`,
`get_platform_info`, `get_cpu_info`, `get_disk_info`, `get_boot_time`,
`get_ip_info`, `get_uptime_info`, `detect_virtualization`, and
`NetworkCounter`, whose `sample()` returns totals and the change since its
previous sample.

`nezha_agent.client` holds `NezhaClient`, opened with
`NezhaClient.connect(server_url, token, tls=False)` and usable as a context
manager, and `build_host()` and `build_state(counter)` to assemble the
reports. Failed calls raise `ServerError`, which carries the server's
`message` and gRPC `code`.

`nezha_agent.agent` holds `Agent`, whose `run(iterations=None)` sends the
host once and then the state the given number of times (forever by default),
and `main`, the command's entry point.

## Tests

```
pip install .[test]
pytest
```