import logging

import pytest

from nezha_agent.agent import AUTH_FAILED, INTERVAL, Agent, configure_logging, main
from nezha_agent.client import ServerError
from nezha_agent.messages import Host, Receipt, State


class FakeClient:
    def __init__(self, info_error=None, state_error=None):
        self.info_error = info_error
        self.state_error = state_error
        self.hosts = []
        self.states = []

    def report_system_info(self, host):
        self.hosts.append(host)
        if self.info_error is not None:
            raise self.info_error
        return Receipt(proced=True)

    def report_system_state(self, state):
        self.states.append(state)
        if self.state_error is not None:
            raise self.state_error
        return Receipt(proced=True)


def make_agent(client, sleeps=None, host=None, state=None):
    host = host if host is not None else Host(platform="linux", mem_total=1024)
    state = state if state is not None else State(cpu=12.5, mem_used=512)
    return Agent(
        client,
        sleep=(sleeps.append if sleeps is not None else lambda _: None),
        host_factory=lambda: host,
        state_factory=lambda counter: state,
    )


def test_send_host_success():
    client = FakeClient()
    host = Host(platform="linux", mem_total=2048)
    agent = make_agent(client, host=host)
    assert agent.send_host() is True
    assert client.hosts == [host]


def test_send_host_auth_failure_exits():
    client = FakeClient(info_error=ServerError(AUTH_FAILED))
    agent = make_agent(client)
    with pytest.raises(SystemExit) as info:
        agent.send_host()
    assert info.value.code == 1


def test_send_host_other_error_returns_false():
    client = FakeClient(info_error=ServerError("unavailable"))
    agent = make_agent(client)
    assert agent.send_host() is False
    assert len(client.hosts) == 1


def test_send_host_factory_failure_skips_report():
    client = FakeClient()

    def broken():
        raise ValueError("token is not a valid metadata value")

    agent = Agent(client, host_factory=broken, sleep=lambda _: None)
    assert agent.send_host() is False
    assert client.hosts == []


def test_send_state_success():
    client = FakeClient()
    state = State(cpu=50.0, uptime=100)
    agent = make_agent(client, state=state)
    assert agent.send_state() is True
    assert client.states == [state]


def test_send_state_server_error_returns_false():
    client = FakeClient(state_error=ServerError("deadline exceeded"))
    agent = make_agent(client)
    assert agent.send_state() is False
    assert len(client.states) == 1


def test_send_state_collection_error_returns_false():
    client = FakeClient()

    def broken(counter):
        raise OSError("no load average")

    agent = Agent(client, state_factory=broken, sleep=lambda _: None)
    assert agent.send_state() is False
    assert client.states == []


def test_state_factory_receives_agent_counter():
    client = FakeClient()
    seen = []
    agent = Agent(
        client,
        sleep=lambda _: None,
        state_factory=lambda counter: seen.append(counter) or State(),
    )
    agent.send_state()
    agent.send_state()
    assert seen == [agent.counter, agent.counter]


def test_run_sends_host_once_then_states():
    client = FakeClient()
    sleeps = []
    agent = make_agent(client, sleeps=sleeps)
    agent.run(iterations=3)
    assert len(client.hosts) == 1
    assert len(client.states) == 3
    assert sleeps == [INTERVAL] * 3


def test_run_continues_after_state_errors():
    client = FakeClient(state_error=ServerError("unavailable"))
    sleeps = []
    agent = make_agent(client, sleeps=sleeps)
    agent.run(iterations=2)
    assert len(client.states) == 2
    assert len(sleeps) == 2


def test_run_stops_on_auth_failure():
    client = FakeClient(info_error=ServerError(AUTH_FAILED))
    agent = make_agent(client)
    with pytest.raises(SystemExit):
        agent.run(iterations=2)
    assert client.states == []


@pytest.mark.parametrize(
    "debug, expected",
    [(True, logging.DEBUG), (False, logging.INFO)],
)
def test_configure_logging_levels(debug, expected):
    configure_logging(debug)
    root = logging.getLogger()
    assert root.level == expected
    assert root.isEnabledFor(logging.DEBUG) is debug
    client = FakeClient()
    agent = make_agent(client)
    assert agent.send_state() is True
    assert len(client.states) == 1


def test_main_bad_address_exits_with_one():
    with pytest.raises(SystemExit) as info:
        main(["-s", "bad:port:x", "-p", "password"])
    assert info.value.code == 1


def test_main_missing_arguments_is_usage_error():
    with pytest.raises(SystemExit) as info:
        main([])
    assert info.value.code == 2