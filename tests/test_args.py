import pytest

from nezha_agent.args import VERSION, Args, build_parser, parse_args


def test_short_options_and_defaults():
    args = parse_args(["-s", "dashboard.example.com:5555", "-p", "token"])
    assert args.server == "dashboard.example.com:5555"
    assert args.password == "token"
    assert args.debug is False
    assert args.tls is False


def test_long_options_and_flags():
    password = "password"
    args = parse_args(
        ["--server", "localhost:5555", "--password", password, "--debug", "--tls"]
    )
    assert args == Args(server="localhost:5555", password=password, debug=True, tls=True)


@pytest.mark.parametrize(
    "argv",
    [
        ["-p", "token"],
        ["-s", "localhost:5555"],
        [],
    ],
)
def test_missing_required_options(argv, capsys):
    with pytest.raises(SystemExit) as excinfo:
        parse_args(argv)
    assert excinfo.value.code == 2
    assert "required" in capsys.readouterr().err


def test_version_option(capsys):
    with pytest.raises(SystemExit) as excinfo:
        parse_args(["--version"])
    assert excinfo.value.code == 0
    assert VERSION in capsys.readouterr().out


def test_unknown_option_rejected():
    with pytest.raises(SystemExit) as excinfo:
        parse_args(["-s", "localhost:5555", "-p", "token", "--bogus"])
    assert excinfo.value.code == 2


def test_parser_help_mentions_options():
    help_text = build_parser().format_help()
    for option in ("--server", "--password", "--debug", "--tls"):
        assert option in help_text