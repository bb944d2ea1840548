"""Tests for CLI main module."""

from unittest.mock import AsyncMock, patch

from typer.testing import CliRunner

from capdock.cli.main import app
from capdock.errors import ContainerRuntimeError


runner = CliRunner()


@patch("capdock.cli.main.show_ip_family")
def test_ip_family(mock_show):
    result = runner.invoke(app, ["ip-family", "10.0.0.0/16", "fd00::/64"])

    assert result.exit_code == 0
    mock_show.assert_called_once_with(["10.0.0.0/16", "fd00::/64"])


@patch("capdock.cli.main.console")
def test_ip_family_invalid(mock_console):
    result = runner.invoke(app, ["ip-family", "bogus"])

    assert result.exit_code == 1
    message = mock_console.print.call_args.args[0]
    assert message.startswith("[red]Error:[/red]")
    assert "bogus" in message


@patch("capdock.cli.main._containers", new_callable=AsyncMock)
def test_containers(mock_containers, tmp_path):
    result = runner.invoke(app, ["containers", "--cluster", "demo", "-c", str(tmp_path)])

    assert result.exit_code == 0
    mock_containers.assert_awaited_once_with(tmp_path, "demo")


@patch("capdock.cli.main.console")
@patch("capdock.cli.main._containers", new_callable=AsyncMock)
def test_containers_runtime_error(mock_containers, mock_console):
    mock_containers.side_effect = ContainerRuntimeError("connect to docker", "no socket")

    result = runner.invoke(app, ["containers"])

    assert result.exit_code == 1
    mock_console.print.assert_called_once_with(
        "[red]Error:[/red] Failed to connect to docker: no socket"
    )


@patch("capdock.cli.main.run_agent", new_callable=AsyncMock)
def test_run(mock_run_agent, tmp_path):
    result = runner.invoke(app, ["run", "--config-dir", str(tmp_path)])

    assert result.exit_code == 0
    mock_run_agent.assert_awaited_once_with(tmp_path)
