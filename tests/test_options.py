import click
from click.testing import CliRunner

from comet_deployment.options import force_option, payload_option, satellite_option, timeout_option
from comet_deployment.types import ChecksumAddress


@click.command()
@satellite_option
@force_option
@timeout_option
@payload_option
def relay(satellite, force, timeout, payload):
    click.echo(f"{satellite} {list(force)} {timeout} {[p.hex() for p in payload]}")


@click.command()
@click.option("--address", type=ChecksumAddress())
def address(address):
    click.echo(address)


def test_relay_options():
    runner = CliRunner()
    result = runner.invoke(
        relay, ["-s", "polygon", "-f", "comet", "-f", "bulker", "-t", "30", "-p", "0xcafe"]
    )
    assert result.exit_code == 0, result.output
    assert result.output.strip() == "polygon ['comet', 'bulker'] 30 ['cafe']"


def test_relay_option_defaults():
    result = CliRunner().invoke(relay, ["-s", "mumbai"])
    assert result.exit_code == 0, result.output
    assert result.output.strip() == "mumbai [] 3600 []"


def test_invalid_relay_options():
    runner = CliRunner()
    assert runner.invoke(relay, ["-s", "arbitrum"]).exit_code != 0
    assert runner.invoke(relay, ["-s", "polygon", "-t", "0"]).exit_code != 0
    assert runner.invoke(relay, ["-s", "polygon", "-t", "soon"]).exit_code != 0
    assert runner.invoke(relay, ["-s", "polygon", "-p", "cafe"]).exit_code != 0
    assert runner.invoke(relay, ["-s", "polygon", "-p", "0xzz"]).exit_code != 0


def test_checksum_address_option():
    runner = CliRunner()
    result = runner.invoke(address, ["--address", "0x000000000000000000000000000000000000dead"])
    assert result.exit_code == 0, result.output
    assert result.output.strip() == "0x000000000000000000000000000000000000dEaD"

    assert runner.invoke(address, ["--address", "0x1234"]).exit_code != 0
