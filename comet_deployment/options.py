import click

from comet_deployment.constants import (
    DEFAULT_RELAY_POLL_INTERVAL,
    DEFAULT_RELAY_TIMEOUT,
    SATELLITE_NETWORKS,
)
from comet_deployment.types import HexData, MinInt

satellite_option = click.option(
    "--satellite",
    "-s",
    help="Satellite network to relay governance messages to",
    type=click.Choice(SATELLITE_NETWORKS),
    required=True,
)

deployment_option = click.option(
    "--deployment",
    "-d",
    help="Name of the deployment (e.g. usdc)",
    type=str,
    required=True,
)

force_option = click.option(
    "--force",
    "-f",
    help="Logical name of an artifact to redeploy even if it already exists",
    multiple=True,
    type=str,
)

autosign_option = click.option(
    "--autosign",
    help="Automatically sign transactions.",
    is_flag=True,
)

verify_option = click.option(
    "--verify",
    help="Verify newly created contracts on the block explorer.",
    is_flag=True,
)

timeout_option = click.option(
    "--timeout",
    "-t",
    help="Seconds to wait for each message to be delivered",
    type=MinInt(1),
    default=DEFAULT_RELAY_TIMEOUT,
    show_default=True,
)

poll_interval_option = click.option(
    "--poll-interval",
    help="Seconds between delivery checks",
    type=MinInt(1),
    default=DEFAULT_RELAY_POLL_INTERVAL,
    show_default=True,
)

payload_option = click.option(
    "--payload",
    "-p",
    help="0x-prefixed payload to send to the satellite bridge receiver; "
    "omit to wait for messages already sent by executed proposals",
    multiple=True,
    type=HexData(),
)
