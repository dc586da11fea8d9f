from pathlib import Path

import comet_deployment

#
# Filesystem
#

PROJECT_ROOT = Path(comet_deployment.__file__).parent.parent
DEPLOYMENTS_DIR = PROJECT_ROOT / "deployments"
ARTIFACTS_DIR = DEPLOYMENTS_DIR / "artifacts"
ASSETS_FILEPATH = DEPLOYMENTS_DIR / "assets.yml"
DEPLOY_SPEC_FILENAME = "deploy.yml"

#
# Networks
#

MAINNET = "mainnet"
GOERLI = "goerli"
POLYGON = "polygon"
MUMBAI = "mumbai"

# network id -> ape network choice
NETWORK_CHOICES = {
    MAINNET: "ethereum:mainnet:infura",
    GOERLI: "ethereum:goerli:infura",
    POLYGON: "polygon:mainnet:infura",
    MUMBAI: "polygon:mumbai:infura",
}

CHAIN_IDS = {
    MAINNET: 1,
    GOERLI: 5,
    POLYGON: 137,
    MUMBAI: 80001,
}

# satellite network -> network where its governance lives
GOVERNANCE_NETWORKS = {
    POLYGON: MAINNET,
    MUMBAI: GOERLI,
}

SATELLITE_NETWORKS = list(GOVERNANCE_NETWORKS)

#
# Deployments
#

# logical name of the artifact receiving bridged governance messages
BRIDGE_RECEIVER = "bridgeReceiver"

DEFAULT_REQUIRED_CONFIRMATIONS = 1

#
# Relay
#

TIMEOUT_REASON = "Timeout"
PREDECESSOR_FAILED_REASON = "predecessor {nonce} failed"

# Polygon state syncs usually land within 20-30 minutes
DEFAULT_RELAY_TIMEOUT = 60 * 60
DEFAULT_RELAY_POLL_INTERVAL = 60

# Polygon FxPortal - https://wiki.polygon.technology/docs/pos/design/bridge/l1-l2-communication/fx-portal/
POLYGON_FX_PORTAL = {
    POLYGON: {
        "fx_root": "0xfe5e5D361b2ad62c541bAb87C45a0B9B018389a2",
        "state_sender": "0x28e4F3a7f651294B9564800b2D01f35189A5bFbE",
        "fx_child": "0x8397259c983751DAf40400790063935a11afa28a",
        "state_receiver": "0x0000000000000000000000000000000000001001",
    },
    MUMBAI: {
        "fx_root": "0x3d1d3E34f7fB6D26245E6640E1c50710eFFf15bA",
        "state_sender": "0xEAa852323826C71cd7920C3b4c007184234c3945",
        "fx_child": "0xCf73231F28B7331BBe3124B907840A94851f9f11",
        "state_receiver": "0x0000000000000000000000000000000000001001",
    },
}
