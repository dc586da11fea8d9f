from collections import OrderedDict
from pathlib import Path
from typing import Dict, Optional

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from comet_deployment.constants import ASSETS_FILEPATH
from comet_deployment.errors import DeploymentConfigError, UnknownAsset
from comet_deployment.utils import _load_config


class AssetRegistry:
    """
    Read-only lookup of pre-existing assets (WETH, USDC, ...) per network.

    The roots file is produced by the config discovery tooling and has the shape
    ``{network: {SYMBOL: address}}``.
    """

    def __init__(self, assets: Optional[Dict[str, Dict[str, str]]] = None):
        self._assets: Dict[str, Dict[str, ChecksumAddress]] = dict()
        for network, symbols in (assets or dict()).items():
            if not isinstance(symbols, dict):
                raise DeploymentConfigError(f"Malformed asset entries for network '{network}'.")
            self._assets[network] = OrderedDict(
                (symbol, to_checksum_address(address)) for symbol, address in symbols.items()
            )

    @classmethod
    def from_file(cls, filepath: Path = ASSETS_FILEPATH) -> "AssetRegistry":
        return cls(assets=_load_config(filepath) or dict())

    def resolve(self, network: str, symbol: str) -> ChecksumAddress:
        try:
            return self._assets[network][symbol]
        except KeyError:
            raise UnknownAsset(symbol=symbol, network=network)

    def symbols(self, network: str) -> Dict[str, ChecksumAddress]:
        return OrderedDict(self._assets.get(network, {}))

    def __contains__(self, item) -> bool:
        network, symbol = item
        return symbol in self._assets.get(network, {})
