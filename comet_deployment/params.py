import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from types import MappingProxyType
from typing import Any, List, Optional, Tuple

from ape.utils import ZERO_ADDRESS
from eth_utils import is_hex_address, to_checksum_address

from comet_deployment.errors import DeploymentConfigError
from comet_deployment.utils import _load_yaml, get_artifact_filepath, validate_config

CONTRACT_TYPE_KEY = "contract_type"
CONTRACT_CONSTRUCTOR_PARAMETER_KEY = "constructor"
CONTRACT_INITIALIZE_KEY = "initialize"
INITIALIZE_METHOD_KEY = "method"
INITIALIZE_ARGS_KEY = "args"
DEFAULT_INITIALIZE_METHOD = "initialize"


class VariableContext:
    def __init__(
        self,
        contract_names: List[str],
        contract_name: str,
        constants: typing.Dict[str, Any] = None,
    ):
        self.contract_names = contract_names or list()
        self.contract_name = contract_name
        self.constants = constants or dict()


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self, context) -> Any:
        raise NotImplementedError

    @property
    def dependencies(self) -> List[str]:
        """Logical names of the artifacts this variable needs to exist first."""
        return list()

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        result = isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)
        return result


class DeployerAccount(Variable):
    DEPLOYER_INDICATOR = "deployer"

    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is a special deployer variable."""
        return value == cls.DEPLOYER_INDICATOR

    def resolve(self, context) -> Any:
        deployer_account = context.transactor.get_account()
        if deployer_account is None:
            return ZERO_ADDRESS
        return deployer_account.address

    def __repr__(self) -> str:
        return "$deployer"


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise DeploymentConfigError(f"Constant '{constant_name}' not found in deploy spec.")
        self.constant_name = constant_name
        if is_hex_address(self.constant_value):
            self.constant_value = to_checksum_address(self.constant_value)

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a deployment constant."""
        return value.isupper()

    def resolve(self, context) -> Any:
        return self.constant_value

    def __repr__(self) -> str:
        return f"${self.constant_name}"


class Asset(Variable):
    ASSET_PREFIX = "asset:"

    def __init__(self, variable: str):
        self.symbol = variable[len(self.ASSET_PREFIX) :]
        if not self.symbol:
            raise DeploymentConfigError("Asset variable is missing its symbol.")

    @classmethod
    def is_asset(cls, value: str) -> bool:
        """Returns True if the variable refers to a pre-existing asset."""
        return value.startswith(cls.ASSET_PREFIX)

    def resolve(self, context) -> Any:
        return context.assets.resolve(context.network, self.symbol)

    def __repr__(self) -> str:
        return f"${self.ASSET_PREFIX}{self.symbol}"


class ArtifactReference(Variable):
    def __init__(self, artifact_name: str, context: VariableContext):
        if artifact_name not in context.contract_names:
            raise DeploymentConfigError(
                f"Contract name {artifact_name} referenced by "
                f"{context.contract_name} not found"
            )
        self.artifact_name = artifact_name

    @property
    def dependencies(self) -> List[str]:
        return [self.artifact_name]

    def resolve(self, context) -> Any:
        """Resolves the address of an artifact created earlier in the plan."""
        # always read through to the store so a later step sees the latest commit
        return context.artifacts.require(self.artifact_name).address

    def __repr__(self) -> str:
        return f"${self.artifact_name}"


def _resolve_param(value: Any, context) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v, context) for v in value]

    if isinstance(value, Variable):
        return value.resolve(context)

    return value  # literally a value


def _resolve_params(parameters: OrderedDict, context) -> OrderedDict:
    resolved_parameters = OrderedDict()
    for name, value in parameters.items():
        resolved_parameters[name] = _resolve_param(value, context)

    return resolved_parameters


def _variable_from_value(variable: Any, context: VariableContext) -> Variable:
    variable = variable[len(Variable.VARIABLE_PREFIX) :]
    if DeployerAccount.is_deployer(variable):
        return DeployerAccount()
    elif Asset.is_asset(variable):
        return Asset(variable)
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    else:
        return ArtifactReference(variable, context)


def _process_raw_value(value: Any, variable_context: VariableContext) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, variable_context) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value, variable_context)

    return value


def _process_raw_values(values: typing.Dict, variable_context: VariableContext) -> OrderedDict:
    if not isinstance(values, dict):
        raise DeploymentConfigError(
            f"Malformed parameters for {variable_context.contract_name}; expected a mapping."
        )
    processed_parameters = OrderedDict()
    for name, value in values.items():
        processed_parameters[name] = _process_raw_value(value, variable_context)

    return processed_parameters


def _iter_variables(value: Any) -> typing.Iterator[Variable]:
    if isinstance(value, list):
        for v in value:
            yield from _iter_variables(v)
    elif isinstance(value, Variable):
        yield value


def _collect(parameters: OrderedDict, variable_type: type) -> List[Variable]:
    variables = list()
    for value in parameters.values():
        variables.extend(v for v in _iter_variables(value) if isinstance(v, variable_type))
    return variables


def _dependencies(parameters: OrderedDict) -> Tuple[str, ...]:
    """Artifact names referenced by a set of parameters, in first-use order, without repeats."""
    names = OrderedDict()
    for variable in _collect(parameters, Variable):
        for name in variable.dependencies:
            names[name] = None
    return tuple(names)


def _get_contract_names(config: typing.Dict) -> List[str]:
    contract_names = list()
    for contract_info in config["contracts"]:
        if isinstance(contract_info, str):
            contract_names.append(contract_info)
        elif isinstance(contract_info, dict) and len(contract_info) == 1:
            contract_names.extend(list(contract_info.keys()))
        else:
            raise DeploymentConfigError("Malformed contracts entry in deploy spec.")

    duplicates = {name for name in contract_names if contract_names.count(name) > 1}
    if duplicates:
        raise DeploymentConfigError(f"Duplicate contract names in deploy spec: {sorted(duplicates)}")
    return contract_names


class InitializeSpec(typing.NamedTuple):
    """A one-shot transaction sent to an artifact right after it is created."""

    method: str
    args: OrderedDict

    @property
    def dependencies(self) -> Tuple[str, ...]:
        return _dependencies(self.args)


class ContractSpec(typing.NamedTuple):
    name: str
    contract_type: str
    constructor: OrderedDict
    initialize: Optional[InitializeSpec] = None

    @property
    def dependencies(self) -> Tuple[str, ...]:
        return _dependencies(self.constructor)

    @property
    def initialize_step_name(self) -> Optional[str]:
        if self.initialize is None:
            return None
        return f"{self.name}.{self.initialize.method}"


def _process_contract(
    contract_name: str, contract_data: typing.Dict, variable_context: VariableContext
) -> ContractSpec:
    contract_data = contract_data or dict()
    if not isinstance(contract_data, dict):
        raise DeploymentConfigError(f"Malformed deploy spec entry for {contract_name}.")

    contract_type = contract_data.get(CONTRACT_TYPE_KEY, contract_name)
    constructor = _process_raw_values(
        contract_data.get(CONTRACT_CONSTRUCTOR_PARAMETER_KEY) or dict(), variable_context
    )

    initialize = None
    if CONTRACT_INITIALIZE_KEY in contract_data:
        initialize_data = contract_data[CONTRACT_INITIALIZE_KEY] or dict()
        if not isinstance(initialize_data, dict):
            raise DeploymentConfigError(f"Malformed initialize entry for {contract_name}.")
        initialize = InitializeSpec(
            method=initialize_data.get(INITIALIZE_METHOD_KEY, DEFAULT_INITIALIZE_METHOD),
            args=_process_raw_values(
                initialize_data.get(INITIALIZE_ARGS_KEY) or dict(), variable_context
            ),
        )

    return ContractSpec(
        name=contract_name,
        contract_type=contract_type,
        constructor=constructor,
        initialize=initialize,
    )


class DeploySpec:
    """
    Declarative description of one deployment on one network.

    Loaded from YAML::

        deployment:
          name: usdc
          network: polygon
        constants:
          FX_CHILD: "0x8397259c983751DAf40400790063935a11afa28a"
        assets:
          - USDC
        contracts:
          - bridgeReceiver:
              contract_type: PolygonBridgeReceiver
              constructor:
                _fxChild: $FX_CHILD
          - comet:
              contract_type: Comet
              constructor:
                governor: $bridgeReceiver
                baseToken: $asset:USDC

    Never mutated once loaded.
    """

    def __init__(self, config: typing.Dict, path: Optional[Path] = None):
        validate_config(config)
        self.path = path

        deployment = config["deployment"]
        self.name: str = deployment["name"]
        self.network: str = deployment["network"]
        chain_id = deployment.get("chain_id")
        self.chain_id: Optional[int] = int(chain_id) if chain_id is not None else None

        constants = config.get("constants") or dict()
        self.constants = MappingProxyType(dict(constants))
        self.config = MappingProxyType(dict(config.get("config") or dict()))
        self.artifact_filepath = get_artifact_filepath(config)

        contract_names = _get_contract_names(config)
        contracts = OrderedDict()
        for contract_info in config["contracts"]:
            if isinstance(contract_info, str):
                contract_name, contract_data = contract_info, dict()
            else:
                contract_name = list(contract_info.keys())[0]  # only one entry
                contract_data = contract_info[contract_name]

            variable_context = VariableContext(
                contract_names=contract_names,
                contract_name=contract_name,
                constants=constants,
            )
            contracts[contract_name] = _process_contract(
                contract_name, contract_data, variable_context
            )
        self.contracts = MappingProxyType(contracts)
        self.assets: Tuple[str, ...] = self._required_assets(config.get("assets") or list())

    @classmethod
    def from_yaml(cls, filepath: Path) -> "DeploySpec":
        config = _load_yaml(filepath)
        return cls(config=config, path=filepath)

    @property
    def contract_names(self) -> List[str]:
        return list(self.contracts)

    def _required_assets(self, declared: List[str]) -> Tuple[str, ...]:
        """Declared asset symbols followed by any other symbol used through $asset: variables."""
        if not isinstance(declared, list):
            raise DeploymentConfigError("'assets' must be a list of symbols.")
        symbols = OrderedDict((symbol, None) for symbol in declared)
        for contract in self.contracts.values():
            parameters = [contract.constructor]
            if contract.initialize is not None:
                parameters.append(contract.initialize.args)
            for params in parameters:
                for variable in _collect(params, Asset):
                    symbols[variable.symbol] = None
        return tuple(symbols)

    def resolve_constructor(self, contract_name: str, context) -> OrderedDict:
        """Resolves the constructor parameters for a single contract."""
        return _resolve_params(self.contracts[contract_name].constructor, context)

    def resolve_initialize(self, contract_name: str, context) -> OrderedDict:
        """Resolves the arguments of a contract's initialize transaction."""
        initialize = self.contracts[contract_name].initialize
        if initialize is None:
            raise ValueError(f"{contract_name} has no initialize step")
        return _resolve_params(initialize.args, context)

    def __repr__(self) -> str:
        return f"DeploySpec(name={self.name!r}, network={self.network!r})"
