from collections import OrderedDict
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple

from comet_deployment.errors import CyclicDependency
from comet_deployment.params import DeploySpec
from comet_deployment.registry import CALL_KIND, CONTRACT_KIND


class Step(NamedTuple):
    """A single unit of work in a deployment plan."""

    name: str
    artifact: str  # the contract this step creates, or the contract it calls
    dependencies: Tuple[str, ...]
    kind: str = CONTRACT_KIND
    method: Optional[str] = None

    @property
    def is_call(self) -> bool:
        return self.kind == CALL_KIND


def _find_cycle(remaining: Dict[str, Tuple[str, ...]]) -> List[str]:
    """
    Walks unsatisfied dependencies until a node repeats.
    Every node left over by the topological sort has at least one unsatisfied
    dependency, so the walk always closes a loop.
    """
    path = list()
    node = next(iter(remaining))
    while node not in path:
        path.append(node)
        node = next(d for d in remaining[node] if d in remaining)
    return path[path.index(node) :] + [node]


def topological_order(nodes: "OrderedDict[str, Tuple[str, ...]]") -> List[str]:
    """
    Orders nodes so that every node comes after its dependencies.

    Independent nodes keep their declaration order, so the same input always
    produces the same plan.
    """
    unknown = {d for deps in nodes.values() for d in deps if d not in nodes}
    if unknown:
        raise ValueError(f"Dependencies on undeclared nodes: {sorted(unknown)}")

    remaining = OrderedDict(nodes)
    placed = set()
    ordered = list()
    while remaining:
        for name, dependencies in remaining.items():
            if all(d in placed for d in dependencies):
                break
        else:
            raise CyclicDependency(_find_cycle(remaining))
        ordered.append(name)
        placed.add(name)
        del remaining[name]
    return ordered


class DeploymentPlan:
    """Dependency-ordered steps for a deploy spec."""

    def __init__(self, steps: List[Step]):
        self.steps = list(steps)

    @classmethod
    def from_spec(cls, spec: DeploySpec) -> "DeploymentPlan":
        steps = OrderedDict()
        for contract in spec.contracts.values():
            steps[contract.name] = Step(
                name=contract.name,
                artifact=contract.name,
                dependencies=contract.dependencies,
            )
            if contract.initialize is not None:
                # initialization may reference artifacts that depend on this one,
                # so it runs as its own step once all of them exist
                dependencies = OrderedDict.fromkeys((contract.name, *contract.initialize.dependencies))
                steps[contract.initialize_step_name] = Step(
                    name=contract.initialize_step_name,
                    artifact=contract.name,
                    dependencies=tuple(dependencies),
                    kind=CALL_KIND,
                    method=contract.initialize.method,
                )

        order = topological_order(OrderedDict((n, s.dependencies) for n, s in steps.items()))
        return cls(steps=[steps[name] for name in order])

    @property
    def names(self) -> List[str]:
        return [step.name for step in self.steps]

    def __iter__(self) -> Iterator[Step]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    def __repr__(self) -> str:
        return f"DeploymentPlan({' -> '.join(self.names)})"
