from typing import Dict, Iterable, List, Optional

from inft_deployment.constants import CONTRACTS, ContractIdentity
from inft_deployment.exceptions import ConfigurationError, DependencyCycle


def topological_order(contracts: Dict[str, ContractIdentity]) -> List[ContractIdentity]:
    """
    Orders contracts so that every contract comes after its dependencies.
    Ties keep the order in which contracts were declared.
    """
    for identity in contracts.values():
        for dependency in identity.dependencies:
            if dependency not in contracts:
                raise ConfigurationError(
                    f"{identity.name} depends on unknown contract '{dependency}'"
                )

    ordered = list()
    placed = set()
    remaining = list(contracts.values())
    while remaining:
        ready = [c for c in remaining if all(d in placed for d in c.dependencies)]
        if not ready:
            names = ", ".join(c.name for c in remaining)
            raise DependencyCycle(f"Dependency cycle between: {names}")
        for identity in ready:
            ordered.append(identity)
            placed.add(identity.name)
        remaining = [c for c in remaining if c.name not in placed]
    return ordered


def select(
    names: Optional[Iterable[str]] = None,
    tags: Optional[Iterable[str]] = None,
    contracts: Dict[str, ContractIdentity] = CONTRACTS,
) -> List[ContractIdentity]:
    """
    Selects contracts by name and/or tag, closes the selection over dependencies and
    returns it in deployment order. No names and no tags selects everything.
    """
    ordered = topological_order(contracts)
    names, tags = list(names or ()), set(tags or ())
    for name in names:
        if name not in contracts:
            raise ConfigurationError(f"Unknown contract '{name}'")

    if not names and not tags:
        wanted = set(contracts)
    else:
        wanted = set(names)
        wanted.update(c.name for c in contracts.values() if tags.intersection(c.tags))
        if not wanted:
            raise ConfigurationError(f"No contracts match tags: {', '.join(sorted(tags))}")

    stack = list(wanted)
    while stack:
        for dependency in contracts[stack.pop()].dependencies:
            if dependency not in wanted:
                wanted.add(dependency)
                stack.append(dependency)

    return [c for c in ordered if c.name in wanted]
