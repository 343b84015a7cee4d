from pathlib import Path
from typing import Any, Dict, List, NamedTuple

from inft_deployment.constants import ARTIFACTS_DIR
from inft_deployment.utils import _load_json


class ContractArtifact(NamedTuple):
    """ABI and creation bytecode of a compiled contract."""

    name: str
    abi: List[Dict[str, Any]]
    bytecode: str


class ArtifactStore:
    """
    Looks up hardhat compilation artifacts (``build/artifacts/**/<Name>.json``).

    Debug files (``<Name>.dbg.json``) and build-info are ignored.
    """

    class NotFound(LookupError):
        """Raised when no artifact exists for a contract name."""

    def __init__(self, root: Path = ARTIFACTS_DIR):
        self.root = Path(root)
        self._cache: Dict[str, ContractArtifact] = dict()

    def _find(self, name: str) -> Path:
        candidates = [
            path for path in self.root.rglob(f"{name}.json") if "build-info" not in path.parts
        ]
        if not candidates:
            raise self.NotFound(f"No artifact found for '{name}' under {self.root}")
        if len(candidates) != 1:
            raise ValueError(
                f"Artifact {name} is ambiguous - expected exactly one, got {len(candidates)}: "
                + ", ".join(str(c) for c in candidates)
            )
        return candidates[0]

    def get(self, name: str) -> ContractArtifact:
        if name not in self._cache:
            data = _load_json(self._find(name))
            bytecode = data.get("bytecode") or "0x"
            self._cache[name] = ContractArtifact(
                name=data.get("contractName", name), abi=data["abi"], bytecode=bytecode
            )
        return self._cache[name]
