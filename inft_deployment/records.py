import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional, Tuple

from eth_typing import ChecksumAddress
from eth_utils import is_address, to_checksum_address

from inft_deployment.constants import (
    DEPLOYMENTS_DIR,
    IMPLEMENTATION_SUFFIX,
    NETWORKS,
    RECORD_JSON_FORMAT,
    RECORD_SCHEMA_VERSION,
)
from inft_deployment.exceptions import (
    InvalidRecord,
    RecordConflict,
    RecordIOError,
    RecordNotFound,
)
from inft_deployment.reporting import Reporter
from inft_deployment.utils import _load_json, _write_json_atomic

ContractName = str
NetworkName = str

_KNOWN_KEYS = (
    "schemaVersion",
    "address",
    "args",
    "transactionHash",
    "abi",
    "implementation",
    "lastUpgrade",
)


def _address(value: Any, field: str) -> ChecksumAddress:
    if not isinstance(value, str) or not is_address(value):
        raise InvalidRecord(f"'{field}' is not a valid address: {value!r}")
    return to_checksum_address(value)


def _optional_address(value: Any, field: str) -> Optional[ChecksumAddress]:
    if value is None:
        return None
    return _address(value, field)


def _optional_str(value: Any, field: str) -> Optional[str]:
    if value is not None and not isinstance(value, str):
        raise InvalidRecord(f"'{field}' must be a string, got {type(value).__name__}")
    return value


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2025-01-31T12:00:00.000Z"""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


class UpgradeEntry(NamedTuple):
    """The most recent upgrade applied to a proxied contract."""

    timestamp: str
    transaction_hash: str
    new_implementation: ChecksumAddress
    previous_implementation: Optional[ChecksumAddress] = None

    @classmethod
    def from_json(cls, data: Any) -> "UpgradeEntry":
        if not isinstance(data, dict):
            raise InvalidRecord("'lastUpgrade' must be an object")
        try:
            timestamp = data["timestamp"]
            transaction_hash = data["transactionHash"]
            new_implementation = data["newImplementation"]
        except KeyError as e:
            raise InvalidRecord(f"'lastUpgrade' is missing '{e.args[0]}'")
        return cls(
            timestamp=_optional_str(timestamp, "lastUpgrade.timestamp"),
            transaction_hash=_optional_str(transaction_hash, "lastUpgrade.transactionHash"),
            new_implementation=_address(new_implementation, "lastUpgrade.newImplementation"),
            previous_implementation=_optional_address(
                data.get("previousImplementation"), "lastUpgrade.previousImplementation"
            ),
        )

    def to_json(self) -> Dict[str, Any]:
        data = {
            "timestamp": self.timestamp,
            "transactionHash": self.transaction_hash,
            "newImplementation": self.new_implementation,
        }
        if self.previous_implementation is not None:
            data["previousImplementation"] = self.previous_implementation
        return data


class DeploymentRecord(NamedTuple):
    """
    Represents a single hardhat-deploy style record: one contract on one network.

    Keys this tool does not know about (receipts, bytecode, metadata written by other
    tooling) are carried in ``extra`` and written back untouched.
    """

    address: ChecksumAddress
    args: Tuple[Any, ...] = ()
    transaction_hash: Optional[str] = None
    abi: Optional[List[Any]] = None
    implementation: Optional[ChecksumAddress] = None
    last_upgrade: Optional[UpgradeEntry] = None
    schema_version: int = RECORD_SCHEMA_VERSION
    extra: Mapping[str, Any] = {}

    @classmethod
    def from_json(cls, data: Any) -> "DeploymentRecord":
        if not isinstance(data, dict):
            raise InvalidRecord("deployment record must be a JSON object")

        schema_version = data.get("schemaVersion", RECORD_SCHEMA_VERSION)
        if not isinstance(schema_version, int) or schema_version > RECORD_SCHEMA_VERSION:
            raise InvalidRecord(f"Unsupported record schema version {schema_version!r}")

        if "address" not in data:
            raise InvalidRecord("deployment record has no 'address'")

        args = data.get("args") or []
        if not isinstance(args, list):
            raise InvalidRecord("'args' must be a list")

        abi = data.get("abi")
        if abi is not None and not isinstance(abi, list):
            raise InvalidRecord("'abi' must be a list")

        last_upgrade = data.get("lastUpgrade")
        if last_upgrade is not None:
            last_upgrade = UpgradeEntry.from_json(last_upgrade)

        extra = {key: value for key, value in data.items() if key not in _KNOWN_KEYS}
        return cls(
            address=_address(data["address"], "address"),
            args=tuple(args),
            transaction_hash=_optional_str(data.get("transactionHash"), "transactionHash"),
            abi=abi,
            implementation=_optional_address(data.get("implementation"), "implementation"),
            last_upgrade=last_upgrade,
            schema_version=RECORD_SCHEMA_VERSION,
            extra=extra,
        )

    def to_json(self) -> Dict[str, Any]:
        data = {
            "schemaVersion": self.schema_version,
            "address": self.address,
            "args": list(self.args),
        }
        if self.transaction_hash is not None:
            data["transactionHash"] = self.transaction_hash
        if self.abi is not None:
            data["abi"] = self.abi
        if self.implementation is not None:
            data["implementation"] = self.implementation
        if self.last_upgrade is not None:
            data["lastUpgrade"] = self.last_upgrade.to_json()
        data.update(self.extra)
        return data


RecordMutator = Callable[[Optional[DeploymentRecord]], DeploymentRecord]


def is_implementation_record(name: ContractName) -> bool:
    return name.endswith(IMPLEMENTATION_SUFFIX)


class DeploymentRecordStore:
    """
    Reads and writes one record file per (network, contract name).

    There is no in-memory cache: every read goes to disk, so a re-run of a script
    (or a later step of the same run) always sees what was last persisted.
    """

    def __init__(
        self,
        base_dir: Path = DEPLOYMENTS_DIR,
        environ: Optional[Mapping[str, str]] = None,
        reporter: Optional[Reporter] = None,
    ):
        self.base_dir = Path(base_dir)
        self.environ = environ if environ is not None else os.environ
        self.reporter = reporter or Reporter()

    def directory(self, network: NetworkName) -> Path:
        """Records directory for a network; ``<PREFIX>_DEPLOYMENTS_PATH`` overrides the default."""
        settings = NETWORKS.get(network)
        if settings is not None:
            override = self.environ.get(settings.deployments_path_envvar)
            if override:
                return Path(override)
        return self.base_dir / network

    def filepath(self, network: NetworkName, name: ContractName) -> Path:
        return self.directory(network) / f"{name}.json"

    def _read(self, filepath: Path) -> DeploymentRecord:
        try:
            data = _load_json(filepath)
        except (OSError, ValueError) as e:
            raise RecordIOError(f"Error reading {filepath}: {e}") from e
        try:
            return DeploymentRecord.from_json(data)
        except InvalidRecord as e:
            raise InvalidRecord(f"Invalid deployment record {filepath}: {e}") from e

    def get_or_none(
        self, network: NetworkName, name: ContractName, strict: bool = False
    ) -> Optional[DeploymentRecord]:
        """
        Returns the record, or None if it is absent. An unreadable record is reported
        and treated as absent unless ``strict``, in which case the read error is raised.
        """
        filepath = self.filepath(network, name)
        if not filepath.exists():
            return None
        if strict:
            return self._read(filepath)
        try:
            return self._read(filepath)
        except (RecordIOError, InvalidRecord) as e:
            self.reporter.error(str(e))
            return None

    def get(self, network: NetworkName, name: ContractName) -> DeploymentRecord:
        record = self.get_or_none(network, name, strict=True)
        if record is None:
            raise RecordNotFound(
                f"No deployment record for {name} on {network} "
                f"(expected {self.filepath(network, name)})"
            )
        return record

    def exists(self, network: NetworkName, name: ContractName) -> bool:
        return self.filepath(network, name).exists()

    def persist(
        self, network: NetworkName, name: ContractName, mutator: RecordMutator
    ) -> DeploymentRecord:
        """
        Applies ``mutator`` to the current record (None if absent) and writes the result.

        An existing record that cannot be read is never overwritten. The address of a
        proxy record is permanent; only implementation records may move.
        """
        filepath = self.filepath(network, name)
        existing = self._read(filepath) if filepath.exists() else None

        record = mutator(existing)
        if (
            existing is not None
            and not is_implementation_record(name)
            and existing.address.lower() != record.address.lower()
        ):
            raise RecordConflict(
                f"Refusing to change the address of {name} on {network} "
                f"from {existing.address} to {record.address}"
            )

        try:
            _write_json_atomic(filepath, record.to_json(), **RECORD_JSON_FORMAT)
        except OSError as e:
            raise RecordIOError(f"Error writing {filepath}: {e}") from e
        return record

    def list(self, network: NetworkName) -> Dict[ContractName, DeploymentRecord]:
        """Returns all readable records for a network, keyed by contract name."""
        directory = self.directory(network)
        records = dict()
        if not directory.is_dir():
            return records
        for filepath in sorted(directory.glob("*.json")):
            try:
                records[filepath.stem] = self._read(filepath)
            except (RecordIOError, InvalidRecord) as e:
                self.reporter.error(str(e))
        return records
