import pytest
from eth_utils import to_checksum_address
from hexbytes import HexBytes

from inft_deployment.chain import DeployedContract, TransactionResult
from inft_deployment.constants import (
    BEACON_CONTRACT,
    BEACON_PROXY_CONTRACT,
    EIP1967_BEACON_SLOT,
    HARDHAT,
    VERSION_METHOD,
)
from inft_deployment.deployer import DeploymentPipeline, IdempotentDeployer
from inft_deployment.graph import select
from inft_deployment.params import InitializerParameters
from inft_deployment.records import DeploymentRecordStore
from inft_deployment.reporting import Reporter

NETWORK = HARDHAT

DEPLOYER = to_checksum_address("0x" + "d1" * 20)
STRANGER = to_checksum_address("0x" + "5e" * 20)

CODE = bytes(HexBytes("0x6080604052"))


class FakeChain:
    """
    In-memory stand-in for the chain client: deterministic addresses, beacons that
    honour upgradeTo, and a log of every deployment and transaction.
    """

    def __init__(self, address=DEPLOYER):
        self.address = to_checksum_address(address)
        self.code = dict()
        self.storage = dict()
        self.beacons = dict()
        self.versions = dict()
        self.deployments = list()
        self.transactions = list()
        self.encoded = list()
        self.ignored_upgrades = set()
        self._nonce = 0

    def _next(self):
        self._nonce += 1
        return self._nonce

    def _next_hash(self):
        return f"0x{self._next():064x}"

    def get_storage_at(self, address, slot):
        return self.storage.get((address.lower(), slot), bytes(32))

    def get_code(self, address):
        return self.code.get(address.lower(), b"")

    def set_beacon_slot(self, proxy, beacon):
        self.storage[(proxy.lower(), EIP1967_BEACON_SLOT)] = bytes(12) + bytes(HexBytes(beacon))

    def beacon_of(self, proxy):
        word = self.get_storage_at(proxy, EIP1967_BEACON_SLOT)
        return to_checksum_address(word[-20:])

    def call(self, contract_name, address, method, *args):
        beacon = self.beacons.get(address.lower())
        if beacon is not None and method in beacon:
            return beacon[method]
        if method == VERSION_METHOD and address.lower() in self.code:
            return self.versions.get(address.lower(), "1.0.0")
        raise ValueError(f"execution reverted: {contract_name}.{method}")

    def encode_call(self, contract_name, method, *args):
        self.encoded.append((contract_name, method, args))
        return "0x" + f"{contract_name}.{method}".encode().hex()

    def deploy(self, contract_name, *args):
        address = to_checksum_address(f"0x{0xC0DE0000 + self._next():040x}")
        self.code[address.lower()] = CODE
        if contract_name == BEACON_CONTRACT:
            implementation, owner = args
            self.beacons[address.lower()] = {"implementation": implementation, "owner": owner}
        elif contract_name == BEACON_PROXY_CONTRACT:
            self.set_beacon_slot(address, args[0])
        deployed = DeployedContract(
            name=contract_name,
            address=address,
            transaction_hash=self._next_hash(),
            args=tuple(args),
            abi=[{"type": "function", "name": f"{contract_name}Marker"}],
        )
        self.deployments.append(deployed)
        return deployed

    def transact(self, contract_name, address, method, *args):
        self.transactions.append((contract_name, address, method, args))
        if method == "upgradeTo" and address.lower() not in self.ignored_upgrades:
            self.beacons[address.lower()]["implementation"] = args[0]
        return TransactionResult(transaction_hash=self._next_hash(), block_number=len(self.transactions))

    def deployed_names(self):
        return [d.name for d in self.deployments]


class RecordingReporter(Reporter):
    def __init__(self):
        self.events = list()
        self.steps = list()

    def section(self, title):
        self.events.append(("section", title))

    def step(self, contract_name, step, detail=""):
        self.steps.append((contract_name, step, detail))

    def info(self, message):
        self.events.append(("info", message))

    def success(self, message):
        self.events.append(("success", message))

    def warning(self, message):
        self.events.append(("warning", message))

    def error(self, message):
        self.events.append(("error", message))

    def messages(self, kind):
        return [message for event, message in self.events if event == kind]


class CountingStore(DeploymentRecordStore):
    """Counts writes so tests can assert that nothing was persisted."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.writes = list()

    def persist(self, network, name, mutator):
        record = super().persist(network, name, mutator)
        self.writes.append(name)
        return record


def snapshot(directory):
    """Contents of every record file under a directory, keyed by file name."""
    return {path.name: path.read_bytes() for path in sorted(directory.glob("*.json"))}


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def deployments_dir(tmp_path):
    return tmp_path / "deployments"


@pytest.fixture
def store(deployments_dir, reporter):
    return CountingStore(deployments_dir, environ=dict(), reporter=reporter)


@pytest.fixture
def records_dir(store):
    return store.directory(NETWORK)


@pytest.fixture
def params():
    return InitializerParameters.from_config(environ=dict())


@pytest.fixture
def deployer(chain, store, params, reporter):
    return IdempotentDeployer(chain, store, NETWORK, params, reporter=reporter)


@pytest.fixture
def deployed(deployer, store, reporter):
    """All four contracts deployed behind beacon proxies, with records."""
    results = DeploymentPipeline(deployer, reporter=reporter).run(select())
    assert all(result.success for result in results)
    store.writes.clear()
    return results
