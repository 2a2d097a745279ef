"""Staking and governance contract interface: selectors, events and call encoding."""

from dataclasses import dataclass

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, keccak, to_checksum_address

from stakerecon.services._helpers import normalize_address

# Registration entry points seen on ValidatorAdded transactions
GENESIS_INIT_SELECTOR: str = "0xe1c7392a"
REGISTER_VALIDATOR_SELECTOR: str = "0x61cadbf4"
ADD_VALIDATOR_SELECTOR: str = "0x4d238c8e"

# deposit(address): per-block reward deposit into the staking contract
DEPOSIT_SELECTOR: str = "0xf340fa01"

FIX_VALIDATOR_EPOCH_SELECTOR: str = "0x20543d34"
TOGGLE_PAUSE_SELECTOR: str = "0xc4ae3168"
PROPOSE_WITH_CUSTOM_VOTING_PERIOD_SELECTOR: str = "0x0eb448fa"

TOGGLE_DEPLOYER_WHITELIST_SIGNATURE: str = "toggleDeployerWhitelist(bool)"
GET_VALIDATOR_STATUS_AT_EPOCH_SIGNATURE: str = "getValidatorStatusAtEpoch(address,uint64)"

FIX_VALIDATOR_EPOCH_TYPES: list[str] = ["address", "uint112", "uint64"]
PROPOSAL_TYPES: list[str] = ["address[]", "uint256[]", "bytes[]", "string", "uint256"]
VALIDATOR_STATUS_TYPES: list[str] = [
    "address",  # ownerAddress
    "uint8",  # status
    "uint256",  # totalDelegated
    "uint32",  # slashesCount
    "uint64",  # changedAt
    "uint64",  # jailedBefore
    "uint64",  # claimedAt
    "uint16",  # commissionRate
    "uint96",  # totalRewards
]


@dataclass(frozen=True)
class EventParam:
    name: str
    type: str
    indexed: bool = False


@dataclass(frozen=True)
class EventSpec:
    name: str
    params: tuple[EventParam, ...]

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(p.type for p in self.params)})"

    @property
    def topic(self) -> str:
        return "0x" + keccak(text=self.signature).hex()

    def decode(self, topics: list[bytes], data: bytes) -> dict[str, str]:
        """Decode indexed params from topics[1:] and the rest from data."""
        values: dict[str, str] = {}
        indexed = [p for p in self.params if p.indexed]
        for param, topic in zip(indexed, topics[1:]):
            if param.type == "address":
                values[param.name] = "0x" + bytes(topic)[-20:].hex()
            else:
                values[param.name] = str(int.from_bytes(bytes(topic), "big"))
        plain = [p for p in self.params if not p.indexed]
        decoded = decode([p.type for p in plain], bytes(data)) if plain else ()
        for param, value in zip(plain, decoded):
            if param.type == "address":
                values[param.name] = normalize_address(str(value))
            else:
                values[param.name] = str(value)
        return values


_STAKE_PARAMS: tuple[EventParam, ...] = (
    EventParam("validator", "address", indexed=True),
    EventParam("staker", "address", indexed=True),
    EventParam("amount", "uint256"),
    EventParam("epoch", "uint64"),
)

STAKING_EVENTS: dict[str, EventSpec] = {
    "ValidatorAdded": EventSpec(
        "ValidatorAdded",
        (
            EventParam("validator", "address", indexed=True),
            EventParam("owner", "address"),
            EventParam("status", "uint8"),
            EventParam("commissionRate", "uint16"),
        ),
    ),
    "Delegated": EventSpec("Delegated", _STAKE_PARAMS),
    "Undelegated": EventSpec("Undelegated", _STAKE_PARAMS),
    "Claimed": EventSpec("Claimed", _STAKE_PARAMS),
}


def selector_for(signature: str) -> str:
    return "0x" + function_signature_to_4byte_selector(signature).hex()


def encode_call(selector: str, types: list[str], args: list[object]) -> str:
    return selector + encode(types, args).hex()


def decode_call_args(input_data: str, types: list[str]) -> tuple:
    """Decode call arguments following the 4-byte selector."""
    return decode(types, bytes.fromhex(input_data[10:]))


def checksum(address: str) -> str:
    return to_checksum_address(normalize_address(address))
