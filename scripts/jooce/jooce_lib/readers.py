import base64
import logging

import requests
from eth_abi.exceptions import DecodingError
from web3 import Web3
from web3.exceptions import Web3Exception

from jooce_lib.config import MULTICALL3_ADDRESS, SOLANA_CHAIN_ID
from jooce_lib.errors import (
    BatchReadError,
    BatchSizeMismatchError,
    ConfigError,
    MetadataDecodeError,
)
from jooce_lib.solana_metadata import decode_metadata, find_metadata_pda

logger = logging.getLogger(__name__)

# ── ABI snippets ──────────────────────────────────────────────────────────────────
VOTING_ABI = [
    {
        "inputs": [], "name": "assets",
        "outputs": [{"internalType": "uint256[]", "name": "", "type": "uint256[]"}],
        "stateMutability": "view", "type": "function"
    },
    {
        "inputs": [{"internalType": "uint256", "name": "assetId", "type": "uint256"}],
        "name": "relativeWeight",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view", "type": "function"
    },
    {
        "inputs": [], "name": "weightsSum",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view", "type": "function"
    },
    {
        "inputs": [{"internalType": "uint256", "name": "assetId", "type": "uint256"}],
        "name": "checkpointAsset", "outputs": [],
        "stateMutability": "nonpayable", "type": "function"
    },
]

ERC20_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "symbol",
        "outputs": [{"name": "", "type": "string"}],
        "type": "function",
    }
]

MULTICALL3_ABI = [
    {
        "inputs": [{
            "components": [
                {"internalType": "address", "name": "target", "type": "address"},
                {"internalType": "bool", "name": "allowFailure", "type": "bool"},
                {"internalType": "bytes", "name": "callData", "type": "bytes"},
            ],
            "internalType": "struct Multicall3.Call3[]", "name": "calls", "type": "tuple[]",
        }],
        "name": "aggregate3",
        "outputs": [{
            "components": [
                {"internalType": "bool", "name": "success", "type": "bool"},
                {"internalType": "bytes", "name": "returnData", "type": "bytes"},
            ],
            "internalType": "struct Multicall3.Result[]", "name": "returnData", "type": "tuple[]",
        }],
        "stateMutability": "payable", "type": "function",
    }
]

# getMultipleAccounts accepts at most 100 keys per request
SOLANA_ACCOUNTS_PER_REQUEST = 100


def make_web3(rpc_url, timeout=60):
    return Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))


def voting_contract(w3, address):
    return w3.eth.contract(address=w3.to_checksum_address(address), abi=VOTING_ABI)


def _decode_symbol(w3, data):
    """ERC20 symbol() as a string; falls back to bytes32 for older tokens (e.g. MKR)."""
    try:
        (symbol,) = w3.codec.decode(["string"], data)
        return symbol
    except (DecodingError, OverflowError, ValueError):
        pass
    # a bytes32 answer is exactly one word; anything longer was a malformed string
    if len(data) != 32:
        raise ValueError(f"{len(data)}-byte symbol() result is neither a string nor bytes32")
    (raw,) = w3.codec.decode(["bytes32"], data)
    return raw.rstrip(b"\0").decode("utf-8")


class ChainReader:
    """A batched read capability for one chain."""

    def __init__(self, chain_id):
        self.chain_id = chain_id

    def read_symbols(self, assets):
        """Return one symbol per asset, in the same order; "" where undecodable."""
        raise NotImplementedError


class EvmChainReader(ChainReader):
    """EVM chain: every batch is a single Multicall3.aggregate3 eth_call."""

    def __init__(self, chain_id, w3):
        super().__init__(chain_id)
        self.w3 = w3
        self.multicall = w3.eth.contract(address=MULTICALL3_ADDRESS, abi=MULTICALL3_ABI)

    @classmethod
    def from_url(cls, chain_id, rpc_url, timeout=60):
        return cls(chain_id, make_web3(rpc_url, timeout))

    def aggregate(self, calls, allow_failure=False):
        """
        Execute [(target, calldata), ...] in one round trip.
        Returns [(success, return_data), ...] aligned with calls.
        """
        if not calls:
            return []
        payload = [(target, allow_failure, Web3.to_bytes(hexstr=data) if isinstance(data, str) else data)
                   for target, data in calls]
        try:
            results = self.multicall.functions.aggregate3(payload).call()
        except (Web3Exception, requests.RequestException, DecodingError) as e:
            raise BatchReadError(f"Multicall on chain {self.chain_id} failed: {e}", chain_id=self.chain_id) from e
        if len(results) != len(calls):
            raise BatchSizeMismatchError(self.chain_id, len(calls), len(results))
        return [(bool(success), bytes(data)) for success, data in results]

    def read_relative_weights(self, voting, asset_ids):
        """relativeWeight(id) for each id. Any failure is fatal."""
        calls = [(voting.address, voting.encode_abi("relativeWeight", args=[asset_id])) for asset_id in asset_ids]
        weights = []
        for asset_id, (success, data) in zip(asset_ids, self.aggregate(calls)):
            if not success:
                raise BatchReadError(f"relativeWeight({asset_id}) reverted", chain_id=self.chain_id)
            try:
                (value,) = self.w3.codec.decode(["uint256"], data)
            except DecodingError as e:
                raise BatchReadError(f"Could not decode relativeWeight({asset_id}): {e}", chain_id=self.chain_id) from e
            weights.append(value)
        return weights

    def read_symbols(self, assets):
        calls = []
        for asset in assets:
            token = self.w3.eth.contract(address=asset.token_address, abi=ERC20_ABI)
            calls.append((token.address, token.encode_abi("symbol")))

        symbols = []
        for asset, (success, data) in zip(assets, self.aggregate(calls, allow_failure=True)):
            if not success:
                logger.warning(f"⚠️ symbol() reverted for {asset.token_address} on chain {self.chain_id}")
                symbols.append("")
                continue
            try:
                symbols.append(_decode_symbol(self.w3, data).upper())
            except (DecodingError, OverflowError, ValueError) as e:
                logger.warning(f"⚠️ Could not decode symbol for {asset.token_address}: {e}")
                symbols.append("")
        return symbols


class SolanaChainReader(ChainReader):
    """
    Solana: symbols live in Metaplex metadata accounts. Each asset's mint is looked
    up, its metadata PDA derived, and all PDAs fetched with getMultipleAccounts.
    """

    def __init__(self, rpc_url, mints, timeout=60, session=None, chain_id=SOLANA_CHAIN_ID):
        super().__init__(chain_id)
        self.rpc_url = rpc_url
        self.mints = mints
        self.timeout = timeout
        self.session = session or requests.Session()
        self._request_id = 0

    def _rpc_call(self, method, params):
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        try:
            response = self.session.post(self.rpc_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            raise BatchReadError(f"Solana RPC {method} failed: {e}", chain_id=self.chain_id) from e
        if body.get("error"):
            raise BatchReadError(f"Solana RPC {method} error: {body['error']}", chain_id=self.chain_id)
        return body.get("result")

    def get_multiple_accounts(self, pubkeys):
        """Raw account data (bytes) per key, None for missing accounts."""
        accounts = []
        for start in range(0, len(pubkeys), SOLANA_ACCOUNTS_PER_REQUEST):
            chunk = pubkeys[start:start + SOLANA_ACCOUNTS_PER_REQUEST]
            result = self._rpc_call(
                "getMultipleAccounts",
                [[str(k) for k in chunk], {"encoding": "base64"}],
            )
            values = (result or {}).get("value") or []
            if len(values) != len(chunk):
                raise BatchSizeMismatchError(self.chain_id, len(chunk), len(values))
            for value in values:
                if value is None:
                    accounts.append(None)
                else:
                    accounts.append(base64.b64decode(value["data"][0]))
        return accounts

    def mint_for(self, token_address):
        mint = self.mints.get(token_address.lower())
        if mint is None:
            raise ConfigError(f"No Solana mint configured for {token_address}")
        return mint

    def read_symbols(self, assets):
        pdas = [find_metadata_pda(self.mint_for(asset.token_address)) for asset in assets]
        accounts = self.get_multiple_accounts(pdas)

        symbols = []
        for asset, data in zip(assets, accounts):
            if data is None:
                logger.warning(f"⚠️ No metadata account for {asset.token_address}")
                symbols.append("")
                continue
            try:
                symbols.append(decode_metadata(data)["symbol"].upper())
            except MetadataDecodeError as e:
                logger.warning(f"⚠️ Metadata decoding failed for {asset.token_address}: {e}")
                symbols.append("")
        return symbols


def build_readers(settings, chain_ids, existing=None):
    """One reader per chain id; the home chain is always included."""
    readers = dict(existing or {})
    for chain_id in set(chain_ids) | {settings.home_chain_id}:
        if chain_id in readers:
            continue
        url = settings.rpc_url(chain_id)
        if chain_id == SOLANA_CHAIN_ID:
            readers[chain_id] = SolanaChainReader(url, settings.solana_mints, timeout=settings.rpc_timeout)
        else:
            readers[chain_id] = EvmChainReader.from_url(chain_id, url, timeout=settings.rpc_timeout)
    return readers
