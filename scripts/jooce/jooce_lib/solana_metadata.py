import struct

from solders.pubkey import Pubkey

from jooce_lib.config import METADATA_PROGRAM_ID
from jooce_lib.errors import MetadataDecodeError

METADATA_KEY_V1 = 4
# key(u8) + update_authority(32) + mint(32)
HEADER_LEN = 1 + 32 + 32

_PROGRAM = Pubkey.from_string(METADATA_PROGRAM_ID)


def find_metadata_pda(mint):
    """Metaplex metadata account for a mint: seeds = ["metadata", program, mint]."""
    mint_key = mint if isinstance(mint, Pubkey) else Pubkey.from_string(mint)
    pda, _bump = Pubkey.find_program_address(
        [b"metadata", bytes(_PROGRAM), bytes(mint_key)],
        _PROGRAM,
    )
    return pda


def _read_string(data, offset):
    if offset + 4 > len(data):
        raise MetadataDecodeError(f"truncated string length at offset {offset}")
    (length,) = struct.unpack_from("<I", data, offset)
    offset += 4
    end = offset + length
    if end > len(data):
        raise MetadataDecodeError(f"string of length {length} overruns {len(data)}-byte record")
    try:
        value = data[offset:end].decode("utf-8")
    except UnicodeDecodeError as e:
        raise MetadataDecodeError(f"invalid utf-8 in metadata string: {e}") from e
    return value, end


def decode_metadata(data):
    """
    Decode the leading fields of a Metaplex Metadata account.

    Returns a dict with name, symbol and uri; strings are stored null padded on
    chain so trailing NULs are stripped here.
    """
    data = bytes(data)
    if len(data) < HEADER_LEN:
        raise MetadataDecodeError(f"record too short ({len(data)} bytes)")
    if data[0] != METADATA_KEY_V1:
        raise MetadataDecodeError(f"unexpected account key {data[0]}")

    offset = HEADER_LEN
    name, offset = _read_string(data, offset)
    symbol, offset = _read_string(data, offset)
    uri, offset = _read_string(data, offset)
    return {
        "update_authority": Pubkey.from_bytes(data[1:33]),
        "mint": Pubkey.from_bytes(data[33:65]),
        "name": name.rstrip("\0"),
        "symbol": symbol.rstrip("\0"),
        "uri": uri.rstrip("\0"),
    }
