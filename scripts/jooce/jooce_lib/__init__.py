"""
Jooce Governance Weight Library
-------------------------------

This package contains modules for:
- config: Settings loaded from .env (RPC endpoints, constants, lookup tables)
- decode_ids: Splitting packed asset ids into (token, chain)
- readers: Batched EVM (Multicall3) and Solana (metadata account) readers
- aggregate: Per-chain concurrent weight and symbol resolution
- normalize: Turning on-chain ratios into uint16 allocations summing to 65535
- report: Saving and printing the allocation table
- checkpoint: Sending checkpointAsset transactions before a snapshot
"""
