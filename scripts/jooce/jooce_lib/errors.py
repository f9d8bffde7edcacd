class AllocationError(Exception):
    """Base class for every failure that stops an allocation run."""


class ConfigError(AllocationError):
    """Missing or inconsistent configuration (endpoints, mint table, constants)."""


class BatchReadError(AllocationError):
    """A batched read against one chain failed."""

    def __init__(self, message, chain_id=None):
        super().__init__(message)
        self.chain_id = chain_id


class BatchSizeMismatchError(BatchReadError):
    def __init__(self, chain_id, expected, received):
        super().__init__(
            f"Batch for chain {chain_id} returned {received} results, expected {expected}",
            chain_id=chain_id,
        )
        self.expected = expected
        self.received = received


class BatchTimeoutError(BatchReadError):
    pass


class EmptySurvivorSetError(AllocationError):
    """Every asset was filtered out before renormalization."""


class MetadataDecodeError(Exception):
    """A token metadata record could not be decoded. Tolerated per asset."""
