from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional


@dataclass(frozen=True)
class RawWeight:
    """An asset's on-chain share as an exact ratio: relativeWeight(id) / weightsSum()."""
    numerator: int
    denominator: int


@dataclass
class Asset:
    asset_id: int
    token_address: str
    chain_id: int
    index: int
    raw_weight: Optional[RawWeight] = None
    symbol: Optional[str] = None
    relative_weight: Optional[Decimal] = None
    actual_weight: Optional[Decimal] = None
    allocation: Optional[int] = None
    reserved: bool = False


@dataclass
class AllocationTable:
    rows: List[Asset]
    total_capacity: int

    @property
    def total_allocation(self):
        return sum(row.allocation for row in self.rows)

    @property
    def total_weight(self):
        return sum((row.actual_weight for row in self.rows), Decimal(0))
