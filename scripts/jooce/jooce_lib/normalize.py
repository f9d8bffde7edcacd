import logging
from decimal import Decimal, ROUND_FLOOR, localcontext

from jooce_lib.errors import AllocationError, EmptySurvivorSetError
from jooce_lib.models import AllocationTable, Asset

logger = logging.getLogger(__name__)

# Enough digits that SCALE-sized quotients divide exactly
PRECISION = 60

POSITIONAL = "positional"
LARGEST_REMAINDER = "largest_remainder"
POLICIES = (POSITIONAL, LARGEST_REMAINDER)


def ratio_to_decimal(numerator, denominator, scale):
    """
    floor(numerator * scale / denominator) / scale as an exact Decimal.
    Truncation error is strictly below 1 / scale.
    """
    if denominator <= 0:
        raise AllocationError(f"Weight denominator must be positive, got {denominator}")
    quotient = numerator * scale // denominator
    with localcontext() as ctx:
        ctx.prec = PRECISION + len(str(quotient))
        return Decimal(quotient) / Decimal(scale)


def compute_relative_weights(assets, scale):
    for asset in assets:
        if asset.raw_weight is None or asset.symbol is None:
            raise AllocationError(f"Asset {asset.token_address} has not been resolved yet")
        asset.relative_weight = ratio_to_decimal(
            asset.raw_weight.numerator, asset.raw_weight.denominator, scale
        )
    return assets


def filter_assets(assets, settings):
    """Drop excluded tokens and anything under the minimum relative weight."""
    survivors = []
    for asset in assets:
        if settings.is_excluded(asset.token_address):
            logger.info(f"ℹ️ Skipping excluded asset {asset.symbol or asset.token_address}")
            continue
        if asset.relative_weight < settings.min_relative_weight:
            logger.info(f"ℹ️ Skipping {asset.symbol or asset.token_address}: "
                        f"relative weight {asset.relative_weight:.6f} below threshold")
            continue
        survivors.append(asset)
    return survivors


def renormalize(survivors, headroom):
    """Scale survivors so their weights sum to `headroom`."""
    if not survivors:
        raise EmptySurvivorSetError("Every asset was filtered out; nothing to allocate")
    with localcontext() as ctx:
        ctx.prec = PRECISION
        weight_sum = sum((a.relative_weight for a in survivors), Decimal(0))
        if weight_sum == 0:
            raise EmptySurvivorSetError("Surviving assets have zero total weight")
        for asset in survivors:
            asset.actual_weight = asset.relative_weight / weight_sum * headroom
    return survivors


def to_units(weight, capacity):
    with localcontext() as ctx:
        ctx.prec = PRECISION
        return int((weight * capacity).to_integral_value(rounding=ROUND_FLOOR))


def distribute_remainder(survivors, capacity, reserved, policy=POSITIONAL):
    """
    Convert actual weights to integer units and hand out what flooring left over.

    Every survivor gets remainder // n. The remainder % n leftover units go one
    each to the first survivors in list order (positional) or to the largest
    fractional parts, ties broken by list order (largest_remainder).
    """
    if policy not in POLICIES:
        raise ValueError(f"Unknown remainder policy: {policy}")
    if not survivors:
        raise EmptySurvivorSetError("No survivors to distribute units to")

    for asset in survivors:
        asset.allocation = to_units(asset.actual_weight, capacity)

    remainder = capacity - reserved - sum(a.allocation for a in survivors)
    if remainder < 0:
        raise AllocationError(
            f"Provisional allocations exceed capacity by {-remainder}; check headroom and reserved allocation"
        )
    base, extra = divmod(remainder, len(survivors))

    if policy == LARGEST_REMAINDER:
        with localcontext() as ctx:
            ctx.prec = PRECISION
            fractions = [a.actual_weight * capacity - a.allocation for a in survivors]
        order = sorted(range(len(survivors)), key=lambda i: -fractions[i])
    else:
        order = range(len(survivors))
    lucky = set(list(order)[:extra])

    for i, asset in enumerate(survivors):
        asset.allocation += base + (1 if i in lucky else 0)

    logger.info(f"ℹ️ Remainder {remainder}: +{base} each, +1 for {extra} asset(s)")
    return survivors


def reserved_row(settings, index):
    return Asset(
        asset_id=0,
        token_address=settings.reserved_address,
        chain_id=settings.home_chain_id,
        index=index,
        symbol=settings.reserved_symbol,
        actual_weight=settings.reserved_weight,
        allocation=settings.reserved_allocation,
        reserved=True,
    )


def order_rows(rows):
    """Descending by allocation; ties keep original index order."""
    return sorted(rows, key=lambda a: (-a.allocation, a.index))


def calculate_allocations(assets, settings, policy=POSITIONAL):
    """Run the full normalization pipeline and return the ordered allocation table."""
    compute_relative_weights(assets, settings.scale)
    survivors = filter_assets(assets, settings)
    logger.info(f"ℹ️ {len(survivors)} of {len(assets)} assets survive filtering")
    renormalize(survivors, settings.headroom)
    distribute_remainder(survivors, settings.total_capacity, settings.reserved_allocation, policy)

    rows = survivors + [reserved_row(settings, len(assets))]
    table = AllocationTable(rows=order_rows(rows), total_capacity=settings.total_capacity)
    if table.total_allocation != settings.total_capacity:
        raise AllocationError(
            f"Allocations sum to {table.total_allocation}, expected {settings.total_capacity}"
        )
    return table
