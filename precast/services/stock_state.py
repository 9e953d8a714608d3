"""
Precast stock progression.

A stock row moves created -> stockyard -> dispatched -> erected -> handed over.
Each state is a prefix of the four boolean columns on precast_stock, so the
columns never go back to false once set.
"""
from datetime import datetime
from enum import IntEnum

from precast.maintenance.exceptions import MaintenanceError

FLAG_COLUMNS = ("stockyard", "dispatch_status", "erected", "recieve_in_erection")


class StockState(IntEnum):
    CREATED = 0
    STOCKYARD = 1
    DISPATCHED = 2
    ERECTED = 3
    HANDED_OVER = 4


class InvalidStockState(MaintenanceError):
    """Flag combination that no sequence of promotions can produce"""


class StockTransitionError(MaintenanceError):
    """Attempt to move a stock row backwards"""


def flags_for(state: StockState) -> dict:
    return {column: index < state for index, column in enumerate(FLAG_COLUMNS)}


def state_of(stock) -> StockState:
    flags = [bool(getattr(stock, column)) for column in FLAG_COLUMNS]
    reached = sum(flags)
    # Reachable combinations are exactly the all-true prefixes
    if flags != [True] * reached + [False] * (len(flags) - reached):
        raise InvalidStockState(
            f"precast_stock id={getattr(stock, 'id', None)} has unreachable flags "
            f"{dict(zip(FLAG_COLUMNS, flags))}"
        )
    return StockState(reached)


def promote(stock, target: StockState, now: datetime) -> StockState:
    """
    Move a stock row forward to `target`, setting every flag up to it.
    Promoting to the current state only bumps updated_at.
    """
    current = state_of(stock)
    if target < current:
        raise StockTransitionError(
            f"precast_stock id={getattr(stock, 'id', None)} cannot move from "
            f"{current.name} back to {target.name}"
        )
    for column, value in flags_for(target).items():
        if value:
            setattr(stock, column, True)
    stock.updated_at = now
    return target
