"""Trading contract event models: NewPosition, AddMargin, ClosePosition."""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel


class EventMeta(BaseModel):
    block_number: int
    timestamp: int  # block timestamp, epoch seconds
    tx_hash: str
    log_index: int  # position of the log within its block

    @property
    def cursor(self) -> tuple[int, int]:
        return (self.block_number, self.log_index)


class NewPosition(BaseModel):
    type: Literal["new_position"] = "new_position"
    position_id: int
    product_id: int
    price: int
    margin: int
    size: int
    fee: int
    is_long: bool
    user: str
    currency: str
    meta: EventMeta


class AddMargin(BaseModel):
    type: Literal["add_margin"] = "add_margin"
    position_id: int
    new_margin: int
    new_leverage: int
    margin: int  # amount added
    user: str = ""
    meta: EventMeta


class ClosePosition(BaseModel):
    type: Literal["close_position"] = "close_position"
    position_id: int
    product_id: int
    price: int
    size: int  # size closed
    margin: int  # margin closed
    fee: int
    pnl: int
    was_liquidated: bool = False
    user: str
    meta: EventMeta


TradingEvent = Union[NewPosition, AddMargin, ClosePosition]

EVENT_TYPES: dict[str, type[BaseModel]] = {
    "new_position": NewPosition,
    "add_margin": AddMargin,
    "close_position": ClosePosition,
}
