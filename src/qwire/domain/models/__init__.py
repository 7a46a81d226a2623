"""Questrade data records"""

from .account import Account, AccountBalances, Balance, Execution, Position
from .base import QuestradeModel
from .market import (
    Candlestick,
    ChainPerRoot,
    ChainPerStrikePrice,
    Market,
    MinTickData,
    OptionChain,
    OptionContractDeliverables,
    Quote,
    QuoteBatch,
    Symbol,
    SymbolSearchResult,
    UnderlyingMultiplierPair,
)
from .order import Order, OrderImpact, OrderLeg, OrderPlacement, OrderRequest

__all__ = [
    "Account",
    "AccountBalances",
    "Balance",
    "Candlestick",
    "ChainPerRoot",
    "ChainPerStrikePrice",
    "Execution",
    "Market",
    "MinTickData",
    "OptionChain",
    "OptionContractDeliverables",
    "Order",
    "OrderImpact",
    "OrderLeg",
    "OrderPlacement",
    "OrderRequest",
    "Position",
    "Quote",
    "QuoteBatch",
    "QuestradeModel",
    "Symbol",
    "SymbolSearchResult",
    "UnderlyingMultiplierPair",
]
