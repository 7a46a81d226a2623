"""Account data records

Ref: https://www.questrade.com/api/documentation/rest-operations/account-calls
"""

from datetime import datetime

from pydantic import Field

from .base import QuestradeModel


class Account(QuestradeModel):
    """Account associated with the authorized user"""

    type: str = Field("", description="Account type (e.g. Cash, Margin)")
    number: str = Field("", description="Eight-digit account number")
    status: str = Field("", description="Account status (e.g. Active)")
    isPrimary: bool = Field(False, description="Primary account for the holder")
    isBilling: bool = Field(
        False, description="Account billed for fees such as market data"
    )
    clientAccountType: str = Field(
        "", description="Type of client holding the account"
    )


class Position(QuestradeModel):
    """Position belonging to an account"""

    symbol: str = Field("", description="Position symbol")
    symbolId: int = Field(0, description="Internal symbol identifier")
    openQuantity: float = Field(0, description="Quantity remaining open")
    closedQuantity: float = Field(0, description="Quantity closed today")
    currentMarketValue: float | None = Field(
        None, description="Market value (quantity x price)"
    )
    currentPrice: float | None = Field(None, description="Current price")
    averageEntryPrice: float = Field(0, description="Average entry price")
    closedPnl: float | None = Field(None, description="Realized profit/loss")
    openPnl: float | None = Field(None, description="Unrealized profit/loss")
    totalCost: float | None = Field(None, description="Total position cost")
    isRealTime: bool = Field(False, description="Real-time quote used for PnL")
    isUnderReorg: bool = Field(False, description="Symbol under reorganisation")


class Balance(QuestradeModel):
    """Balance in a single currency"""

    currency: str = Field("", description="Currency (e.g. USD, CAD)")
    cash: float = Field(0, description="Cash balance")
    marketValue: float = Field(0, description="Market value of securities")
    totalEquity: float = Field(0, description="Cash plus market value")
    buyingPower: float = Field(0, description="Buying power")
    maintenanceExcess: float = Field(0, description="Maintenance excess")
    isRealTime: bool = Field(False, description="Real-time data used")


class AccountBalances(QuestradeModel):
    """Per-currency and combined balances for an account"""

    perCurrencyBalances: list[Balance] = Field(default_factory=list)
    combinedBalances: list[Balance] = Field(default_factory=list)
    sodPerCurrencyBalances: list[Balance] = Field(default_factory=list)
    sodCombinedBalances: list[Balance] = Field(default_factory=list)


class Execution(QuestradeModel):
    """Execution belonging to an account"""

    symbol: str = ""
    symbolId: int = 0
    quantity: float = 0
    side: str = ""
    price: float = 0
    id: int = 0
    orderId: int = 0
    orderChainId: int = 0
    exchangeExecId: str = ""
    timestamp: datetime | None = None
    notes: str = ""
    venue: str = ""
    totalCost: float = 0
    orderPlacementCommission: float = 0
    commission: float = 0
    executionFee: float = 0
    secFee: float = 0
    canadianExecutionFee: float = 0
    parentId: int = 0
