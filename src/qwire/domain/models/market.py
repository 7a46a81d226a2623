"""Market data records

Ref: https://www.questrade.com/api/documentation/rest-operations/market-calls
"""

from datetime import datetime

from pydantic import Field

from .base import QuestradeModel


class MinTickData(QuestradeModel):
    pivot: float = 0
    minTick: float = 0


class UnderlyingMultiplierPair(QuestradeModel):
    multiplier: int = 0
    underlyingSymbol: str = ""
    underlyingSymbolId: int = 0


class OptionContractDeliverables(QuestradeModel):
    underlyings: list[UnderlyingMultiplierPair] = Field(default_factory=list)
    cashInLieu: float = 0


class Symbol(QuestradeModel):
    """Detailed information about a symbol"""

    symbol: str = Field("", description="Symbol (e.g. TD.TO)")
    symbolId: int = Field(0, description="Symbol identifier")
    prevDayClosePrice: float | None = None
    highPrice52: float | None = None
    lowPrice52: float | None = None
    averageVol3Months: int = 0
    averageVol20Days: int = 0
    outstandingShares: int = 0
    eps: float | None = None
    pe: float | None = None
    dividend: float | None = None
    yield_: float | None = Field(None, alias="yield")
    exDate: datetime | None = None
    marketCap: float | None = None
    tradeUnit: int = 0
    optionType: str | None = None
    optionDurationType: str | None = None
    optionRoot: str = ""
    optionContractDeliverables: OptionContractDeliverables = Field(
        default_factory=OptionContractDeliverables
    )
    optionExerciseType: str | None = None
    listingExchange: str = ""
    description: str = ""
    securityType: str = ""
    optionExpiryDate: datetime | None = None
    dividendDate: datetime | None = None
    optionStrikePrice: float | None = None
    isTradable: bool = False
    isQuotable: bool = False
    hasOptions: bool = False
    currency: str = ""
    minTicks: list[MinTickData] = Field(default_factory=list)
    industrySector: str = ""
    industryGroup: str = ""
    industrySubgroup: str = ""


class SymbolSearchResult(QuestradeModel):
    """Symbol match returned by a prefix search"""

    symbol: str = ""
    symbolId: int = 0
    description: str = ""
    securityType: str = ""
    listingExchange: str = ""
    isQuotable: bool = False
    isTradable: bool = False
    currency: str = ""


class ChainPerStrikePrice(QuestradeModel):
    strikePrice: float = 0
    callSymbolId: int = 0
    putSymbolId: int = 0


class ChainPerRoot(QuestradeModel):
    optionRoot: str = ""
    chainPerStrikePrice: list[ChainPerStrikePrice] = Field(default_factory=list)
    multiplier: int = 0


class OptionChain(QuestradeModel):
    """Option chain for one expiry date of an underlying symbol"""

    expiryDate: datetime | None = None
    description: str = ""
    listingExchange: str = ""
    optionExerciseType: str = ""
    chainPerRoot: list[ChainPerRoot] = Field(default_factory=list)


class Market(QuestradeModel):
    """Supported market and its trading hours"""

    name: str = ""
    tradingVenues: list[str] = Field(default_factory=list)
    defaultTradingVenue: str = ""
    primaryOrderRoutes: list[str] = Field(default_factory=list)
    secondaryOrderRoutes: list[str] = Field(default_factory=list)
    level1Feeds: list[str] = Field(default_factory=list)
    level2Feeds: list[str] = Field(default_factory=list)
    extendedStartTime: datetime | None = None
    startTime: datetime | None = None
    endTime: datetime | None = None
    extendedEndTime: datetime | None = None
    currency: str = ""
    snapQuotesLimit: int = 0


class Quote(QuestradeModel):
    """Level 1 market data quote for a symbol

    Price fields are None when the server has no value (e.g. outside
    trading hours).
    """

    symbol: str = Field("", description="Symbol name")
    symbolId: int = Field(0, description="Internal symbol identifier")
    tier: str = Field("", description="Market tier")
    bidPrice: float | None = None
    bidSize: int = 0
    askPrice: float | None = None
    askSize: int = 0
    lastTradePriceTrHrs: float | None = None
    lastTradePrice: float | None = None
    lastTradeSize: int = 0
    lastTradeTick: str | None = None
    lastTradeTime: datetime | None = None
    volume: int = 0
    openPrice: float | None = None
    highPrice: float | None = None
    lowPrice: float | None = None
    delay: int = 0
    isHalted: bool = False

    @property
    def mid_price(self) -> float | None:
        """Mid price from bid/ask, if both are quoted"""
        if self.bidPrice is None or self.askPrice is None:
            return None
        return (self.bidPrice + self.askPrice) / 2


class QuoteBatch(QuestradeModel):
    """Envelope of a quote message; only ``quotes`` is meaningful"""

    quotes: list[Quote] = Field(default_factory=list)


class Candlestick(QuestradeModel):
    """Historical OHLC candle for a symbol"""

    start: datetime | None = None
    end: datetime | None = None
    open: float = 0
    high: float = 0
    low: float = 0
    close: float = 0
    volume: int = 0
