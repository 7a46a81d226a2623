"""Order data records

Ref: https://www.questrade.com/api/documentation/rest-operations/order-calls
"""

from datetime import datetime

from pydantic import Field

from .base import QuestradeModel


class OrderLeg(QuestradeModel):
    """Leg of a multi-leg order"""

    legId: int = 0
    symbol: str = ""
    symbolId: int = 0
    legRatioQuantity: int = 0
    side: str = ""
    avgExecPrice: float | None = None
    lastExecPrice: float | None = None


class Order(QuestradeModel):
    """Order belonging to an account"""

    id: int = Field(0, description="Internal order identifier")
    symbol: str = Field("", description="Symbol (e.g. TD.TO)")
    symbolId: int = 0
    totalQuantity: float = 0
    openQuantity: float | None = None
    filledQuantity: float | None = None
    canceledQuantity: float | None = None
    side: str = ""
    orderType: str = ""
    limitPrice: float | None = None
    stopPrice: float | None = None
    isAllOrNone: bool = False
    isAnonymous: bool = False
    icebergQuantity: float | None = None
    minQuantity: float | None = None
    avgExecPrice: float | None = None
    lastExecPrice: float | None = None
    source: str = ""
    timeInForce: str = ""
    gtdDate: datetime | None = None
    state: str = ""
    clientReasonStr: str = ""
    chainId: int = 0
    creationTime: datetime | None = None
    updateTime: datetime | None = None
    notes: str = ""
    primaryRoute: str = ""
    secondaryRoute: str = ""
    orderRoute: str = ""
    venueHoldingOrder: str = ""
    comissionCharged: float = 0
    exchangeOrderId: str = ""
    isSignificantShareHolder: bool = False
    isInsider: bool = False
    isLimitOffsetInDollar: bool = False
    userId: int = 0
    placementCommission: float | None = None
    legs: list[OrderLeg] = Field(default_factory=list)
    strategyType: str = ""
    triggerStopPrice: float | None = None
    orderGroupId: int = 0
    orderClass: str | None = None


class OrderRequest(QuestradeModel):
    """Request body for placing, replacing or pricing an order

    ``accountNumber`` selects the endpoint; ``orderId`` is set only when
    replacing an existing order.
    """

    accountNumber: str = Field(..., min_length=1, description="Account number")
    orderId: int | None = Field(None, gt=0, description="Order to replace")
    symbolId: int = Field(..., gt=0, description="Internal symbol identifier")
    quantity: float = Field(..., gt=0, description="Order quantity")
    icebergQuantity: float | None = Field(None, gt=0)
    limitPrice: float | None = Field(None, gt=0)
    stopPrice: float | None = Field(None, gt=0)
    isAllOrNone: bool = False
    isAnonymous: bool = False
    orderType: str = Field(..., description="Order type (e.g. Market, Limit)")
    timeInForce: str = Field("Day", description="Time in force")
    action: str = Field(..., description="Order side (Buy or Sell)")
    primaryRoute: str = "AUTO"
    secondaryRoute: str = "AUTO"


class OrderImpact(QuestradeModel):
    """Estimated impact of an order on an account"""

    estimatedCommissions: float = 0
    buyingPowerEffect: float = 0
    buyingPowerResult: float = 0
    maintExcessEffect: float = 0
    maintExcessResult: float = 0
    side: str = ""
    tradeValueCalculation: str = ""
    price: float | None = None


class OrderPlacement(QuestradeModel):
    """Response of an order placement or replacement"""

    orderId: int = 0
    orders: list[Order] = Field(default_factory=list)
