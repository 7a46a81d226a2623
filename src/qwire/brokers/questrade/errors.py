"""Classification of non-200 Questrade responses into structured errors"""

import httpx
from pydantic import Field, ValidationError

from qwire.domain.models import Order, QuestradeModel
from qwire.shared.exceptions import UNPARSEABLE_ERROR_CODE, QuestradeAPIError

from .utils import RateLimit


class ErrorBody(QuestradeModel):
    """Error payload returned by the Questrade servers"""

    code: int = 0
    message: str = ""
    orderId: int = 0
    orders: list[Order] = Field(default_factory=list)


def _request_url(response: httpx.Response) -> str:
    try:
        return str(response.request.url)
    except RuntimeError:
        return ""


def classify_error(response: httpx.Response) -> QuestradeAPIError:
    """Build the structured error for a failed response

    Status code and endpoint always come from the live exchange, never from the
    body. An undecodable body keeps its raw text as the message with the
    UNPARSEABLE_ERROR_CODE code.

    Args:
        response: Response whose body has already been read

    Returns:
        QuestradeAPIError describing the failure
    """
    rate_limit = RateLimit.from_headers(response.headers)

    try:
        body = ErrorBody.model_validate_json(response.content)
    except ValidationError:
        return QuestradeAPIError(
            code=UNPARSEABLE_ERROR_CODE,
            status_code=response.status_code,
            message=response.text,
            endpoint=_request_url(response),
            rate_limit_remaining=rate_limit.remaining,
            rate_limit_reset=rate_limit.reset_at,
        )

    return QuestradeAPIError(
        code=body.code,
        status_code=response.status_code,
        message=body.message,
        endpoint=_request_url(response),
        rate_limit_remaining=rate_limit.remaining,
        rate_limit_reset=rate_limit.reset_at,
        order_id=body.orderId,
        orders=body.orders,
    )
