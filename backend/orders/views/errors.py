from rest_framework import status
from rest_framework.response import Response

from orders.results import ErrorKind, OrderError

HTTP_STATUS_BY_KIND = {
    ErrorKind.INVALID_ORDER: status.HTTP_400_BAD_REQUEST,
    ErrorKind.ORDER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.CONCURRENT_MODIFICATION: status.HTTP_409_CONFLICT,
}


def order_error_response(error: OrderError) -> Response:
    return Response(error.as_dict(), status=HTTP_STATUS_BY_KIND[error.kind])


def invalid_order_response(errors, message: str = "Order data is invalid.") -> Response:
    return order_error_response(OrderError(ErrorKind.INVALID_ORDER, message, {"errors": errors}))
