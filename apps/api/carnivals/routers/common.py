"""
Result to HTTP mapping shared by the routers.
"""

from fastapi import HTTPException, status

from carnivals.errors import ErrorKind
from carnivals.schemas import OperationResult

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.VALIDATION_FAILURE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def raise_for_result(result: OperationResult) -> OperationResult:
    """Return successful results unchanged; raise an HTTPException otherwise."""
    if result.success:
        return result
    kind = result.error_kind or ErrorKind.INTERNAL_ERROR
    raise HTTPException(
        status_code=STATUS_BY_KIND[kind],
        detail=result.model_dump(mode="json"),
    )
