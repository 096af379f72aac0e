"""
Error taxonomy shared by all services.

Every class is an HTTPException so routes can let them propagate and FastAPI
renders the status code and detail directly.
"""

from fastapi import HTTPException, status


class AppError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal server error"

    def __init__(self, detail: str = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Resource not found"


class UserNotFoundError(NotFoundError):
    default_detail = "User not found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict"


class SelfLikeError(ConflictError):
    default_detail = "Cannot like yourself"


class AlreadyLikedError(ConflictError):
    default_detail = "Already liked this user"


class AlreadyRespondedError(ConflictError):
    default_detail = "Like has already been responded to"


class AlreadyClaimedError(ConflictError):
    default_detail = "Free ticket already claimed today"


class HasExistingFreeTicketsError(ConflictError):
    default_detail = "Cannot claim a free ticket while free tickets remain"


class InsufficientCreditError(AppError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_detail = (
        "Insufficient tickets for search. Please purchase more tickets "
        "or claim your daily free ticket."
    )


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Not allowed to access this resource"


class UpstreamError(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Upstream service failure"
