from __future__ import annotations

from enum import Enum
from typing import Any

from fastapi import HTTPException, status


class ErrorCode(str, Enum):
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    DUPLICATE_REQUEST = "DUPLICATE_REQUEST"
    PAYMENT_STATE_CONFLICT = "PAYMENT_STATE_CONFLICT"
    PAYMENT_METHOD_INVALID = "PAYMENT_METHOD_INVALID"


class AppException(HTTPException):
    def __init__(
        self,
        *,
        status_code: int,
        code: ErrorCode,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        detail = {
            "message": message,
            "code": code.value,
            "details": details,
        }
        super().__init__(status_code=status_code, detail=detail, headers=headers)

    @property
    def code(self) -> str:
        return self.detail["code"]  # type: ignore[index]

    @property
    def message(self) -> str:
        return self.detail["message"]  # type: ignore[index]

    def __str__(self) -> str:
        return self.message


def resource_not_found(resource: str, resource_id: str | None = None) -> AppException:
    details = {"resource": resource}
    if resource_id:
        details["resource_id"] = resource_id
    return AppException(
        status_code=status.HTTP_404_NOT_FOUND,
        code=ErrorCode.RESOURCE_NOT_FOUND,
        message=f"{resource} not found",
        details=details,
    )


def validation_failed(message: str, details: Any | None = None) -> AppException:
    return AppException(
        status_code=422,
        code=ErrorCode.VALIDATION_FAILED,
        message=message,
        details=details,
    )


def duplicate_request(resource: str, key: str) -> AppException:
    return AppException(
        status_code=status.HTTP_409_CONFLICT,
        code=ErrorCode.DUPLICATE_REQUEST,
        message=f"Duplicate {resource}",
        details={"resource": resource, "key": key},
    )


def state_conflict(resource: str, resource_id: str, current: str | None, requested: str) -> AppException:
    return AppException(
        status_code=status.HTTP_409_CONFLICT,
        code=ErrorCode.PAYMENT_STATE_CONFLICT,
        message=f"{resource} cannot move from {current} to {requested}",
        details={"resource_id": resource_id, "current_status": current, "requested_status": requested},
    )


def payment_method_invalid(message: str, details: Any | None = None) -> AppException:
    return AppException(
        status_code=422,
        code=ErrorCode.PAYMENT_METHOD_INVALID,
        message=message,
        details=details,
    )
