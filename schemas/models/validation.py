"""
Value types for Turnstile token validation.

ValidationResult       - the engine's unified outcome; built via named constructors
VerificationRequest    - outbound siteverify body (secret never repr'd)
VerificationResponse   - decoded siteverify reply
MetricsSnapshot        - point-in-time view of the validation counters
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ValidationResultType(str, Enum):
    SUCCESS = "SUCCESS"
    INVALID_TOKEN = "INVALID_TOKEN"
    NETWORK_ERROR = "NETWORK_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    INPUT_ERROR = "INPUT_ERROR"


class ValidationResult(BaseModel):
    """Outcome of validating a single Turnstile token.

    Construct through the classmethods (``success_result()``, ``invalid_token()``,
    ``network_error()``, ``configuration_error()``, ``input_error()``) so that
    ``success``, ``result_type`` and ``message`` always agree.

    ``error_codes`` holds the provider's codes verbatim and in the order
    returned. The provider's code set is open-ended, so they stay plain
    strings.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    error_codes: tuple[str, ...] = ()
    message: str
    result_type: ValidationResultType

    @model_validator(mode="after")
    def _check_consistency(self) -> "ValidationResult":
        if self.success != (self.result_type is ValidationResultType.SUCCESS):
            raise ValueError("success flag must match result_type")
        if self.success and self.error_codes:
            raise ValueError("a successful result cannot carry error codes")
        return self

    @classmethod
    def success_result(cls) -> "ValidationResult":
        return cls(
            success=True,
            message="Validation successful",
            result_type=ValidationResultType.SUCCESS,
        )

    @classmethod
    def invalid_token(cls, error_codes: Optional[Iterable[str]] = None) -> "ValidationResult":
        return cls(
            success=False,
            error_codes=tuple(error_codes or ()),
            message="Token validation failed",
            result_type=ValidationResultType.INVALID_TOKEN,
        )

    @classmethod
    def network_error(cls, error_message: str) -> "ValidationResult":
        return cls(
            success=False,
            message=f"Network error during validation: {error_message}",
            result_type=ValidationResultType.NETWORK_ERROR,
        )

    @classmethod
    def configuration_error(cls, error_message: str) -> "ValidationResult":
        return cls(
            success=False,
            message=f"Configuration error: {error_message}",
            result_type=ValidationResultType.CONFIGURATION_ERROR,
        )

    @classmethod
    def input_error(cls, error_message: str) -> "ValidationResult":
        return cls(
            success=False,
            message=f"Input validation error: {error_message}",
            result_type=ValidationResultType.INPUT_ERROR,
        )


class VerificationRequest(BaseModel):
    """Body POSTed to the siteverify endpoint."""

    model_config = ConfigDict(frozen=True)

    secret: str = Field(repr=False)
    response: str = Field(repr=False)
    remoteip: Optional[str] = None

    def to_payload(self) -> dict[str, str]:
        return self.model_dump(exclude_none=True)


class VerificationResponse(BaseModel):
    """Decoded siteverify reply.

    Example failure body::

        {"success": false, "error-codes": ["invalid-input-response"]}
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    success: bool = False
    challenge_ts: Optional[str] = None
    hostname: Optional[str] = None
    error_codes: list[str] = Field(default_factory=list, alias="error-codes")
    action: Optional[str] = None
    cdata: Optional[str] = None

    @field_validator("error_codes", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @classmethod
    def from_body(cls, data: Any) -> Optional["VerificationResponse"]:
        """Return None when the decoded body is empty or not a JSON object."""
        if not data or not isinstance(data, dict):
            return None
        return cls.model_validate(data)


class MetricsSnapshot(BaseModel):
    """Counters are monotonic for the process lifetime; times are milliseconds."""

    validation_count: int
    success_count: int
    error_count: int
    network_error_count: int
    config_error_count: int
    validation_error_count: int
    input_error_count: int
    last_response_time: float
    average_response_time: float
    error_rate: float
