"""
SubmitGenerationCommand - CQRS Write Command

Encapsulates everything the Admission Gateway needs to admit one paid
generation request.

Responsibility:
    - Data holder for a generation submission
    - Business rules validation (collected, not fail-fast)
    - Cost computation from the request shape (pricing rules)
    - Conversion from API request to command

Architecture Notes:
    - Part of Application Layer (orchestration)
    - Used by SubmitJobUseCase
    - owner_id comes from authentication, never from the request body
    - client_request_id is the idempotency key; admission uses it as the job id
"""

from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field, ValidationError, field_validator

from pixelforge.domain.generation.pricing import calculate_cost, describe_charge
from pixelforge.domain.generation.value_objects.generation_request import (
    GenerationRequest,
)
from pixelforge.domain.shared.exceptions import InvalidGenerationRequestError


class SubmitGenerationCommand(BaseModel):
    """
    Command containing one generation submission.

    Attributes:
        owner_id: Authenticated owner (resolved by the identity provider)
        request: Typed generation request
        client_request_id: Optional client-generated UUID; becomes the job id
            so the client can recover by id after a lost response

    Business Rules (validated in validate_business_rules()):
        - owner_id must not be blank
        - computed cost must be positive
        - every referenced blob must be a http(s) reference

    Examples:
        >>> command = SubmitGenerationCommand(
        ...     owner_id="user-1",
        ...     request=GenerationRequest(prompt="a red fox in snow"),
        ...     client_request_id="3fa85f64-5717-4562-b3fc-2c963f66afa6",
        ... )
        >>> command.validate_business_rules()
        >>> command.compute_cost()
        1
    """

    owner_id: str = Field(description="Authenticated owner id")
    request: GenerationRequest = Field(description="Generation request")
    client_request_id: Optional[str] = Field(
        default=None, description="Client idempotency key (UUID), used as job id"
    )

    class Config:
        """Pydantic configuration."""

        json_schema_extra = {
            "example": {
                "owner_id": "user-1",
                "request": {
                    "mode": "group",
                    "prompt": "two dancers on a neon stage",
                    "model_tier": "pro",
                    "resolution": "2K",
                    "characters": [
                        {"description": "girl with pink hair"},
                        {"description": "boy in a white jacket"},
                    ],
                },
                "client_request_id": "3fa85f64-5717-4562-b3fc-2c963f66afa6",
            }
        }

    @field_validator("client_request_id")
    @classmethod
    def validate_client_request_id(cls, value: Optional[str]) -> Optional[str]:
        """
        Validate that client_request_id is a UUID.

        Raises:
            ValueError: If the value is not a UUID
        """
        if value is None:
            return value
        try:
            return str(UUID(value))
        except ValueError as e:
            raise ValueError(
                f"client_request_id must be valid UUID format, got '{value}'"
            ) from e

    @classmethod
    def from_api_request(
        cls,
        owner_id: str,
        request: dict[str, Any],
        client_request_id: Optional[str] = None,
    ) -> "SubmitGenerationCommand":
        """
        Build a command from the raw request body.

        Pydantic errors of the nested GenerationRequest are collected into
        one InvalidGenerationRequestError so the API can answer 400 with the
        complete list.

        Raises:
            InvalidGenerationRequestError: Request body does not validate
        """
        try:
            return cls(
                owner_id=owner_id,
                request=GenerationRequest.model_validate(request),
                client_request_id=client_request_id,
            )
        except ValidationError as e:
            errors = [
                f"{'.'.join(str(p) for p in err['loc']) or 'request'}: {err['msg']}"
                for err in e.errors()
            ]
            raise InvalidGenerationRequestError(
                "Invalid generation request", errors=errors
            ) from e

    def validate_business_rules(self) -> None:
        """
        Validate command against business rules.

        Collects all validation errors and raises one exception with the
        complete list.

        Raises:
            InvalidGenerationRequestError: If any business rule is violated
        """
        errors: list[str] = []

        if not self.owner_id.strip():
            errors.append("owner_id must not be empty")

        if self.compute_cost() <= 0:
            errors.append(f"computed cost must be positive, got {self.compute_cost()}")

        refs = list(self.request.reference_refs)
        refs.extend(c.reference_ref for c in self.request.characters if c.reference_ref)
        for ref in refs:
            if not ref.startswith(("http://", "https://")):
                errors.append(f"reference '{ref}' must be an http(s) blob reference")

        if errors:
            raise InvalidGenerationRequestError(
                "Generation request violates business rules", errors=errors
            )

    def compute_cost(self) -> int:
        return calculate_cost(self.request)

    def charge_description(self) -> str:
        return describe_charge(self.request)
