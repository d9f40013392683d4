"""
Inbound event schema.

A survey completion trigger carries the survey and response ids, and
optionally the event name to report in the payload.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SurveyCompleteEvent(BaseModel):
    """Schema for a completed-response trigger.

    Accepts camelCase (surveyId, responseId) as sent by the survey platform,
    or snake_case field names.

    Example:
        >>> event = SurveyCompleteEvent.model_validate({"surveyId": 42, "responseId": 7})
        >>> event.survey_id
        42
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    survey_id: int = Field(..., alias="surveyId", description="Survey the response belongs to")
    response_id: int = Field(..., alias="responseId", description="Completed response id")
    event: str | None = Field(
        default=None,
        description="Event name reported in the payload (default: configured event_name)",
    )

    @field_validator("survey_id", "response_id")
    @classmethod
    def validate_positive(cls, v: int, info) -> int:
        if v <= 0:
            raise ValueError(f"{info.field_name} must be a positive integer")
        return v

    @field_validator("event")
    @classmethod
    def validate_event_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    @classmethod
    def from_request(cls, data: Any) -> "SurveyCompleteEvent":
        """Validate a decoded request body.

        Raises:
            pydantic.ValidationError: If required fields are missing or invalid
        """
        return cls.model_validate(data)
