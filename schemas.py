"""Request schemas validated at the service boundary.

Services accept either one of these models or a plain mapping; mappings are
validated with ``validate_input`` so malformed payloads fail with
``errors.ValidationError`` before any SQL runs.
"""

import datetime as dt
from decimal import Decimal
from typing import Annotated, Any, Mapping, Optional, Type, TypeVar, Union

import pydantic
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

from errors import ValidationError
from models.category import SpendingType

_HEX_COLOR = r"^#(?:[0-9a-fA-F]{3}){1,2}$"

ModelT = TypeVar("ModelT", bound=BaseModel)


class _Input(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


def _to_calendar_date(value: Any) -> Any:
    # Time of day carries no meaning for transactions
    if isinstance(value, dt.datetime):
        return value.date()
    return value


CalendarDate = Annotated[dt.date, BeforeValidator(_to_calendar_date)]


class TransactionCreateInput(_Input):
    """A transaction draft, from CSV parsing or manual entry."""

    date: CalendarDate
    description: str = Field(min_length=1)
    amount: Decimal
    details: Optional[str] = None
    is_unexpected: bool = False
    source_file: Optional[str] = None
    category_id: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def finite_amount(cls, value: Decimal) -> Decimal:
        if not value.is_finite():
            raise ValueError("amount must be a finite number")
        return value

    @field_validator("details", "source_file", "category_id")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class TransactionUpdateInput(_Input):
    """Partial update; only fields explicitly provided are written."""

    date: Optional[CalendarDate] = None
    description: Optional[str] = Field(default=None, min_length=1)
    amount: Optional[Decimal] = None
    details: Optional[str] = None
    is_unexpected: Optional[bool] = None
    source_file: Optional[str] = None
    category_id: Optional[str] = None

    @field_validator("description", "amount", "is_unexpected", "date")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("field cannot be cleared")
        return value

    def changes(self) -> dict:
        """Return the explicitly provided fields, including explicit nulls."""
        return self.model_dump(exclude_unset=True)


class CategoryCreateInput(_Input):
    name: str = Field(min_length=1)
    color: Optional[str] = Field(default=None, pattern=_HEX_COLOR)
    spending_type: SpendingType = SpendingType.UNCLASSIFIED
    description: Optional[str] = None


class CategoryUpdateInput(_Input):
    name: Optional[str] = Field(default=None, min_length=1)
    color: Optional[str] = Field(default=None, pattern=_HEX_COLOR)
    spending_type: Optional[SpendingType] = None
    description: Optional[str] = None

    @field_validator("name", "spending_type")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("field cannot be cleared")
        return value

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class RuleCreateInput(_Input):
    """A categorization rule to persist; also the shape of a suggested rule."""

    pattern: str = Field(min_length=1)
    is_regex: bool = False
    description: Optional[str] = None
    priority: int = 0
    is_enabled: bool = True
    category_id: str = Field(min_length=1)


class RuleUpdateInput(_Input):
    pattern: Optional[str] = Field(default=None, min_length=1)
    is_regex: Optional[bool] = None
    description: Optional[str] = None
    priority: Optional[int] = None
    is_enabled: Optional[bool] = None
    category_id: Optional[str] = Field(default=None, min_length=1)

    @field_validator("pattern", "is_regex", "priority", "is_enabled", "category_id")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("field cannot be cleared")
        return value

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class CategorySuggestion(BaseModel):
    """One category suggested by the AI adapter (or the local fallback)."""

    category: str
    confidence: float
    reasoning: str = ""


def validate_input(
    model: Type[ModelT], data: Union[ModelT, Mapping[str, Any]]
) -> ModelT:
    """Validate a payload against a boundary schema.

    Args:
        model: Schema class to validate against.
        data: Either an instance of the schema or a mapping of field values.

    Returns:
        A validated instance of model.

    Raises:
        ValidationError: If the payload does not satisfy the schema.
    """
    if isinstance(data, model):
        return data
    if not isinstance(data, Mapping):
        raise ValidationError(
            f"Expected {model.__name__} or a mapping, got {type(data).__name__}"
        )
    try:
        return model.model_validate(dict(data))
    except pydantic.ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
            for err in e.errors()
        )
        raise ValidationError(f"Invalid {model.__name__}: {problems}") from e
