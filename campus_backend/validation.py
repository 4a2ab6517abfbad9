"""
Shared validation helpers.

Request bodies are described by pydantic models in `schemas.py`; this module
runs them and turns pydantic's error list into our `ValidationError`, keeping
every violated field rather than stopping at the first one.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

logger = logging.getLogger(__name__)

PHONE_PATTERN = r"^[0-9]{10}$"

M = TypeVar("M", bound=BaseModel)


def _field_path(loc) -> str:
    parts = [str(p) for p in loc if not isinstance(p, int)]
    return ".".join(parts) if parts else "body"


def violations_from_pydantic(
    exc: PydanticValidationError,
    messages: Optional[Mapping[str, str]] = None,
) -> List[Dict[str, str]]:
    """One entry per violated field, in the order pydantic reported them."""
    messages = messages or {}
    seen = set()
    violations = []
    for err in exc.errors():
        field = _field_path(err.get("loc", ()))
        if field in seen:
            continue
        seen.add(field)
        violations.append({"field": field, "message": messages.get(field, err.get("msg", "Invalid value"))})
    return violations


def validate_model(model: Type[M], data: Any, messages: Optional[Mapping[str, str]] = None) -> M:
    """Validate `data` against `model`, raising ValidationError with all violations."""
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return model.model_validate(data if data is not None else {})
    except PydanticValidationError as e:
        violations = violations_from_pydantic(e, messages)
        logger.info(f"{model.__name__} rejected: {[v['field'] for v in violations]}")
        raise ValidationError(violations)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an offset-aware datetime to naive UTC; naive values pass through."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def page_window(page: int, limit: int) -> Dict[str, int]:
    return {"skip": (page - 1) * limit, "limit": limit}


def total_pages(total: int, limit: int) -> int:
    return (total + limit - 1) // limit if limit else 0
