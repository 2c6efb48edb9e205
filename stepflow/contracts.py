"""Schema contracts for trigger data, step inputs and step outputs.

A contract is any pydantic ``BaseModel`` subclass. Values are validated in
strict mode so that malformed data fails fast instead of being coerced.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Optional, Type

from pydantic import BaseModel, ValidationError

from .exceptions import ContractViolationError

logger = logging.getLogger(__name__)

Contract = Type[BaseModel]
ContractKind = Literal["trigger", "input", "output"]


def validate_contract(
    contract: Optional[Contract],
    value: Any,
    *,
    subject: str,
    kind: ContractKind,
) -> Any:
    """Validate ``value`` against ``contract`` and return it as plain data.

    Undeclared contracts pass values through unchanged. Keys the contract
    does not declare are dropped from the returned dict.

    Raises:
        ContractViolationError: If ``value`` does not satisfy ``contract``.
    """
    if contract is None:
        return value

    if isinstance(value, BaseModel):
        value = value.model_dump()

    try:
        validated = contract.model_validate(value, strict=True)
    except ValidationError as e:
        errors = e.errors(include_url=False)
        logger.debug(f"{kind} contract {contract.__name__} rejected {subject}: {errors}")
        raise ContractViolationError(subject, kind, errors) from e
    return validated.model_dump()


def describe_contract(contract: Optional[Contract]) -> Optional[dict[str, Any]]:
    """Return the JSON schema for ``contract`` or ``None`` when undeclared."""
    if contract is None:
        return None
    return contract.model_json_schema()
