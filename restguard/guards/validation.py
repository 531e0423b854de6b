"""
Schema validation guard.

Each FieldSpec is compiled into a pydantic ``TypeAdapter`` in lax mode, so
string inputs from the query string or path are coerced to the declared type
before bounds are checked. Every failing field is reported, not just the first.
"""

import json
import logging
from typing import TYPE_CHECKING, Annotated, Any, Dict, List, Mapping, Tuple

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ValidationFailedError
from ..requirements import FieldSpec, FieldType, Target, ValidateSchema
from .base import Guard

if TYPE_CHECKING:
    from restguard.context import RequestContext

logger = logging.getLogger(__name__)

PYTHON_TYPES = {
    FieldType.STRING: str,
    FieldType.INTEGER: int,
    FieldType.NUMBER: float,
    FieldType.BOOLEAN: bool,
}


def build_adapter(spec: FieldSpec) -> TypeAdapter:
    """Compile a FieldSpec into a pydantic TypeAdapter."""
    constraints: Dict[str, Any] = {}
    if spec.type == FieldType.STRING:
        if spec.min_length is not None:
            constraints["min_length"] = spec.min_length
        if spec.max_length is not None:
            constraints["max_length"] = spec.max_length
        if spec.pattern is not None:
            constraints["pattern"] = spec.pattern
    elif spec.type in (FieldType.INTEGER, FieldType.NUMBER):
        if spec.minimum is not None:
            constraints["ge"] = spec.minimum
        if spec.maximum is not None:
            constraints["le"] = spec.maximum

    python_type = PYTHON_TYPES[spec.type]
    if constraints:
        return TypeAdapter(Annotated[python_type, Field(**constraints)])
    return TypeAdapter(python_type)


def is_missing(spec: FieldSpec, value: Any) -> bool:
    """Absent and null values are missing; so is ``""`` for a required string."""
    if value is None:
        return True
    return spec.required and spec.type == FieldType.STRING and value == ""


def _first_message(error: PydanticValidationError) -> str:
    errors = error.errors(include_url=False)
    return errors[0]["msg"] if errors else "Invalid value"


class SchemaValidatorGuard(Guard):
    """Validates one request section and stores the coerced values.

    On success the coerced values are available via ``ctx.validated(target)``.
    On failure a VALIDATION_ERROR carrying ``[{field, message}]`` is raised.
    """

    def __init__(self, requirement: ValidateSchema):
        self.target: Target = requirement.target
        self.schema = requirement.schema
        self._adapters: Dict[str, Tuple[FieldSpec, TypeAdapter]] = {}
        self._model = None

        if isinstance(self.schema, Mapping):
            self._adapters = {name: (spec, build_adapter(spec)) for name, spec in self.schema.items()}
        elif isinstance(self.schema, type) and issubclass(self.schema, BaseModel):
            self._model = self.schema
        else:
            raise ValueError(f"Unsupported schema for {self.target.value}: {self.schema!r}")

    @property
    def name(self) -> str:
        return f"SchemaValidatorGuard[{self.target.value}]"

    async def check(self, ctx: 'RequestContext') -> None:
        section = self._section(ctx)

        if self._model is not None:
            values, errors = self._validate_model(section)
        else:
            values, errors = self._validate_fields(section)

        if errors:
            logger.warning(
                f"Validation failed for {ctx.method} {ctx.path} ({self.target.value}): "
                f"{', '.join(e['field'] for e in errors)}"
            )
            raise ValidationFailedError(errors)

        ctx.set_validated(self.target.value, values)

    def _section(self, ctx: 'RequestContext') -> Dict[str, Any]:
        if self.target == Target.QUERY:
            return dict(ctx.query_params)
        if self.target == Target.PARAMS:
            return dict(ctx.path_params)
        return parse_json_body(ctx.body)

    def _validate_fields(self, section: Dict[str, Any]) -> Tuple[Dict[str, Any], List[Dict[str, str]]]:
        values: Dict[str, Any] = dict(section)
        errors: List[Dict[str, str]] = []

        for name, (spec, adapter) in self._adapters.items():
            if is_missing(spec, section.get(name)):
                if spec.required:
                    errors.append({"field": name, "message": spec.message or "Field required"})
                continue
            try:
                values[name] = adapter.validate_python(section[name])
            except PydanticValidationError as e:
                errors.append({"field": name, "message": spec.message or _first_message(e)})

        return values, errors

    def _validate_model(self, section: Dict[str, Any]) -> Tuple[Dict[str, Any], List[Dict[str, str]]]:
        try:
            instance = self._model.model_validate(section)
        except PydanticValidationError as e:
            errors = [
                {
                    "field": ".".join(str(part) for part in error["loc"]) or self.target.value,
                    "message": error["msg"],
                }
                for error in e.errors(include_url=False)
            ]
            return {}, errors
        return instance.model_dump(), []


def parse_json_body(body: bytes) -> Dict[str, Any]:
    """Decode a JSON object body. An empty body is treated as an empty object.

    Raises:
        ValidationFailedError: If the body is not valid JSON or not an object
    """
    if not body or not body.strip():
        return {}
    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        raise ValidationFailedError([{"field": "body", "message": "Malformed JSON body"}])
    if not isinstance(data, dict):
        raise ValidationFailedError([{"field": "body", "message": "Body must be a JSON object"}])
    return data
