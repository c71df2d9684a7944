"""Entity schemas backed by pydantic.

An EntitySchema validates a full record (create) or only the supplied
fields of a partial record (update), and reports failures as a flat list
of ValidationIssue(path, message).
"""

from collections.abc import Sequence
from typing import Annotated, Any, Union

import pydantic
from pydantic import BaseModel, ConfigDict, TypeAdapter

from dancehub.crud.errors import ValidationError, ValidationIssue


class Document(BaseModel):
    """Base class for entity payload models. Unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")


def _path(loc: Sequence[Any]) -> str:
    return ".".join(str(part) for part in loc)


class EntitySchema:
    """Validation contract for one entity.

    Use from_model() for a single pydantic model, or from_union() for a
    discriminated union of models (e.g. event types).
    """

    def __init__(
        self,
        full: TypeAdapter,
        variants: Sequence[type[BaseModel]],
        discriminator: str | None = None,
    ):
        self._full = full
        self._variants = tuple(variants)
        self._discriminator = discriminator
        self._fields = self._build_field_adapters(self._variants)

    @classmethod
    def from_model(cls, model: type[BaseModel]) -> "EntitySchema":
        return cls(TypeAdapter(model), [model])

    @classmethod
    def from_union(
        cls,
        annotation: Any,
        *variants: type[BaseModel],
        discriminator: str = "type",
    ) -> "EntitySchema":
        return cls(TypeAdapter(annotation), variants, discriminator=discriminator)

    @property
    def field_names(self) -> frozenset[str]:
        return frozenset(self._fields)

    def validate_full(self, payload: Any) -> dict[str, Any]:
        """Validate a complete record.

        Returns:
            The normalised record (defaults applied, JSON-compatible values)

        Raises:
            ValidationError: With one issue per failing field
        """
        try:
            value = self._full.validate_python(payload)
        except pydantic.ValidationError as e:
            raise ValidationError(self._issues(e, payload)) from e

        return self._full.dump_python(value, mode="json", exclude_none=True)

    def validate_partial(self, payload: Any) -> dict[str, Any]:
        """Validate only the fields present in payload.

        Each field is checked against its own constraints; cross-field
        rules and required-ness are not applied.
        """
        if not isinstance(payload, dict):
            raise ValidationError(
                [ValidationIssue(path="", message="Input should be an object")]
            )

        issues: list[ValidationIssue] = []
        cleaned: dict[str, Any] = {}

        for name, raw in payload.items():
            adapter = self._fields.get(name)
            if adapter is None:
                issues.append(ValidationIssue(path=name, message="Unknown field"))
                continue
            try:
                value = adapter.validate_python(raw)
            except pydantic.ValidationError as e:
                for err in e.errors():
                    issues.append(
                        ValidationIssue(path=_path([name, *err["loc"]]), message=err["msg"])
                    )
                continue
            cleaned[name] = adapter.dump_python(value, mode="json", exclude_none=True)

        if issues:
            raise ValidationError(issues)

        return cleaned

    def coerce_query_value(self, field: str, raw: str) -> Any:
        """Convert a query-string value to the field's type when possible.

        Values that don't fit the field type are returned unchanged, so a
        filter on them simply matches nothing.
        """
        adapter = self._fields.get(field)
        if adapter is None:
            return raw
        try:
            value = adapter.validate_python(raw)
        except pydantic.ValidationError:
            return raw
        return adapter.dump_python(value, mode="json")

    def _issues(self, exc: pydantic.ValidationError, payload: Any) -> list[ValidationIssue]:
        tag = None
        if self._discriminator and isinstance(payload, dict):
            tag = payload.get(self._discriminator)

        issues = []
        for err in exc.errors():
            loc = list(err["loc"])
            # Discriminated unions prefix locations with the matched tag
            if tag is not None and loc and loc[0] == tag:
                loc = loc[1:]
            issues.append(ValidationIssue(path=_path(loc), message=err["msg"]))
        return issues

    @staticmethod
    def _build_field_adapters(
        variants: Sequence[type[BaseModel]],
    ) -> dict[str, TypeAdapter]:
        annotations: dict[str, list[Any]] = {}
        for model in variants:
            for name, info in model.model_fields.items():
                annotated = info.annotation
                if info.metadata:
                    annotated = Annotated[(info.annotation, *info.metadata)]
                annotations.setdefault(name, []).append(annotated)

        adapters: dict[str, TypeAdapter] = {}
        for name, types in annotations.items():
            if len(types) == 1:
                adapters[name] = TypeAdapter(types[0])
            else:
                adapters[name] = TypeAdapter(Union[tuple(types)])
        return adapters
