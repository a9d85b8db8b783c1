"""Declarative per-field transforms applied to completed endpoint payloads."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from parallelizer.errors import ConfigurationError
from parallelizer.polling.paths import resolve_path


@dataclass(frozen=True, slots=True)
class TransformDirective:
    """Produce one output field from a literal value or a field path into the payload."""

    output_key: str
    literal: Any = None
    source_path: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.output_key, str) or not self.output_key:
            raise ConfigurationError("Transform directive requires a non-empty output key")
        if self.source_path is not None and (
            not isinstance(self.source_path, str) or not self.source_path
        ):
            raise ConfigurationError(
                f"Transform directive {self.output_key!r} has an invalid valueKey: "
                f"{self.source_path!r}",
            )
        if self.literal is None and not self.source_path:
            raise ConfigurationError(
                f"Transform directive {self.output_key!r} needs either a value or a valueKey",
            )

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> TransformDirective:
        """Build from the wire form ``{"key": ..., "value": ..., "valueKey": ...}``."""

        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"Transform directive must be an object, got {raw!r}")
        return cls(
            output_key=raw.get("key"),
            literal=raw.get("value"),
            source_path=raw.get("valueKey"),
        )

    def resolve(self, payload: Any) -> Any:
        if self.literal is not None:
            return self.literal
        return resolve_path(payload, self.source_path)


def parse_directives(raw: Sequence[Mapping[str, Any]] | None) -> tuple[TransformDirective, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str | bytes) or not isinstance(raw, Sequence):
        raise ConfigurationError("Invalid transform: expected a list of directives")
    return tuple(TransformDirective.from_mapping(item) for item in raw)


def apply_transform(payload: Any, directives: Sequence[TransformDirective]) -> dict[str, Any]:
    """Merge every directive's output into one mapping; later keys overwrite earlier ones."""

    output: dict[str, Any] = {}
    for directive in directives:
        output[directive.output_key] = directive.resolve(payload)
    return output


def apply_to_result(result: Any, directives: Sequence[TransformDirective]) -> Any:
    """Apply directives to a single payload, or element-wise to a list of payloads."""

    if isinstance(result, list):
        return [apply_transform(item, directives) for item in result]
    return apply_transform(result, directives)
