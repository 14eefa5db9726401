"""Rule based assignment of vector tile features to display buckets.

The style file lists the tile layers we draw.  Each layer owns an ordered
list of conditional rules and an optional unconditional fallback; every rule
and fallback that produces a visible style becomes a *bucket*.  Buckets are
numbered globally in file order and that number is the paint order used by
the renderer.  Rules and fallbacks without any visual effect are dropped
while loading so they never occupy a paint slot.
"""

from __future__ import annotations

import colorsys
import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence

from jsonschema import Draft202012Validator

from .errors import StyleLoadError

_LOGGER = logging.getLogger(__name__)
_HEX_COLOR = re.compile(r"^#([0-9a-fA-F]{6})$")

_COLOR_SCHEMA: dict[str, Any] = {
    "oneOf": [
        {"type": "string"},
        {
            "type": "object",
            "required": ["hsv"],
            "properties": {
                "hsv": {
                    "type": "array",
                    "items": {"type": "number"},
                    "minItems": 3,
                    "maxItems": 3,
                }
            },
            "additionalProperties": False,
        },
    ]
}

_STYLE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "fill": {"oneOf": [_COLOR_SCHEMA, {"type": "null"}]},
        "stroke": {
            "oneOf": [
                {"type": "null"},
                {
                    "type": "object",
                    "required": ["width", "color"],
                    "properties": {
                        "width": {"type": "number", "exclusiveMinimum": 0},
                        "color": _COLOR_SCHEMA,
                    },
                    "additionalProperties": False,
                },
            ]
        },
    },
    "additionalProperties": False,
}

STYLE_SCHEMA: dict[str, Any] = {
    "$id": "mapfade/style.schema.json",
    "type": "object",
    "required": ["layers"],
    "properties": {
        "palette": {"type": "object", "additionalProperties": _COLOR_SCHEMA},
        "layers": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["layer"],
                "properties": {
                    "layer": {"type": "string", "minLength": 1},
                    "rules": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "filter": {
                                    "type": "array",
                                    "items": {
                                        "type": "object",
                                        "required": ["key", "values"],
                                        "properties": {
                                            "key": {"type": "string"},
                                            "values": {
                                                "type": "array",
                                                "items": {"type": ["string", "number", "boolean", "null"]},
                                            },
                                            "mode": {"enum": ["whitelist", "blacklist"]},
                                        },
                                        "additionalProperties": False,
                                    },
                                },
                                "min_zoom": {"type": "integer", "minimum": 0},
                                "style": _STYLE_SCHEMA,
                            },
                            "additionalProperties": False,
                        },
                    },
                    "fallback": {"oneOf": [_STYLE_SCHEMA, {"type": "null"}]},
                },
                "additionalProperties": False,
            },
        },
    },
    "additionalProperties": False,
}

_validator = Draft202012Validator(STYLE_SCHEMA)


class ValueKind(Enum):
    """Tag of a :class:`PropertyValue`."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"
    OTHER = "other"


@dataclass(frozen=True)
class PropertyValue:
    """Tagged feature property value.

    Equality takes the tag into account so ``True`` never matches ``1`` and
    ``"1"`` never matches ``1``; integers and floats share the number tag and
    compare numerically.
    """

    kind: ValueKind
    value: Any = None

    @classmethod
    def of(cls, raw: Any) -> "PropertyValue":
        if raw is None:
            return cls(ValueKind.NULL)
        if isinstance(raw, bool):
            return cls(ValueKind.BOOLEAN, raw)
        if isinstance(raw, (int, float)):
            return cls(ValueKind.NUMBER, raw)
        if isinstance(raw, str):
            return cls(ValueKind.STRING, raw)
        return cls(ValueKind.OTHER, repr(raw))


@dataclass(frozen=True)
class Color:
    """Opaque 8-bit RGB color."""

    r: int
    g: int
    b: int

    @classmethod
    def from_hex(cls, text: str) -> "Color":
        match = _HEX_COLOR.match(text)
        if match is None:
            raise ValueError(f"'{text}' is not a #rrggbb color")
        value = int(match.group(1), 16)
        return cls((value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF)

    @classmethod
    def from_hsv(cls, hue: float, saturation: float, value: float) -> "Color":
        """Build a color from a hue in degrees and saturation/value in ``[0, 1]``."""

        r, g, b = colorsys.hsv_to_rgb((hue % 360.0) / 360.0, _clamp01(saturation), _clamp01(value))
        return cls(round(r * 255), round(g * 255), round(b * 255))

    def to_hex(self) -> str:
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"

    def with_opacity(self, opacity: float) -> tuple[float, float, float, float]:
        """Return normalized ``(r, g, b, a)`` components."""

        return (self.r / 255.0, self.g / 255.0, self.b / 255.0, _clamp01(opacity))


@dataclass(frozen=True)
class Stroke:
    width: float
    color: Color


@dataclass(frozen=True)
class Paint:
    """Paint description handed to the drawing back end."""

    color: tuple[float, float, float, float]
    stroke_width: Optional[float] = None

    @property
    def is_stroke(self) -> bool:
        return self.stroke_width is not None


@dataclass(frozen=True)
class DrawInstructions:
    """Style of one bucket combined with the opacity of its zoom level."""

    fill: Optional[Color]
    stroke: Optional[Stroke]
    opacity: float

    def path_style(self) -> Optional[Paint]:
        """Paint used for open paths; only strokes apply."""

        if self.stroke is None:
            return None
        return Paint(self.stroke.color.with_opacity(self.opacity), self.stroke.width)

    def area_style(self) -> Optional[Paint]:
        """Paint used for areas; fills win over strokes."""

        if self.fill is not None:
            return Paint(self.fill.with_opacity(self.opacity))
        if self.stroke is not None:
            return Paint(self.stroke.color.with_opacity(self.opacity), self.stroke.width)
        return None


@dataclass(frozen=True)
class LayerStyle:
    """Fill and/or stroke assigned to a bucket."""

    fill: Optional[Color] = None
    stroke: Optional[Stroke] = None

    @property
    def has_effect(self) -> bool:
        return self.fill is not None or self.stroke is not None

    def with_opacity(self, opacity: float) -> DrawInstructions:
        return DrawInstructions(fill=self.fill, stroke=self.stroke, opacity=_clamp01(opacity))


@dataclass(frozen=True)
class Bucket:
    """Paint slot produced by one rule or fallback of a layer."""

    index: int
    layer_name: str
    style: LayerStyle
    rule_index: Optional[int] = None
    """Position of the rule in the layer's rule list; ``None`` for the fallback."""

    @property
    def is_fallback(self) -> bool:
        return self.rule_index is None


@dataclass(frozen=True)
class Predicate:
    """Membership test of one feature property against a value set."""

    key: str
    values: frozenset[PropertyValue]
    whitelist: bool = True

    def evaluate(self, properties: Mapping[str, Any]) -> Optional[bool]:
        """Return the truth value, or ``None`` when the property is absent."""

        if self.key not in properties:
            return None
        contained = PropertyValue.of(properties[self.key]) in self.values
        return contained == self.whitelist


@dataclass(frozen=True)
class StyleRule:
    """Conditional rule: every predicate must hold at a sufficient zoom."""

    predicates: tuple[Predicate, ...]
    bucket: Bucket
    min_zoom: Optional[int] = None

    def matches(self, properties: Mapping[str, Any], zoom: int) -> bool:
        if self.min_zoom is not None and zoom < self.min_zoom:
            return False
        # An absent property is indeterminate and fails the whole rule.
        return all(predicate.evaluate(properties) is True for predicate in self.predicates)


@dataclass(frozen=True)
class LayerRules:
    """All rules of one tracked tile layer."""

    layer_name: str
    rules: tuple[StyleRule, ...]
    fallback: Optional[Bucket] = None

    def classify(self, properties: Mapping[str, Any], zoom: int) -> Optional[Bucket]:
        for rule in self.rules:
            if rule.matches(properties, zoom):
                return rule.bucket
        return self.fallback


class StyleClassifier:
    """Decide which bucket, if any, a tile feature is drawn with.

    The classifier is immutable after construction and can be shared between
    threads without locking.
    """

    def __init__(self, layers: Sequence[LayerRules]) -> None:
        self._layers: Dict[str, LayerRules] = {}
        buckets: list[Bucket] = []
        for layer in layers:
            if layer.layer_name in self._layers:
                raise StyleLoadError(f"Layer '{layer.layer_name}' is defined more than once")
            self._layers[layer.layer_name] = layer
            buckets.extend(rule.bucket for rule in layer.rules)
            if layer.fallback is not None:
                buckets.append(layer.fallback)
        self._buckets = tuple(sorted(buckets, key=lambda bucket: bucket.index))
        if [bucket.index for bucket in self._buckets] != list(range(len(self._buckets))):
            raise StyleLoadError("Bucket indices must be unique and contiguous")

    # ------------------------------------------------------------------
    @classmethod
    def from_file(cls, style_path: Path | str) -> "StyleClassifier":
        """Load and validate the JSON rule file at *style_path*."""

        path = Path(style_path)
        try:
            raw_data = path.read_text(encoding="utf8")
        except OSError as exc:
            raise StyleLoadError(f"Unable to read style file '{path}'") from exc

        try:
            payload = json.loads(raw_data)
        except json.JSONDecodeError as exc:
            raise StyleLoadError(f"Style file '{path}' is not valid JSON") from exc

        return cls.from_dict(payload)

    # ------------------------------------------------------------------
    @classmethod
    def from_dict(cls, payload: Any) -> "StyleClassifier":
        """Build a classifier from already parsed style data."""

        errors = sorted(_validator.iter_errors(payload), key=lambda error: list(error.path))
        if errors:
            first = errors[0]
            location = "/".join(str(part) for part in first.path) or "<root>"
            raise StyleLoadError(f"Invalid style definition at {location}: {first.message}")

        palette_specs = payload.get("palette", {})
        palette: Dict[str, Color] = {}
        for name, spec in palette_specs.items():
            palette[name] = _parse_color(spec, {}, f"palette '{name}'")

        layers: list[LayerRules] = []
        next_index = 0
        for entry in payload["layers"]:
            layer_name = entry["layer"]
            rules: list[StyleRule] = []
            for rule_index, rule_spec in enumerate(entry.get("rules", [])):
                style = _parse_style(rule_spec.get("style"), palette, f"{layer_name} rule {rule_index}")
                if not style.has_effect:
                    _LOGGER.debug("Dropping rule %d of layer '%s' without visual effect", rule_index, layer_name)
                    continue
                predicates = tuple(
                    Predicate(
                        key=predicate["key"],
                        values=frozenset(PropertyValue.of(value) for value in predicate["values"]),
                        whitelist=predicate.get("mode", "whitelist") == "whitelist",
                    )
                    for predicate in rule_spec.get("filter", [])
                )
                bucket = Bucket(next_index, layer_name, style, rule_index)
                next_index += 1
                rules.append(StyleRule(predicates=predicates, bucket=bucket, min_zoom=rule_spec.get("min_zoom")))

            fallback: Optional[Bucket] = None
            fallback_style = _parse_style(entry.get("fallback"), palette, f"{layer_name} fallback")
            if fallback_style.has_effect:
                fallback = Bucket(next_index, layer_name, fallback_style)
                next_index += 1

            if not rules and fallback is None:
                _LOGGER.debug("Layer '%s' has no visible rules and is not tracked", layer_name)
                continue
            layers.append(LayerRules(layer_name=layer_name, rules=tuple(rules), fallback=fallback))

        return cls(layers)

    # ------------------------------------------------------------------
    def is_tracked(self, layer_name: str) -> bool:
        """Return ``True`` when features of *layer_name* can be drawn at all."""

        return layer_name in self._layers

    # ------------------------------------------------------------------
    def classify(self, layer_name: str, properties: Mapping[str, Any], zoom: int) -> Optional[Bucket]:
        """Return the bucket of a feature or ``None`` when it is not drawn."""

        layer = self._layers.get(layer_name)
        if layer is None:
            return None
        return layer.classify(properties, zoom)

    # ------------------------------------------------------------------
    @property
    def tracked_layers(self) -> tuple[str, ...]:
        return tuple(self._layers)

    @property
    def buckets(self) -> tuple[Bucket, ...]:
        return self._buckets

    @property
    def bucket_count(self) -> int:
        return len(self._buckets)

    def bucket(self, index: int) -> Bucket:
        return self._buckets[index]


def _parse_color(spec: Any, palette: Mapping[str, Color], where: str) -> Color:
    if isinstance(spec, dict):
        hue, saturation, value = spec["hsv"]
        return Color.from_hsv(hue, saturation, value)
    if isinstance(spec, str):
        if spec in palette:
            return palette[spec]
        try:
            return Color.from_hex(spec)
        except ValueError as exc:
            raise StyleLoadError(f"Unknown color '{spec}' in {where}") from exc
    raise StyleLoadError(f"Unsupported color specification {spec!r} in {where}")


def _parse_style(spec: Any, palette: Mapping[str, Color], where: str) -> LayerStyle:
    if not spec:
        return LayerStyle()
    fill = spec.get("fill")
    stroke = spec.get("stroke")
    return LayerStyle(
        fill=_parse_color(fill, palette, where) if fill is not None else None,
        stroke=(
            Stroke(float(stroke["width"]), _parse_color(stroke["color"], palette, where))
            if stroke is not None
            else None
        ),
    )


def _clamp01(value: float) -> float:
    """Clamp ``value`` to the inclusive ``[0.0, 1.0]`` range."""

    return max(0.0, min(1.0, float(value)))


__all__ = [
    "Bucket",
    "Color",
    "DrawInstructions",
    "LayerRules",
    "LayerStyle",
    "Paint",
    "Predicate",
    "PropertyValue",
    "STYLE_SCHEMA",
    "StyleClassifier",
    "StyleRule",
    "Stroke",
    "ValueKind",
]
