from __future__ import annotations
import yaml, json, typing as t
from dataclasses import dataclass
from pathlib import Path

import jsonschema

FIELD_TYPES = ("TEXT", "NUMBER", "DATE", "TIMESTAMP", "BOOLEAN")

REGISTRY_SCHEMA: dict[str, t.Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "Entity field registry",
    "type": "object",
    "required": ["entities"],
    "properties": {
        "entities": {
            "type": "object",
            "minProperties": 1,
            "additionalProperties": {"$ref": "#/$defs/Entity"},
        },
    },
    "$defs": {
        "Relation": {
            "type": "object",
            "additionalProperties": False,
            "required": ["table", "key"],
            "properties": {
                "table": {"type": "string", "minLength": 1},
                "key": {"type": "string", "minLength": 1},
                "many": {"type": "boolean"},
            },
        },
        "Field": {
            "type": "object",
            "additionalProperties": False,
            "required": ["type"],
            "properties": {
                "type": {"type": "string", "enum": list(FIELD_TYPES)},
                "column": {"type": "string", "minLength": 1},
                "expression": {"type": "string", "minLength": 1},
                "relation": {"$ref": "#/$defs/Relation"},
            },
            "oneOf": [
                {"required": ["column"], "not": {"required": ["expression"]}},
                {"required": ["expression"], "not": {"required": ["column"]}},
            ],
        },
        "Entity": {
            "type": "object",
            "additionalProperties": False,
            "required": ["table", "fields"],
            "properties": {
                "table": {"type": "string", "minLength": 1},
                "maxPageSize": {"type": "integer", "minimum": 1},
                "defaultPageSize": {"type": "integer", "minimum": 1},
                "votes": {
                    "type": "object",
                    "additionalProperties": False,
                    "properties": {
                        "minValue": {"type": "integer"},
                        "maxValue": {"type": "integer"},
                    },
                },
                "fields": {
                    "type": "object",
                    "minProperties": 1,
                    "propertyNames": {"pattern": "^[A-Za-z_][A-Za-z0-9_]*(\\.[A-Za-z_][A-Za-z0-9_]*)*$"},
                    "additionalProperties": {"$ref": "#/$defs/Field"},
                },
            },
        },
    },
}


@dataclass(frozen=True)
class Relation:
    table: str
    key: str
    many: bool = False


@dataclass(frozen=True)
class FieldSpec:
    """One allow-listed attribute path and where it lives in storage."""
    name: str
    type: str
    column: t.Optional[str] = None
    expression: t.Optional[str] = None
    relation: t.Optional[Relation] = None

    @property
    def many(self) -> bool:
        return bool(self.relation and self.relation.many)

    @property
    def sortable(self) -> bool:
        return self.relation is None

    @property
    def path(self) -> tuple[str, ...]:
        return tuple(self.name.split("."))


@dataclass(frozen=True)
class EntityConfig:
    name: str
    table: str
    fields: dict[str, FieldSpec]
    max_page_size: int
    default_page_size: int
    vote_min: int = 0
    vote_max: int = 4

    def field(self, name: str) -> FieldSpec:
        return self.fields[name]


class Registry:
    def __init__(self, path: Path, *, global_max_page_size: int = 1000, default_page_size: int = 20):
        self.path = Path(path)
        self.global_max_page_size = global_max_page_size
        self.default_page_size = default_page_size
        self.entities: dict[str, EntityConfig] = {}

    def load(self) -> None:
        if not self.path.exists():
            raise RuntimeError(f"Field registry file not found: {self.path}")
        with self.path.open("r", encoding="utf-8") as f:
            if self.path.suffix.lower() in (".yaml", ".yml"):
                cfg = yaml.safe_load(f)
            else:
                cfg = json.load(f)
        self.entities = self.parse(cfg)

    def parse(self, cfg: t.Any) -> dict[str, EntityConfig]:
        jsonschema.validate(instance=cfg, schema=REGISTRY_SCHEMA)
        out: dict[str, EntityConfig] = {}
        for name, raw in cfg["entities"].items():
            fields = {
                path: FieldSpec(
                    name=path,
                    type=spec["type"],
                    column=spec.get("column"),
                    expression=spec.get("expression"),
                    relation=Relation(**spec["relation"]) if "relation" in spec else None,
                )
                for path, spec in raw["fields"].items()
            }
            cap = min(int(raw.get("maxPageSize", self.global_max_page_size)), self.global_max_page_size)
            votes = raw.get("votes", {})
            vote_min = int(votes.get("minValue", 0))
            vote_max = int(votes.get("maxValue", 4))
            if vote_min > vote_max:
                raise RuntimeError(f"Bad vote range for {name}: {vote_min} > {vote_max}")
            out[name] = EntityConfig(
                name=name,
                table=raw["table"],
                fields=fields,
                max_page_size=cap,
                default_page_size=min(int(raw.get("defaultPageSize", self.default_page_size)), cap),
                vote_min=vote_min,
                vote_max=vote_max,
            )
        return out

    def ensure_entity(self, name: str) -> EntityConfig:
        if name not in self.entities:
            raise KeyError(f"Unknown entity: {name}")
        return self.entities[name]
