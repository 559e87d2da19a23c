from __future__ import annotations
from pathlib import Path
import json
from typing import Any, Dict, List

from jsonschema import Draft202012Validator

DATA_DIR = Path(__file__).resolve().parent / "data"
SCHEMAS_DIR = DATA_DIR / "schemas"
SCHEMA_NAMES = ("tools", "fallback_templates")


class SchemaValidator:
    def __init__(self) -> None:
        self._schemas: Dict[str, Draft202012Validator] = {}
        for name in SCHEMA_NAMES:
            path = SCHEMAS_DIR / f"{name}.schema.json"
            with open(path, "r", encoding="utf-8") as f:
                schema = json.load(f)
                self._schemas[name] = Draft202012Validator(schema)

    def validate(self, name: str, data: Any) -> List[str]:
        if name not in self._schemas:
            raise KeyError(f"Unknown schema {name}")
        validator = self._schemas[name]
        errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
        return [f"{'/'.join(map(str, e.path))}: {e.message}" for e in errors]


def load_data_file(name: str, validator: SchemaValidator | None = None) -> Dict[str, Any]:
    """Read data/<name>.json and validate it against its schema.

    Bundled data files are part of the release, so a schema violation is a
    packaging bug and raises ValueError.
    """
    path = DATA_DIR / f"{name}.json"
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path.name}: {e}") from e
    errors = (validator or SchemaValidator()).validate(name, data)
    if errors:
        raise ValueError(f"{path.name} failed schema validation: " + "; ".join(errors))
    return data
