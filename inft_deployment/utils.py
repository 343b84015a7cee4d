import json
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r", encoding="utf-8") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> Any:
    """Loads a JSON file."""
    with open(filepath, "r", encoding="utf-8") as file:
        return json.load(file)


def _write_json_atomic(filepath: Path, data: Any, **json_format) -> None:
    """Writes JSON next to its destination and renames it into place."""
    filepath.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(
        prefix=f".{filepath.stem}.", suffix=".tmp", dir=filepath.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as file:
            json.dump(data, file, **json_format)
            file.write("\n")
        os.replace(temp_name, filepath)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise


def is_truthy_flag(value) -> bool:
    """Environment flags are enabled only by the literal string 'true'."""
    return value == "true"
