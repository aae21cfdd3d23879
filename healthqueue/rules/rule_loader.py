import json
from pathlib import Path
from typing import Any


def load_treatment_table(path: str | None = None) -> dict[str, Any]:
    if path is None:
        path = Path(__file__).with_name("treatment_keywords_v1.json")
    else:
        path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        table = json.load(f)
    if "keywords" not in table or "default" not in table:
        raise ValueError(f"Treatment table {path} needs 'keywords' and 'default' sections")
    return table
