from __future__ import annotations

import logging
import random
from typing import Any

import requests
from pydantic import ValidationError

from ..config import Settings
from ..errors import UpstreamUnavailable
from ..rules.rule_loader import load_treatment_table
from .views import MedicineEntry, TreatmentSuggestion

logger = logging.getLogger(__name__)


class KeywordTreatmentSuggester:
    """Suggests medicines by matching diagnosis text against a keyword table.

    The first keyword (in table order) found in the lower-cased diagnosis
    wins. Underscores in a keyword also match as spaces, so ``chest_pain``
    matches "Chest pain since morning".
    """

    def __init__(self, rng: random.Random | None = None, table: dict[str, Any] | None = None) -> None:
        self.rng = rng or random.Random()
        table = table or load_treatment_table()
        self.rules = [
            (rule["keyword"].lower(), [MedicineEntry(**m) for m in rule["medicines"]])
            for rule in table["keywords"]
        ]
        self.default = [MedicineEntry(**m) for m in table["default"]]
        matched = table.get("matched_confidence") or {}
        self.matched_min = float(matched.get("min", 0.85))
        self.matched_max = float(matched.get("max", 0.95))
        self.default_confidence = float(table.get("default_confidence", 0.70))

    def suggest(self, diagnosis: str) -> TreatmentSuggestion:
        text = (diagnosis or "").lower()
        for keyword, medicines in self.rules:
            if keyword in text or keyword.replace("_", " ") in text:
                spread = self.matched_max - self.matched_min
                confidence = self.matched_min + self.rng.random() * spread
                return TreatmentSuggestion(medicines=list(medicines), confidence=confidence)
        return TreatmentSuggestion(medicines=list(self.default), confidence=self.default_confidence)


class RemoteTreatmentSuggester:
    def __init__(self, base_url: str, timeout: float = 5.0) -> None:
        if not base_url:
            raise RuntimeError("TREATMENT_SUGGESTER_URL is not configured")
        self.url = base_url.rstrip("/")
        self.timeout = timeout

    def suggest(self, diagnosis: str) -> TreatmentSuggestion:
        try:
            response = requests.post(
                self.url,
                json={"diagnosis": diagnosis},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Treatment suggester unavailable: %s", exc)
            raise UpstreamUnavailable("Treatment suggester unavailable", {"url": self.url}) from exc

        try:
            return TreatmentSuggestion(
                medicines=[MedicineEntry(**m) for m in data.get("medicines") or []],
                confidence=data.get("confidence", 0.0),
            )
        except (AttributeError, TypeError, ValidationError) as exc:
            raise UpstreamUnavailable(
                "Treatment suggester returned a malformed answer", {"url": self.url}
            ) from exc


def build_treatment_suggester(settings: Settings, rng: random.Random | None = None):
    mode = settings.TREATMENT_SUGGESTER_MODE.lower()
    if mode == "remote":
        return RemoteTreatmentSuggester(
            settings.TREATMENT_SUGGESTER_URL,
            timeout=settings.TREATMENT_SUGGESTER_TIMEOUT_SECONDS,
        )
    if mode != "keyword":
        raise RuntimeError(f"Unknown TREATMENT_SUGGESTER_MODE: {settings.TREATMENT_SUGGESTER_MODE}")
    return KeywordTreatmentSuggester(rng=rng)
