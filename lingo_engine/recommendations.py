"""Local model recommendations for a native/target language pair."""
import re
from typing import Any

from lingo_models.loader import get_languages, get_recommendations, load_catalog

MAX_RECOMMENDATIONS = 5
SIZE_FILTER_MIN_SCORE = 6


def parse_size_gb(size: str) -> float:
    """'4.7GB' -> 4.7, '1.2TB' -> 1200.0, '900MB' -> 0.9."""
    digits = re.sub(r"[^0-9.]", "", size or "")
    if not digits:
        return 0.0
    value = float(digits)
    upper = size.upper()
    if "TB" in upper:
        return value * 1000
    if "MB" in upper:
        return value / 1000
    return value


def recommend_models(
    native_language: str,
    target_language: str,
    catalog: dict[str, Any] | None = None,
) -> list[dict[str, Any]]:
    """Models scoring both languages, best mean score first."""
    catalog = load_catalog() if catalog is None else catalog
    results = []
    for entry in get_recommendations(catalog):
        languages = entry.get("languages") or {}
        native = languages.get(native_language)
        target = languages.get(target_language)
        if not native or not target:
            continue
        results.append({
            "model": entry["model"],
            "displayName": entry.get("display_name", entry["model"]),
            "size": entry.get("size"),
            "description": entry.get("description", ""),
            "score": (native["score"] + target["score"]) / 2,
            "nativeScore": native["score"],
            "targetScore": target["score"],
            "nativeSpeciality": native.get("speciality"),
            "targetSpeciality": target.get("speciality"),
            "sizeInGB": parse_size_gb(str(entry.get("size", ""))),
        })
    results.sort(key=lambda r: r["score"], reverse=True)
    return results


def recommend_models_by_size(
    native_language: str,
    target_language: str,
    catalog: dict[str, Any] | None = None,
) -> list[dict[str, Any]]:
    """Models with a mean score of at least 6, smallest first."""
    ranked = recommend_models(native_language, target_language, catalog)
    eligible = [r for r in ranked if r["score"] >= SIZE_FILTER_MIN_SCORE]
    eligible.sort(key=lambda r: r["sizeInGB"])
    return eligible


def build_recommendation(
    native_language: str,
    target_language: str,
    filter_type: str = "recommendation",
    catalog: dict[str, Any] | None = None,
) -> dict[str, Any]:
    catalog = load_catalog() if catalog is None else catalog
    if filter_type == "size":
        ranked = recommend_models_by_size(native_language, target_language, catalog)
    else:
        ranked = recommend_models(native_language, target_language, catalog)
    languages = get_languages(catalog)
    return {
        "nativeLanguage": languages.get(native_language),
        "targetLanguage": languages.get(target_language),
        "recommendations": ranked[:MAX_RECOMMENDATIONS],
        "filterType": filter_type,
    }
