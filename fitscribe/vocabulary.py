"""
Fitness vocabulary for transcription keyword boosting.

Keywords are loaded once from the bundled fitness_vocabulary.json and are
read-only afterwards. If the resource is missing or unparsable a smaller
embedded list covering the same categories is used instead.
"""

from importlib import resources
from pathlib import Path
from typing import Dict, List, Optional, Union
import json


VOCABULARY_RESOURCE = "fitness_vocabulary.json"

# Fallback when the bundled resource can't be read
EMBEDDED_VOCABULARY: Dict[str, List[str]] = {
    "strength_exercises": [
        "squats", "deadlifts", "bench press", "overhead press", "barbell row",
        "pull ups", "chin ups", "dips", "lunges", "hip thrusts",
        "Romanian deadlifts", "Bulgarian split squats", "bicep curls",
        "tricep extensions", "lateral raises", "face pulls", "lat pulldowns",
        "calf raises", "glute bridges", "planks", "crunches", "push ups",
    ],
    "cardio_exercises": [
        "tempo run", "interval training", "fartlek", "easy run", "hill repeats",
        "burpees", "box jumps", "jump rope", "rowing", "cycling",
        "sled push", "farmer's walk",
    ],
    "training_methods": [
        "HIIT", "Tabata", "AMRAP", "EMOM", "circuit training", "supersets",
        "drop sets", "pyramid sets", "rest pause", "tempo training",
    ],
    "sets_reps": [
        "reps", "sets", "rounds", "rest period", "seconds", "minutes",
        "max reps", "to failure", "RPE", "one rep max",
    ],
    "intensity": [
        "max effort", "moderate", "light", "heavy", "bodyweight",
        "zone 2", "zone 4", "easy pace", "race pace",
    ],
    "equipment": [
        "barbell", "dumbbell", "kettlebell", "resistance band", "medicine ball",
        "pull up bar", "squat rack", "cable machine", "trap bar", "TRX",
    ],
    "body_parts": [
        "chest", "back", "shoulders", "biceps", "triceps", "quads",
        "hamstrings", "glutes", "core", "upper body", "lower body", "leg day",
    ],
    "mobility_flexibility": [
        "stretching", "foam rolling", "mobility work", "hip flexors",
        "thoracic spine", "leg swings",
    ],
    "time_duration": [
        "5 minutes", "10 minutes", "15 minutes", "20 minutes", "30 minutes",
        "45 minutes", "60 minutes", "half hour", "an hour",
    ],
    "distances": [
        "1K", "5K", "10K", "half marathon", "marathon",
        "400 meters", "800 meters", "1 mile", "5 miles",
    ],
}


class FitnessVocabulary:
    """
    Categorized fitness keywords.

    Usage:
        vocabulary = FitnessVocabulary.load()
        hints = vocabulary.all_keywords
    """

    def __init__(self, categories: Dict[str, List[str]]):
        self._categories = {name: list(words) for name, words in categories.items()}
        self._all = [word for words in self._categories.values() for word in words]

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "FitnessVocabulary":
        """
        Load vocabulary from a JSON file.

        Args:
            path: Vocabulary file; defaults to the bundled resource

        Returns:
            Vocabulary from the file, or the embedded default list
        """
        categories = _read_categories(path)
        if categories is None:
            categories = EMBEDDED_VOCABULARY

        vocabulary = cls(categories)
        print(
            f"[FitnessVocabulary] Loaded {len(vocabulary.all_keywords)} keywords "
            f"across {len(vocabulary.categories)} categories"
        )
        return vocabulary

    @property
    def all_keywords(self) -> List[str]:
        return list(self._all)

    @property
    def categories(self) -> List[str]:
        return list(self._categories)

    def keywords(self, category: str) -> List[str]:
        """Keywords for a category (empty for an unknown one)."""
        return list(self._categories.get(category, []))

    def search(self, query: str) -> List[str]:
        """Keywords containing query, case-insensitively."""
        needle = query.lower()
        return [word for word in self._all if needle in word.lower()]


def _read_categories(path: Optional[Union[str, Path]]) -> Optional[Dict[str, List[str]]]:
    try:
        if path is None:
            raw = resources.files("fitscribe.data").joinpath(VOCABULARY_RESOURCE).read_text(encoding="utf-8")
        else:
            raw = Path(path).read_text(encoding="utf-8")
        data = json.loads(raw)
    except (OSError, ValueError) as e:
        print(f"[FitnessVocabulary] Could not read vocabulary file: {e}")
        return None

    categories = data.get("categories") if isinstance(data, dict) else None
    if not isinstance(categories, dict) or not all(
        isinstance(words, list) and all(isinstance(w, str) for w in words)
        for words in categories.values()
    ):
        print("[FitnessVocabulary] Vocabulary file has unexpected shape, using embedded list")
        return None

    return categories
