"""
Tunable settings for extraction, anchor location, placement and reconciliation.

All of the scoring weights and thresholds used by the heuristics live here
so they can be adjusted per project from a YAML file instead of being
re-derived. The defaults reproduce the established behavior.

Example:
    >>> settings = ReconcileSettings.from_dict({"similarity_threshold": 0.4})
    >>> settings.similarity_threshold
    0.4
    >>> settings.lookahead
    3
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError


@dataclass(frozen=True)
class ReconcileSettings:
    """Calibration constants used across the reconciliation pipeline.

    Attributes:
        context_window: Characters of plain text examined on each side of an anchor
        context_fallback: Characters kept when no sentence boundary is found
        context_both_chars: Tail/head length used when both contexts are known
        context_single_chars: Tail/head length used when only one context is known
        context_max_gap: Largest gap allowed between the before and after matches
        truncation_max_words: Most leading anchor words tried by truncation
        truncation_min_words: Fewest leading anchor words tried by truncation
        truncation_min_chars: Shortest truncated anchor that is searched for
        token_min_chars: Shortest anchor token accepted by the token fallback
        token_max_occurrences: Token fallback rejects tokens seen this often or more
        fuzzy_threshold: Similarity (0-1) for the fuzzy strategy, None disables it
        snap_window: Width of the window used to snap to a word boundary
        local_search_window: Distance searched around an interpolated position
        context_keyword_min_len: Context words must be longer than this to score
        context_keyword_bonus: Score per context keyword found near a candidate
        context_exact_bonus: Score when the context tail/head is found verbatim
        context_exact_chars: Length of the context tail/head checked verbatim
        context_slack: Extra characters added to each scoring window
        similarity_threshold: Minimum paragraph similarity for a pairing
        lookahead: Number of unconsumed rendered paragraphs considered
        heading_rescue_chars: Heading prefix length used by the heading rescue
        image_label_weight: Image match score for equal labels
        image_number_weight: Image match score for a registry number match
        image_caption_weight: Image match score for equal caption prefixes
        image_caption_overlap_weight: Image match score for overlapping captions
        image_filename_weight: Image match score for equal file names
        image_min_score: Minimum score for an image pairing
    """

    context_window: int = 150
    context_fallback: int = 80
    context_both_chars: int = 50
    context_single_chars: int = 30
    context_max_gap: int = 500
    truncation_max_words: int = 6
    truncation_min_words: int = 3
    truncation_min_chars: int = 15
    token_min_chars: int = 4
    token_max_occurrences: int = 5
    fuzzy_threshold: float | None = None
    snap_window: int = 50
    local_search_window: int = 200
    context_keyword_min_len: int = 3
    context_keyword_bonus: int = 2
    context_exact_bonus: int = 5
    context_exact_chars: int = 30
    context_slack: int = 20
    similarity_threshold: float = 0.3
    lookahead: int = 3
    heading_rescue_chars: int = 20
    image_label_weight: int = 100
    image_number_weight: int = 90
    image_caption_weight: int = 80
    image_caption_overlap_weight: int = 40
    image_filename_weight: int = 30
    image_min_score: int = 40

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ReconcileSettings:
        """Build settings from a mapping, validating names, types and ranges.

        Args:
            data: Mapping of setting name to value; missing names keep defaults

        Returns:
            A validated ReconcileSettings instance

        Raises:
            ConfigurationError: If a name is unknown or a value is out of range
        """
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Settings must be a mapping, got {type(data).__name__}"
            )

        known = {f.name: f for f in fields(cls)}
        errors: list[str] = []
        values: dict[str, Any] = {}

        for key, value in data.items():
            if key not in known:
                errors.append(f"Unknown setting '{key}'")
                continue

            if key in ("similarity_threshold", "fuzzy_threshold"):
                if value is None and key == "fuzzy_threshold":
                    values[key] = None
                    continue
                if isinstance(value, bool) or not isinstance(value, int | float):
                    errors.append(f"{key} must be a number, got {type(value).__name__}")
                elif not 0 <= value <= 1:
                    errors.append(f"{key} must be between 0 and 1, got {value}")
                else:
                    values[key] = float(value)
                continue

            if isinstance(value, bool) or not isinstance(value, int):
                errors.append(f"{key} must be an integer, got {type(value).__name__}")
            elif value < 0:
                errors.append(f"{key} must not be negative, got {value}")
            else:
                values[key] = value

        if errors:
            raise ConfigurationError("Invalid reconcile settings", errors)

        settings = cls(**values)
        if settings.truncation_min_words > settings.truncation_max_words:
            raise ConfigurationError(
                "Invalid reconcile settings",
                ["truncation_min_words must not exceed truncation_max_words"],
            )
        if settings.lookahead < 1:
            raise ConfigurationError("Invalid reconcile settings", ["lookahead must be at least 1"])
        return settings

    def to_dict(self) -> dict[str, Any]:
        """Return the settings as a plain dictionary."""
        return asdict(self)


DEFAULT_SETTINGS = ReconcileSettings()


def load_settings(path: str | Path) -> ReconcileSettings:
    """Load settings from a YAML file.

    The file holds either a top-level mapping of setting names or the same
    mapping nested under a ``reconcile`` key.

    Args:
        path: Path to the YAML file

    Returns:
        Validated settings

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"Settings file not found: {file_path}")

    try:
        with open(file_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML file {file_path}: {e}") from e

    if data is None:
        return ReconcileSettings()
    if isinstance(data, dict) and "reconcile" in data:
        data = data["reconcile"]
    return ReconcileSettings.from_dict(data)
