"""Transcription mode defaults."""

from typing import Any

from hangjegyzet.services.exceptions import UploadValidationError

DEFAULT_MODE = "balanced"

MODE_DEFAULTS: dict[str, dict[str, Any]] = {
    "fast": {
        "enableEnhancedProcessing": False,
        "enablePreprocessing": False,
        "enableMultiPass": False,
        "enableVocabularyEnhancement": False,
        "enableAccuracyMonitoring": True,
    },
    "balanced": {
        "enableEnhancedProcessing": True,
        "enablePreprocessing": True,
        "enableMultiPass": False,
        "enableVocabularyEnhancement": True,
        "enableAccuracyMonitoring": True,
    },
    "precision": {
        "enableEnhancedProcessing": True,
        "enablePreprocessing": True,
        "enableMultiPass": True,
        "enableVocabularyEnhancement": True,
        "enableAccuracyMonitoring": True,
        "multiPassCount": 2,
    },
}


def resolve_processing_options(mode: str, overrides: dict[str, Any] | None = None) -> dict[str, Any]:
    """Merge client overrides onto the defaults for ``mode``.

    Raises:
        UploadValidationError: If the mode is unknown
    """
    if mode not in MODE_DEFAULTS:
        raise UploadValidationError(f"Invalid transcription mode: {mode}")

    options = dict(MODE_DEFAULTS[mode])
    if overrides:
        options.update({key: value for key, value in overrides.items() if value is not None})
    return options
