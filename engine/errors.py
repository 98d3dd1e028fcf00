# engine/errors.py
# ------------------------------------------------------------
# Load-time configuration errors.
#
# Parsing and scoring never raise on malformed report text.
# The only hard failures are caller-supplied configuration
# problems, detected when the catalog or the reference dataset
# is loaded:
#   - two biomarkers claiming the same normalised alias
#   - catalog / reference files with missing or mistyped fields
# ------------------------------------------------------------

from __future__ import annotations


class InvalidConfigurationError(ValueError):
    """Catalog or reference dataset cannot be used as supplied."""

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        if source:
            message = f"{source}: {message}"
        super().__init__(message)
