"""Site profile loader — read a locator profile JSON file from disk.

The packaged ``note_com.json`` is used unless ``site.locators_path`` points
at an override, so selector drift can be patched without a release.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from noet.site.locators import SiteProfile

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_PATH = Path(__file__).resolve().parent / "note_com.json"


def load_profile(path: Path | str) -> SiteProfile:
    """Load a single site profile from a JSON file.

    Args:
        path: Path to the JSON file.

    Returns:
        A validated ``SiteProfile`` instance.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        pydantic.ValidationError: If the data does not conform to the schema.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    profile = SiteProfile(**data)
    logger.info("Loaded site profile %s v%s from %s", profile.name, profile.version, Path(path).name)
    return profile


def load_site_profile(override_path: str = "") -> SiteProfile:
    """Load the override profile when configured, else the packaged default."""
    if override_path:
        return load_profile(override_path)
    return load_profile(DEFAULT_PROFILE_PATH)
