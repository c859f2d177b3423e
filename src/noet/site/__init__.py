"""Site profiles — page-structure knowledge kept as versioned JSON data.

* ``locators`` — ``SiteProfile``, ``Target``, ``Locator`` models.
* ``loader`` — load the packaged profile or an override file.
"""

from noet.site.loader import DEFAULT_PROFILE_PATH, load_profile, load_site_profile
from noet.site.locators import Locator, LocatorStrategy, SiteProfile, Target

__all__ = [
    "DEFAULT_PROFILE_PATH",
    "Locator",
    "LocatorStrategy",
    "SiteProfile",
    "Target",
    "load_profile",
    "load_site_profile",
]
