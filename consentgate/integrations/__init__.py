"""Consent signals for third-party tags and server-side integration points."""

from .google_consent_mode import EEA_REGIONS, consent_defaults, region_defaults, render_defaults_script
from .hooks import ConsentQueries
from .signals import Signal, consent_signals, datalayer_event, google_consent_update, meta_pixel_action

__all__ = [
    "ConsentQueries",
    "EEA_REGIONS",
    "Signal",
    "consent_defaults",
    "consent_signals",
    "datalayer_event",
    "google_consent_update",
    "meta_pixel_action",
    "region_defaults",
    "render_defaults_script",
]
