"""Cookie transport constants."""

CONSENT_COOKIE_NAME = "consentgate_consent"

# Seconds in a day / year, used for cookie expiry arithmetic
DAY_IN_SECONDS = 24 * 60 * 60
YEAR_IN_SECONDS = 365 * DAY_IN_SECONDS

# Name of the double-submit CSRF cookie and header guarding the save endpoint
CSRF_COOKIE_NAME = "consentgate_csrf"
CSRF_HEADER_NAME = "X-CSRF-Token"
