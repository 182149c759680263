# =============================================================================
# Text Extraction
# =============================================================================

DEFAULT_OCR_LANGUAGE = "deu"
DEFAULT_PAGE_RANGE = "0-"  # all pages
TEXT_CONVERSION_TIMEOUT_SECONDS = 60.0

# Local fallback scan
FALLBACK_SCAN_MAX_BYTES = 100_000
FALLBACK_MIN_RUN_LENGTH = 4  # runs of 3 chars or fewer are dropped
FALLBACK_MAX_TEXT_CHARS = 50_000


# =============================================================================
# Structured Extraction
# =============================================================================

DEFAULT_COMPLETION_MODEL = "claude-3-5-sonnet-20241022"
MIN_TEXT_LENGTH = 50
MAX_TEXT_LENGTH = 10_000
TRUNCATION_MARKER = "\n\n[TEXT GEKÜRZT]"

EXTRACTION_MAX_TOKENS = 2000
EXTRACTION_TEMPERATURE = 0.1
EXTRACTION_TIMEOUT_SECONDS = 30.0
DEFAULT_CONFIDENCE_SCORE = 50


# =============================================================================
# Field Resolution
# =============================================================================

FIELD_RESOLUTION_MAX_TOKENS = 100
FIELD_RESOLUTION_TEMPERATURE = 0.0
FIELD_RESOLUTION_TEXT_CHARS = 5000
FIELD_RESOLUTION_MAX_CONCURRENCY = 4
FIELD_RESOLUTION_STAGGER_SECONDS = 0.1
FIELD_RESOLUTION_TIMEOUT_SECONDS = 15.0
NULL_SENTINEL = "null"

CHOICE_EXACT_CONFIDENCE = 95
CHOICE_INEXACT_CONFIDENCE = 70


# =============================================================================
# Retry Configuration
# =============================================================================

MAX_RETRIES = 2
INITIAL_BACKOFF_SECONDS = 1.0
MAX_BACKOFF_SECONDS = 10.0
BACKOFF_MULTIPLIER = 2


# =============================================================================
# Reference Mapping
# =============================================================================

EXACT_MATCH_CONFIDENCE = 100
FUZZY_MIN_SIMILARITY = 80.0  # exclusive lower bound, percent
BRAND_ALIAS_CONFIDENCE = 85
FUEL_ALIAS_CONFIDENCE = 90
TRANSMISSION_ALIAS_CONFIDENCE = 88
MAPPING_ACCEPT_MIN_CONFIDENCE = 20


# =============================================================================
# Plausibility Limits
# =============================================================================

MIN_PLAUSIBLE_YEAR = 1990
MAX_PLAUSIBLE_MILEAGE_KM = 500_000
MAX_PLAUSIBLE_POWER_PS = 2000
MAX_PLAUSIBLE_POWER_KW = 1500
KW_TO_PS_FACTOR = 1.36
KW_PS_TOLERANCE = 5
MONTHLY_RATE_RANGE = (50, 5000)
DURATION_MONTHS_RANGE = (6, 96)
ANNUAL_MILEAGE_RANGE = (5000, 100_000)
PURCHASE_PRICE_RANGE = (500, 2_000_000)
LOW_CONFIDENCE_THRESHOLD = 30
# Ceiling for results built from the approximate local byte scan
APPROXIMATE_TEXT_MAX_CONFIDENCE = 25


# =============================================================================
# Error Handling
# =============================================================================

ERROR_BODY_MAX_CHARS = 200  # Maximum chars from error response bodies
RESPONSE_PREVIEW_CHARS = 500
