"""
Selector catalogue for the Google Flights search page.

Every selector, keyword and wait used by the pipeline lives here so a page
redesign is fixed in one place.
"""
from dataclasses import dataclass
from typing import Optional, Tuple

CLICKABLE = 'button, [role="button"], a[href], [tabindex="0"]'
TEXT_INPUTS = 'input, [role="combobox"], [contenteditable="true"]'


@dataclass(frozen=True)
class LocatorTarget:
    name: str
    selectors: Tuple[str, ...] = ()
    keywords: Tuple[str, ...] = ()
    candidates: str = CLICKABLE
    region: Optional[str] = None  # "bottom-right" | "top-left"
    ordinal: Optional[int] = None
    keyboard_fallback: bool = False
    fallback_key: str = "Enter"


BASE_URL = "https://www.google.com/travel/flights"

# -----------------------------------------------------------------------------
# Form fields
# -----------------------------------------------------------------------------

ORIGIN_INPUT = LocatorTarget(
    name="origin input",
    selectors=(
        '[data-placeholder="Where from?"]',
        'input[placeholder="Where from?"]',
        'input[aria-label="Where from?"]',
        'input[aria-label^="Where from?"]',
        'input[aria-label*="Origin"]',
        '[role="combobox"][aria-label*="Origin"]',
    ),
    keywords=("where from",),
    candidates=TEXT_INPUTS,
    ordinal=0,
)

DESTINATION_INPUT = LocatorTarget(
    name="destination input",
    selectors=(
        '[data-placeholder="Where to?"]',
        'input[placeholder="Where to?"]',
        'input[aria-label="Where to?"]',
        'input[aria-label^="Where to?"]',
        'input[aria-label*="Destination"]',
        '[role="combobox"][aria-label*="Destination"]',
    ),
    keywords=("where to",),
    candidates=TEXT_INPUTS,
    ordinal=1,
)

SUGGESTION_LIST = '[role="listbox"], [role="option"], .suggestions-list'
FIRST_SUGGESTION = '[role="listbox"] [role="option"], [role="option"]'
SUGGESTION_WAIT_MS = 5000

# -----------------------------------------------------------------------------
# Dates
# -----------------------------------------------------------------------------

DEPARTURE_INPUT = LocatorTarget(
    name="departure date input",
    selectors=(
        'input[aria-label*="Departure"]',
        'input[placeholder*="Departure"]',
        '[role="button"][aria-label*="Departure"]',
    ),
    keywords=("departure",),
    candidates=TEXT_INPUTS,
)

RETURN_INPUT = LocatorTarget(
    name="return date input",
    selectors=(
        'input[aria-label*="Return"]',
        'input[placeholder*="Return"]',
    ),
    keywords=("return",),
    candidates=TEXT_INPUTS,
)

CALENDAR_DIALOG = '[role="dialog"], [role="grid"]'
MONTH_SECTION = 'div[role="rowgroup"]'
MONTH_HEADING = 'div[role="heading"]'
DAY_BUTTON = 'div[role="button"]'
NEXT_MONTH = 'div[aria-label="Next month"], button[aria-label="Next month"]'
PREVIOUS_MONTH = 'div[aria-label="Previous month"], button[aria-label="Previous month"]'
MAX_MONTH_CLICKS = 24

DONE_BUTTON = LocatorTarget(
    name="done button",
    selectors=(
        'button[aria-label*="Done"]',
        '[role="dialog"] button[jsname="McfNlf"]',
    ),
    keywords=("done",),
)

# -----------------------------------------------------------------------------
# Search
# -----------------------------------------------------------------------------

SEARCH_BUTTON = LocatorTarget(
    name="search button",
    selectors=(
        'button[jsname="vLv7Lb"]',
        'button[jsname="c6xFrd"]',
        'button[jscontroller="soHxf"]',
        'button[aria-label*="Search"]',
        '[role="button"][aria-label*="Search"]',
        '[jsaction*="search"]',
        '[data-flt-ve="search_button"]',
    ),
    keywords=("search",),
    region="bottom-right",
    keyboard_fallback=True,
)

RESULTS_READY = '[role="main"] li, ul[role="list"] li'
RESULTS_URL_PATTERN = r"/travel/flights/search|[?&]tfs="
RESULTS_WAIT_MS = 30000
NAVIGATION_TIMEOUT_MS = 60000

# -----------------------------------------------------------------------------
# Currency
# -----------------------------------------------------------------------------

CURRENCY_BUTTON = LocatorTarget(
    name="currency button",
    selectors=(
        'button[aria-label*="Currency"]',
        '[role="button"][aria-label*="Currency"]',
    ),
    keywords=("currency",),
)

CURRENCY_CONFIRM = LocatorTarget(
    name="currency confirm button",
    selectors=('[role="dialog"] button[aria-label="OK"]',),
    keywords=("ok", "done"),
)

# -----------------------------------------------------------------------------
# Alliance filter
# -----------------------------------------------------------------------------

AIRLINES_FILTER_BUTTON = LocatorTarget(
    name="airlines filter",
    selectors=(
        'div[jscontroller="aDULAf"][data-chiptype="1"][data-filtertype="6"] button',
        'button[aria-label="Airlines, Not selected"]',
        'button[aria-label^="Airlines"]',
        '[role="button"][aria-label^="Airlines"]',
    ),
    keywords=("airlines",),
)

FILTER_PANEL_CLOSE = LocatorTarget(
    name="filter panel close",
    selectors=(
        '[role="dialog"] button[aria-label*="Close"]',
        '[role="dialog"] button[aria-label*="Done"]',
    ),
    keywords=("close dialog", "done"),
)

ALLIANCE_SECTION_HEADER = 'text="Alliances"'
ALLIANCE_CHECKBOXES = '[role="dialog"] input[type="checkbox"], [role="dialog"] [role="checkbox"]'
LOADING_INDICATOR = '[role="progressbar"]'
ACTIVE_FILTER_REGION = '[aria-label*="filter" i], [data-filtertype], [role="toolbar"]'

# -----------------------------------------------------------------------------
# Blocking pages
# -----------------------------------------------------------------------------

CAPTCHA_SELECTORS = (
    "iframe[src*='recaptcha']",
    "#captcha",
    ".g-recaptcha",
    "[data-callback='onCaptcha']",
)

BLOCKED_PATTERNS = (
    "unusual traffic",
    "automated requests",
    "verify you're not a robot",
    "access denied",
)

NO_RESULTS_PATTERNS = (
    "no flights found",
    "no matching flights",
    "try different dates",
    "we couldn't find",
)
