"""
Result-page extraction for Google Flights.

Two tactics, tried in order:
1. Structural: a page script snapshots every result row under its section
   header; the rows are parsed here field by field, each field with its own
   fallback chain.
2. Plain text: scan the visible body text for currency amounts. Yields bare
   prices only, no flight details.

Everything below the page script is plain Python over strings and dicts, so
the parsing rules are testable without a browser.
"""

import re
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, List, Dict, Any, Tuple

from playwright.async_api import Page, Error as PlaywrightError

from flightprice.models import FlightOption

logger = logging.getLogger(__name__)


# =============================================================================
# Validation Rules
# =============================================================================

@dataclass
class ValidationResult:
    """Result of validating extracted data."""
    is_valid: bool
    value: Any
    reason: str = ""


class PriceValidator:
    """Sanity bounds for prices pulled out of free page text."""

    MIN_PRICE = 20
    MAX_PRICE = 50000

    @classmethod
    def validate(cls, price: int) -> ValidationResult:
        if price < cls.MIN_PRICE:
            return ValidationResult(False, price, f"Price {price} below minimum {cls.MIN_PRICE}")
        if price > cls.MAX_PRICE:
            return ValidationResult(False, price, f"Price {price} above maximum {cls.MAX_PRICE}")
        return ValidationResult(True, price, "Price within expected range")


# =============================================================================
# Text Rules
# =============================================================================

NON_CARRIER_SUBSTRINGS = (
    "Nonstop", "Self transfer", "Separate tickets", "multiple airlines",
    "Missed connections", "Price unavailable", "Departure", "Unknown emissions",
    "Airport", "CO2", "emissions", "Avoids", "trees absorb", "+", "%",
    "Mon,", "Tue,", "Wed,", "Thu,", "Fri,", "Sat,", "Sun,",
)

NON_CARRIER_PATTERNS = [
    re.compile(r"\bstops?\b", re.I),
    re.compile(r"\d+\s*hr\b"),
    re.compile(r"\d+\s*min\b"),
    re.compile(r"^[A-Z]{3}\b"),       # airport codes
    re.compile(r"\d{4}"),             # years
    re.compile(r"\d{1,2}:\d{2}"),     # times
    re.compile(r"\bkg\b"),
]


def is_non_carrier_text(text: str) -> bool:
    """True for stop, duration, date, airport, emissions and booking-caveat strings."""
    if not text or not text.strip():
        return True
    if any(marker in text for marker in NON_CARRIER_SUBSTRINGS):
        return True
    return any(pattern.search(text) for pattern in NON_CARRIER_PATTERNS)


CARRIER_SUFFIXES = {"air", "airlines", "airline", "airways", "lines", "aviation"}
CAMEL_BOUNDARY = re.compile(r"(?<=[a-z])(?=[A-Z])")


def _regroup_by_suffix(tokens: List[str]) -> List[str]:
    names, current = [], []
    for token in tokens:
        current.append(token)
        if token.lower() in CARRIER_SUFFIXES and len(current) > 1:
            names.append(" ".join(current))
            current = []
    if current:
        names.append(" ".join(current))
    return names


def split_carrier_names(text: str) -> List[str]:
    """
    Split a run of carrier names that the page rendered without separators.

    "Korean Air, Delta"        -> ["Korean Air", "Delta"]
    "China AirlinesKorean Air" -> ["China Airlines", "Korean Air"]
    "ChinaAirlinesKoreanAir"   -> ["China Airlines", "Korean Air"]
    """
    if not text or not text.strip():
        return []
    text = text.strip()

    if "," in text:
        return [part.strip() for part in text.split(",") if part.strip()]

    pieces = [p.strip() for p in CAMEL_BOUNDARY.split(text) if p.strip()]
    if len(pieces) == 1:
        return pieces

    if not re.search(r"\s", text):
        # Fully glued: suffix words close a name, otherwise keep it whole
        names = _regroup_by_suffix(pieces)
        return names if len(names) > 1 else [text]

    return pieces


def _dedupe(values: List[str]) -> List[str]:
    seen, result = set(), []
    for value in values:
        key = value.lower()
        if key not in seen:
            seen.add(key)
            result.append(value)
    return result


PRICE_LABEL_PATTERN = re.compile(r"([\d,]+)\s+(?:US\s+)?dollars", re.I)
PRICE_TEXT_PATTERN = re.compile(r"^(?:US)?\$\s?([\d,]+)$")
PRICE_ANYWHERE_PATTERN = re.compile(r"(?:US)?\$\s?(\d{1,3}(?:,\d{3})+|\d+)(?!\d)")
TIME_PATTERN = re.compile(r"^\d{1,2}:\d{2}\s*(?:AM|PM)(?:\+\d)?$", re.I)
TIME_IN_TEXT = re.compile(r"\d{1,2}:\d{2}\s*(?:AM|PM)", re.I)
DURATION_PATTERN = re.compile(r"^(\d+)\s*hr(?:\s*(\d+)\s*min)?$")
STOPS_PATTERN = re.compile(r"^(\d+)\s+stops?\b", re.I)
AIRPORT_CODE_PATTERN = re.compile(r"^[A-Z]{3}$")

# Three-letter carrier brands that look like airport codes
NOT_AIRPORT_CODES = {"JAL", "ANA", "KAL", "AAL", "DAL"}


def _to_int(raw: str) -> Optional[int]:
    try:
        return int(raw.replace(",", ""))
    except ValueError:
        return None


def parse_price_label(label: str) -> Optional[int]:
    """'1234 US dollars' -> 1234."""
    match = PRICE_LABEL_PATTERN.search(label or "")
    return _to_int(match.group(1)) if match else None


def parse_price_text(text: str) -> Optional[int]:
    """'$1,234' -> 1234 (the whole string must be the amount)."""
    match = PRICE_TEXT_PATTERN.match((text or "").strip())
    return _to_int(match.group(1)) if match else None


def parse_duration_minutes(text: str) -> Optional[int]:
    match = DURATION_PATTERN.match((text or "").strip())
    if not match:
        return None
    return int(match.group(1)) * 60 + int(match.group(2) or 0)


def parse_stops(text: str) -> Optional[int]:
    text = (text or "").strip()
    if text.lower().startswith("nonstop"):
        return 0
    match = STOPS_PATTERN.match(text)
    return int(match.group(1)) if match else None


# =============================================================================
# Row Parsing
# =============================================================================

TOP_SECTION_MARKERS = (
    "top departing flights",
    "best departing flights",
    "top flights",
    "best flights",
)


def is_top_section(header: str) -> bool:
    header = (header or "").lower()
    return any(marker in header for marker in TOP_SECTION_MARKERS)


@dataclass
class RowSnapshot:
    """Serializable view of one result row, as captured by the page script."""
    texts: List[str] = field(default_factory=list)
    aria_labels: List[str] = field(default_factory=list)
    img_alts: List[str] = field(default_factory=list)
    full_text: str = ""
    timed_row_texts: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RowSnapshot":
        return cls(
            texts=[t for t in data.get("texts", []) if t],
            aria_labels=[a for a in data.get("aria_labels", []) if a],
            img_alts=[a for a in data.get("img_alts", []) if a],
            full_text=data.get("full_text", "") or "",
            timed_row_texts=[t for t in data.get("timed_row_texts", []) if t],
        )


class RowParser:
    """Parse a RowSnapshot into a FlightOption. Every field falls back independently."""

    CARRIER_ARIA_PATTERNS = [
        re.compile(r"flights? with ([^.]+?)(?:\.|$)", re.I),
        re.compile(r"operated by ([^.]+?)(?:\.|$)", re.I),
    ]
    CARRIER_KEYWORDS = re.compile(r"\b(?:Air|Airlines?|Airways|Lines)\b|Air[A-Z]|Airlines|Airways")
    DEPARTURE_ARIA = re.compile(r"(?:depart\w*|leaves)[^0-9]*(\d{1,2}:\d{2}\s*(?:AM|PM))", re.I)
    ARRIVAL_ARIA = re.compile(r"arriv\w*[^0-9]*(\d{1,2}:\d{2}\s*(?:AM|PM))", re.I)
    LEAVES_AIRPORT = re.compile(r"(?i:leaves)\s+.*?\b([A-Z]{3})\b", re.S)
    ARRIVES_AIRPORT = re.compile(r"(?i:arrives\s+at)\s+.*?\b([A-Z]{3})\b", re.S)
    CAUTIONS = ("Self transfer", "Separate tickets", "Multiple airlines")

    @classmethod
    def parse(cls, row: RowSnapshot, is_top: bool) -> Optional[FlightOption]:
        price = cls._price(row)
        if price is None:
            return None
        departure, arrival = cls._times(row)
        duration, duration_minutes = cls._duration(row)
        origin_code, destination_code = cls._airports(row)
        return FlightOption(
            price=Decimal(price),
            airlines=cls._airlines(row),
            departure_time=departure,
            arrival_time=arrival,
            duration=duration,
            duration_minutes=duration_minutes,
            stops=cls._stops(row),
            origin_code=origin_code,
            destination_code=destination_code,
            is_top_flight=is_top,
            booking_caution=cls._booking_caution(row),
        )

    @classmethod
    def _price(cls, row: RowSnapshot) -> Optional[int]:
        for label in row.aria_labels:
            price = parse_price_label(label)
            if price:
                return price
        for text in row.texts:
            price = parse_price_text(text)
            if price:
                return price
        match = PRICE_ANYWHERE_PATTERN.search(row.full_text)
        if match:
            return _to_int(match.group(1))
        return None

    @classmethod
    def _airlines(cls, row: RowSnapshot) -> List[str]:
        names: List[str] = []

        for alt in row.img_alts:
            if not is_non_carrier_text(alt):
                names.extend(split_carrier_names(alt))

        for label in row.aria_labels:
            for pattern in cls.CARRIER_ARIA_PATTERNS:
                match = pattern.search(label)
                if match and not is_non_carrier_text(match.group(1)):
                    names.extend(split_carrier_names(match.group(1)))

        for text in row.texts:
            if cls.CARRIER_KEYWORDS.search(text) and not is_non_carrier_text(text):
                names.extend(split_carrier_names(text))

        return _dedupe([n for n in names if not is_non_carrier_text(n)])

    @classmethod
    def _times(cls, row: RowSnapshot) -> Tuple[Optional[str], Optional[str]]:
        departure = arrival = None
        for label in row.aria_labels:
            if departure is None:
                match = cls.DEPARTURE_ARIA.search(label)
                if match:
                    departure = match.group(1)
            if arrival is None:
                match = cls.ARRIVAL_ARIA.search(label)
                if match:
                    arrival = match.group(1)
        if departure and arrival:
            return departure, arrival

        timed = [t for t in row.timed_row_texts if TIME_PATTERN.match(t)]
        if len(timed) >= 2:
            return departure or timed[0], arrival or timed[1]

        unique = _dedupe([t for t in row.texts if TIME_PATTERN.match(t)])
        if len(unique) >= 2:
            return departure or unique[0], arrival or unique[-1]
        if len(unique) == 1:
            return departure or unique[0], arrival
        return departure, arrival

    @classmethod
    def _duration(cls, row: RowSnapshot) -> Tuple[Optional[str], Optional[int]]:
        for text in row.texts:
            minutes = parse_duration_minutes(text)
            if minutes is not None:
                return text.strip(), minutes
        for label in row.aria_labels:
            match = re.search(r"(\d+)\s*hr(?:\s*(\d+)\s*min)?", label)
            if match and "duration" in label.lower():
                text = match.group(0)
                return text, parse_duration_minutes(text)
        return None, None

    @classmethod
    def _stops(cls, row: RowSnapshot) -> int:
        for text in row.texts:
            stops = parse_stops(text)
            if stops is not None:
                return stops
        for label in row.aria_labels:
            if "nonstop" in label.lower():
                return 0
            match = re.search(r"(\d+)\s+stops?\b", label, re.I)
            if match:
                return int(match.group(1))
        return -1

    @classmethod
    def _airports(cls, row: RowSnapshot) -> Tuple[Optional[str], Optional[str]]:
        origin = destination = None
        for label in row.aria_labels:
            if origin is None:
                match = cls.LEAVES_AIRPORT.search(label)
                if match and match.group(1) not in NOT_AIRPORT_CODES:
                    origin = match.group(1)
            if destination is None:
                match = cls.ARRIVES_AIRPORT.search(label)
                if match and match.group(1) not in NOT_AIRPORT_CODES:
                    destination = match.group(1)
        if origin and destination:
            return origin, destination

        codes = [
            t.strip() for t in row.texts
            if AIRPORT_CODE_PATTERN.match(t.strip()) and t.strip() not in NOT_AIRPORT_CODES
        ]
        if len(codes) >= 2:
            return origin or codes[0], destination or codes[-1]
        return origin, destination

    @classmethod
    def _booking_caution(cls, row: RowSnapshot) -> Optional[str]:
        for caution in cls.CAUTIONS:
            if caution.lower() in row.full_text.lower():
                return caution
        return None


def dedupe_options(options: List[FlightOption]) -> List[FlightOption]:
    seen = set()
    unique = []
    for option in options:
        if option.identity in seen:
            continue
        seen.add(option.identity)
        unique.append(option)
    return unique


def parse_sections(sections: List[Dict[str, Any]]) -> List[FlightOption]:
    """Turn the page script's section/row snapshots into flight options."""
    options = []
    for section in sections:
        top = is_top_section(section.get("header", ""))
        for raw_row in section.get("rows", []):
            option = RowParser.parse(RowSnapshot.from_dict(raw_row), top)
            if option:
                options.append(option)
    return dedupe_options(options)


def extract_prices_from_text(text: str) -> List[Decimal]:
    """Currency amounts in free text, bounded by PriceValidator."""
    prices = []
    candidates = [m.group(1) for m in PRICE_ANYWHERE_PATTERN.finditer(text or "")]
    candidates += [m.group(1) for m in PRICE_LABEL_PATTERN.finditer(text or "")]
    for raw in candidates:
        value = _to_int(raw)
        if value is not None and PriceValidator.validate(value).is_valid:
            prices.append(Decimal(value))
    return prices


# =============================================================================
# Page-level Extraction
# =============================================================================

ROW_SNAPSHOT_SCRIPT = """
() => {
  const clean = (t) => (t || "").replace(/\\s+/g, " ").trim();
  const durationRe = /^\\d+\\s*hr/;
  const timeRe = /^\\d{1,2}:\\d{2}\\s*(AM|PM)/i;

  const isRow = (li) => {
    const text = li.textContent || "";
    const hasPrice = li.querySelector('span[data-gs], [aria-label*="US dollars"]') !== null || text.includes("$");
    const hasDuration = Array.from(li.querySelectorAll("div, span")).some(el => durationRe.test(clean(el.textContent)));
    return hasPrice && hasDuration && !text.includes("View more flights");
  };

  const snapshot = (li) => {
    const texts = [];
    li.querySelectorAll("div, span").forEach(el => {
      if (el.children.length === 0) {
        const t = clean(el.textContent);
        if (t) texts.push(t);
      }
    });
    const timedRow = li.querySelector('[role="row"]');
    const timedRowTexts = timedRow
      ? Array.from(timedRow.querySelectorAll("span, div")).map(el => clean(el.textContent)).filter(t => timeRe.test(t))
      : [];
    return {
      texts,
      aria_labels: Array.from(li.querySelectorAll("[aria-label]")).map(el => el.getAttribute("aria-label")),
      img_alts: Array.from(li.querySelectorAll("img[alt]")).map(el => el.getAttribute("alt")),
      full_text: clean(li.innerText || li.textContent),
      timed_row_texts: timedRowTexts,
    };
  };

  const seen = new Set();
  const sections = [];
  document.querySelectorAll("h3, h2").forEach(h => {
    const container = h.closest('[role="region"]') || h.parentElement;
    if (!container) return;
    const rows = Array.from(container.querySelectorAll("li")).filter(li => !seen.has(li) && isRow(li));
    rows.forEach(li => seen.add(li));
    if (rows.length) sections.push({ header: clean(h.textContent), rows: rows.map(snapshot) });
  });

  const loose = Array.from(document.querySelectorAll("li")).filter(li => !seen.has(li) && isRow(li));
  if (loose.length) sections.push({ header: "", rows: loose.map(snapshot) });
  return sections;
}
"""


@dataclass
class ExtractionOutcome:
    """Which tactic produced the data, plus what it produced."""
    tactic: str  # "structural" | "plain_text" | "none"
    options: List[FlightOption] = field(default_factory=list)
    prices: List[Decimal] = field(default_factory=list)

    @property
    def has_data(self) -> bool:
        return bool(self.options or self.prices)

    @property
    def top_options(self) -> List[FlightOption]:
        return [o for o in self.options if o.is_top_flight]


class PriceExtractionHeuristics:
    """Structural extraction first, plain-text scan as the fallback."""

    @classmethod
    async def extract_structural(cls, page: Page) -> List[FlightOption]:
        try:
            sections = await page.evaluate(ROW_SNAPSHOT_SCRIPT)
        except PlaywrightError as e:
            logger.warning(f"Row snapshot script failed: {e}")
            return []
        options = parse_sections(sections or [])
        top = sum(1 for o in options if o.is_top_flight)
        logger.info(f"Structural extraction: {len(options)} options ({top} top flights)")
        return options

    @classmethod
    async def extract_plain_text(cls, page: Page) -> List[Decimal]:
        try:
            text = await page.inner_text("body")
        except PlaywrightError as e:
            logger.warning(f"Could not read page text: {e}")
            return []
        prices = extract_prices_from_text(text)
        logger.info(f"Plain-text extraction: {len(prices)} prices")
        return prices

    @classmethod
    async def extract(cls, page: Page) -> ExtractionOutcome:
        options = await cls.extract_structural(page)
        if options:
            return ExtractionOutcome(tactic="structural", options=options)

        logger.warning("Structural extraction found nothing, falling back to page text")
        prices = await cls.extract_plain_text(page)
        if prices:
            return ExtractionOutcome(tactic="plain_text", prices=prices)

        logger.warning("No prices extracted by any tactic")
        return ExtractionOutcome(tactic="none")
