"""
Field recognizers and direct-answer heuristics.

Two registries live here:
1. RECOGNIZERS (name -> function): the generic scan. Run against every message
   for each unfilled field whose FieldDefinition names a recognizer.
2. KIND_HEURISTICS (FieldKind -> function): used only when the message is an
   answer to the field currently being asked, so it need not repeat keywords.

Every function takes the raw message and returns a normalized string value or
None. They are pure: no I/O, no hidden state. New fields are supported by
registering a function, never by editing a central branch.
"""
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, List, Optional, Tuple

from flows.specs import FieldKind

logger = logging.getLogger(__name__)

Recognizer = Callable[[str], Optional[str]]

RECOGNIZERS: Dict[str, Recognizer] = {}
KIND_HEURISTICS: Dict[FieldKind, Recognizer] = {}


def register_recognizer(name: str) -> Callable[[Recognizer], Recognizer]:
    """Register a generic recognizer under a name FieldDefinitions can reference."""
    def decorator(func: Recognizer) -> Recognizer:
        RECOGNIZERS[name] = func
        return func
    return decorator


def register_heuristic(kind: FieldKind) -> Callable[[Recognizer], Recognizer]:
    """Register the direct-answer heuristic for a field kind."""
    def decorator(func: Recognizer) -> Recognizer:
        KIND_HEURISTICS[kind] = func
        return func
    return decorator


def get_recognizer(name: str) -> Optional[Recognizer]:
    return RECOGNIZERS.get(name)


def get_heuristic(kind: FieldKind) -> Optional[Recognizer]:
    return KIND_HEURISTICS.get(kind)


def available_recognizers() -> List[str]:
    """Names of all registered generic recognizers, sorted."""
    return sorted(RECOGNIZERS)


# =============================================================================
# SHARED VOCABULARY
# =============================================================================

WORD_TO_NUM = {
    "zero": 0, "one": 1, "two": 2, "three": 3, "four": 4,
    "five": 5, "six": 6, "seven": 7, "eight": 8, "nine": 9,
    "ten": 10, "eleven": 11, "twelve": 12, "thirteen": 13, "fourteen": 14,
    "fifteen": 15, "sixteen": 16, "seventeen": 17, "eighteen": 18,
    "nineteen": 19, "twenty": 20,
}

# Longest first so "seventeen" wins over "seven"
_NUMBER_WORDS = "|".join(sorted(WORD_TO_NUM, key=len, reverse=True))
_NUM = rf"(?:\d{{1,2}}|{_NUMBER_WORDS})"

MONTH_NAMES = (
    "january", "february", "march", "april", "may", "june", "july",
    "august", "september", "october", "november", "december",
)
MONTH_ABBREVIATIONS = ("jan", "feb", "mar", "apr", "jun", "jul", "aug", "sept", "sep", "oct", "nov", "dec")
WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

CALENDAR_WORDS = frozenset(MONTH_NAMES + MONTH_ABBREVIATIONS + WEEKDAY_NAMES)


def parse_count(token: str) -> Optional[int]:
    """Parse a digit string or an English number word ("three")."""
    token = token.lower().strip()
    if token in WORD_TO_NUM:
        return WORD_TO_NUM[token]
    if token.isdigit():
        return int(token)
    return None


# =============================================================================
# LOCATIONS
# =============================================================================

LOCATION_MAX_TOKENS = 3
LOCATION_MAX_CAPITALIZED_TOKENS = 5
LOCATION_MAX_LENGTH = 50

_LOCATION_LEAD_IN = re.compile(
    r"^(?:(?:i|we)(?:'m|'re|\s+am|\s+are)?\s+)?"
    r"(?:(?:going|travell?ing|flying|heading|headed|leaving|departing|starting|"
    r"coming|based|living|live)\s+)?"
    r"(?:to|from|out\s+of|in)\s+",
    re.IGNORECASE,
)
# Any letter, including accented ones ("Zürich", "São Paulo")
_PLACE_TEXT = r"[^\W\d_](?:[^\W\d_]|[\s,.'-])*"
_LOCATION_CHARS = re.compile(rf"^{_PLACE_TEXT}$")

NON_PLACE_WORDS = frozenset({
    "a", "an", "my", "our", "some", "any", "somewhere", "anywhere", "everywhere",
    "there", "here", "it", "that", "this", "not", "no", "none", "nope", "sure",
    "idk", "dunno", "maybe", "be", "go", "get", "have", "see", "do", "stay",
    "spend", "relax", "need", "take", "book", "plan", "make", "try", "bring",
    "work", "home", "school", "scratch", "us", "you", "me", "them", "him", "her",
    "i", "i'm", "we", "we're", "just", "actually", "well", "yes", "yeah",
    "trip", "travel", "vacation", "holiday", "holidays", "flight", "flights",
    "planning", "thinking", "want", "like", "love", "the",
})

# A location capture ends at the first of these
PLACE_STOP_WORDS = frozenset({
    "from", "in", "on", "for", "with", "next", "this", "and", "by", "around",
    "during", "at", "to", "until", "between", "because", "but", "so", "since",
    "before", "after", "i", "we", "my", "our", "me", "it", "soon", "later",
    "tomorrow", "today", "now", "sometime", "please", "maybe", "probably",
    "too", "also", "then", "or", "via", "is", "are", "was", "will",
    "would", "without", "early", "late", "mid", "end", "the", "a", "an",
}) | CALENDAR_WORDS

_LEADING_TRIP_VERBS = frozenset({"visit", "see", "explore"})


def clean_place(text: str) -> Optional[str]:
    """
    Accept a short string that looks like a place name.

    Strips lead-ins ("I'm going to", "from"), rejects questions, calendar words
    and common non-place words, and limits the token count. All-lowercase
    answers are title-cased ("new york" -> "New York").
    """
    if "?" in text:
        return None

    candidate = _LOCATION_LEAD_IN.sub("", text.strip(), count=1)
    candidate = candidate.strip(" \t,.!;:-")
    if not candidate or len(candidate) >= LOCATION_MAX_LENGTH:
        return None
    if not _LOCATION_CHARS.match(candidate):
        return None

    tokens = candidate.replace(",", " ").split()
    if not tokens:
        return None
    lowered = [t.lower().strip(".'-") for t in tokens]
    if lowered[0] in NON_PLACE_WORDS:
        return None
    if any(t in CALENDAR_WORDS for t in lowered):
        return None

    all_capitalized = all(t[0].isupper() for t in tokens)
    if len(tokens) > LOCATION_MAX_TOKENS:
        if not (all_capitalized and len(tokens) <= LOCATION_MAX_CAPITALIZED_TOKENS):
            return None

    candidate = " ".join(candidate.split())
    if candidate.islower():
        candidate = candidate.title()
    return candidate


def _cut_at_stop_words(capture: str) -> str:
    kept = []
    words = capture.split()
    # "the Bahamas" keeps the name; "the 10th" ends the capture
    if len(words) > 1 and words[0].lower() == "the" and words[1][0].isupper():
        words = words[1:]
    for raw in words:
        word = raw.lower().strip(",.!;:'")
        if word in PLACE_STOP_WORDS:
            break
        kept.append(raw)
        # Sentence punctuation ends the place name
        if raw.endswith((".", "!", ";", ":")) and not re.match(r"^[A-Z][a-z]?\.$", raw):
            break
    while kept and kept[0].lower() in _LEADING_TRIP_VERBS:
        kept.pop(0)
    return " ".join(kept)


_DESTINATION_PATTERN = re.compile(
    r"(?=\b(?:going\s+to|go\s+to|travell?(?:ing)?\s+to|visit(?:ing)?|destination(?:\s+is)?|"
    r"trip\s+to|fly(?:ing)?\s+to|head(?:ing|ed)?\s+to|holiday\s+in|vacation\s+in)"
    rf"\s+(?P<place>{_PLACE_TEXT}))",
    re.IGNORECASE,
)

_DEPARTURE_PATTERN = re.compile(
    r"(?=\b(?:leaving\s+from|starting\s+from|departing\s+from|flying\s+out\s+of|"
    r"flying\s+from|coming\s+from|based\s+in|live\s+in|living\s+in|from)"
    rf"\s+(?P<place>{_PLACE_TEXT}))",
    re.IGNORECASE,
)


def _scan_place(pattern: "re.Pattern[str]", message: str) -> Optional[str]:
    # Lookahead patterns give overlapping matches; the first valid place wins
    for match in pattern.finditer(message):
        place = clean_place(_cut_at_stop_words(match.group("place")))
        if place:
            return place
    return None


@register_recognizer("destination")
def recognize_destination(message: str) -> Optional[str]:
    """'trip to Lisbon next month' -> 'Lisbon'."""
    return _scan_place(_DESTINATION_PATTERN, message)


@register_recognizer("departure")
def recognize_departure(message: str) -> Optional[str]:
    """'flying out of Boston' -> 'Boston'."""
    return _scan_place(_DEPARTURE_PATTERN, message)


@register_heuristic(FieldKind.LOCATION)
def answer_location(message: str) -> Optional[str]:
    """'Lisbon from London' answers with 'Lisbon'; the rest is left to the scan."""
    if "?" in message:
        return None
    stripped = _LOCATION_LEAD_IN.sub("", message.strip(), count=1)
    return clean_place(_cut_at_stop_words(stripped))


# =============================================================================
# TRAVELER COUNT
# =============================================================================

MIN_TRAVELERS = 1
MAX_TRAVELERS = 20

_FAMILY_OF = re.compile(rf"\bfamily\s+of\s+(?P<n>{_NUM})\b", re.IGNORECASE)
_PARTY_GROUP = re.compile(
    rf"\b(?P<n>{_NUM})\s+(?P<who>adults?|kids?|children|child|teens?|teenagers?|infants?|bab(?:y|ies)|seniors?)\b",
    re.IGNORECASE,
)
_COUNT_NOUN = re.compile(
    rf"\b(?P<n>{_NUM})\s*(?:people|persons?|travell?ers?|adults|guests|pax|of\s+us)\b",
    re.IGNORECASE,
)

_COMPANION_WORDS = (
    r"wife|husband|partner|girlfriend|boyfriend|fianc[eé]e?|spouse|friends?|kids?|"
    r"children|child|sons?|daughters?|mom|mum|dad|mother|father|parents|"
    r"brothers?|sisters?|siblings?|colleagues?|cousins?|grandparents"
)
_COMPANION = re.compile(
    rf"\b(?:(?:my|our)\s+(?:(?P<n1>{_NUM})\s+)?|(?P<n2>{_NUM})\s+)(?P<who>{_COMPANION_WORDS})\b",
    re.IGNORECASE,
)
_PLURAL_COMPANIONS = frozenset({
    "friends", "kids", "children", "sons", "daughters", "parents", "brothers",
    "sisters", "siblings", "colleagues", "cousins", "grandparents",
})
_TOGETHER_CUE = re.compile(r"\b(?:with|and|plus|me|us|we|i)\b|&", re.IGNORECASE)

_COUPLE = re.compile(
    r"\b(?:couple\b(?!\s+of\b)|(?:the\s+)?two\s+of\s+us|both\s+of\s+us|honeymoon)",
    re.IGNORECASE,
)
_SOLO = re.compile(
    r"\b(?:solo|alone|by\s+myself|on\s+my\s+own|just\s+me|only\s+me|just\s+myself)\b",
    re.IGNORECASE,
)
_LITERAL_COUNT = re.compile(rf"\b(?P<n>{_NUM})\b", re.IGNORECASE)


def _traveler_value(count: Optional[int]) -> Optional[str]:
    if count is None or not (MIN_TRAVELERS <= count <= MAX_TRAVELERS):
        return None
    return str(count)


def _party_total(message: str) -> Optional[int]:
    """'2 adults and 3 kids' -> 5. Only counts when an adult group is named."""
    groups = list(_PARTY_GROUP.finditer(message))
    if not any(g.group("who").lower().startswith("adult") for g in groups):
        return None
    total = 0
    for group in groups:
        total += parse_count(group.group("n")) or 0
    return total


def _companion_head_count(message: str, require_cue: bool = True) -> Optional[int]:
    """'me, my wife and our 3 kids' -> 5 (the speaker plus each companion)."""
    if require_cue and not _TOGETHER_CUE.search(message):
        return None
    companions = 0
    for match in _COMPANION.finditer(message):
        number = match.group("n1") or match.group("n2")
        if number:
            companions += parse_count(number) or 0
        elif match.group("who").lower() in _PLURAL_COMPANIONS:
            companions += 2
        else:
            companions += 1
    if companions == 0:
        return None
    return companions + 1


def resolve_travelers(message: str, allow_literal: bool = False) -> Optional[str]:
    """
    Resolve a traveler count from natural language.

    Order: "family of N", adult/child groups, count nouns ("4 people"),
    companion head-count, couple phrases, solo phrases and finally (only when
    allow_literal) the first bare number. Results outside 1..20 are rejected.
    """
    match = _FAMILY_OF.search(message)
    if match:
        return _traveler_value(parse_count(match.group("n")))

    party = _party_total(message)
    if party is not None:
        return _traveler_value(party)

    match = _COUNT_NOUN.search(message)
    if match:
        return _traveler_value(parse_count(match.group("n")))

    # A direct answer ("my wife") needs no "with"/"and" cue
    head_count = _companion_head_count(message, require_cue=not allow_literal)
    if head_count is not None:
        return _traveler_value(head_count)

    if _COUPLE.search(message):
        return "2"

    if _SOLO.search(message):
        return "1"

    if allow_literal:
        match = _LITERAL_COUNT.search(message)
        if match:
            return _traveler_value(parse_count(match.group("n")))

    return None


@register_recognizer("travelers")
def recognize_travelers(message: str) -> Optional[str]:
    return resolve_travelers(message, allow_literal=False)


@register_heuristic(FieldKind.COUNT)
def answer_count(message: str) -> Optional[str]:
    return resolve_travelers(message, allow_literal=True)


# =============================================================================
# BUDGET
# =============================================================================

# Smallest bare number the generic scan accepts as a budget next to "budget"
BARE_BUDGET_MINIMUM = 100

CURRENCY_SYMBOLS = {"$": "$", "€": "€", "£": "£", "¥": "¥", "₹": "₹"}
CURRENCY_CODES = {
    "usd": "$", "eur": "€", "gbp": "£", "jpy": "¥", "inr": "₹",
    "aud": "A$", "cad": "C$",
}
CURRENCY_WORDS = {
    "dollar": "$", "dollars": "$", "bucks": "$",
    "euro": "€", "euros": "€",
    "pound": "£", "pounds": "£", "quid": "£",
    "yen": "¥",
    "rupee": "₹", "rupees": "₹",
}

_AMOUNT = r"(?P<amount>\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)(?:\s*(?P<k>k)\b)?"
_CODES = "|".join(CURRENCY_CODES)
_WORDS = "|".join(sorted(CURRENCY_WORDS, key=len, reverse=True))

_PREFIXED_AMOUNT = re.compile(
    rf"(?P<cur>[$€£¥₹]|\b(?:{_CODES})\b)\s*{_AMOUNT}",
    re.IGNORECASE,
)
_SUFFIXED_AMOUNT = re.compile(
    rf"{_AMOUNT}\s*(?P<cur>[$€£¥₹]|\b(?:{_CODES}|{_WORDS})\b)",
    re.IGNORECASE,
)
_BARE_AMOUNT = re.compile(rf"\b{_AMOUNT}", re.IGNORECASE)
_BUDGET_WORD = re.compile(r"\bbudget\b", re.IGNORECASE)
_OPEN_BUDGET = re.compile(r"\b(?:flexible|no\s+limit|unlimited|no\s+budget)\b", re.IGNORECASE)


def format_amount(amount: str, thousands: bool = False) -> Optional[str]:
    """'2,000' -> '2000', '2.5' with k -> '2500', '3000.50' stays '3000.50'."""
    try:
        value = Decimal(amount.replace(",", ""))
    except InvalidOperation:
        return None
    if thousands:
        value *= 1000
    if value <= 0:
        return None
    if value == value.to_integral_value():
        return str(int(value))
    return format(value.quantize(Decimal("0.01")), "f")


def _currency_symbol(token: str) -> str:
    if token in CURRENCY_SYMBOLS:
        return CURRENCY_SYMBOLS[token]
    lowered = token.lower()
    return CURRENCY_CODES.get(lowered) or CURRENCY_WORDS.get(lowered, "")


def find_currency_amount(message: str) -> Optional[str]:
    """Amount with an adjacent currency marker, keeping the symbol ('€2000')."""
    candidates: List[Tuple[int, "re.Match[str]"]] = []
    for pattern in (_PREFIXED_AMOUNT, _SUFFIXED_AMOUNT):
        match = pattern.search(message)
        if match:
            candidates.append((match.start(), match))
    if not candidates:
        return None

    _, match = min(candidates, key=lambda c: c[0])
    amount = format_amount(match.group("amount"), bool(match.group("k")))
    if amount is None:
        return None
    return f"{_currency_symbol(match.group('cur'))}{amount}"


def find_bare_amount(message: str) -> Optional[str]:
    """Largest unmarked number in the message, as plain digits."""
    best: Optional[Tuple[Decimal, str]] = None
    for match in _BARE_AMOUNT.finditer(message):
        amount = format_amount(match.group("amount"), bool(match.group("k")))
        if amount is None:
            continue
        value = Decimal(amount)
        if best is None or value > best[0]:
            best = (value, amount)
    return best[1] if best else None


@register_recognizer("budget")
def recognize_budget(message: str) -> Optional[str]:
    """Currency-qualified amounts anywhere, or a bare amount next to 'budget'."""
    amount = find_currency_amount(message)
    if amount:
        return amount
    if _BUDGET_WORD.search(message):
        bare = find_bare_amount(message)
        if bare and Decimal(bare) >= BARE_BUDGET_MINIMUM:
            return bare
    return None


@register_heuristic(FieldKind.BUDGET)
def answer_budget(message: str) -> Optional[str]:
    amount = find_currency_amount(message) or find_bare_amount(message)
    if amount:
        return amount
    if _OPEN_BUDGET.search(message):
        return " ".join(message.split()).rstrip(".!")
    return None


# =============================================================================
# DATES
# =============================================================================

DATE_ANSWER_MAX_LENGTH = 60

_MONTH = (
    r"\b(?:january|february|march|april|may|june|july|august|september|october|"
    r"november|december|jan|feb|mar|apr|jun|jul|aug|sept|sep|oct|nov|dec)\b\.?"
)
_DAY = r"\d{1,2}(?:st|nd|rd|th)?"
_YEAR = r"\d{4}"
_MONTH_PHRASE = rf"(?:{_DAY}\s+(?:of\s+)?)?{_MONTH}(?:\s+{_DAY}\b)?(?:,?\s+{_YEAR}\b)?"
_RANGE_SEP = r"\s*(?:-|–|\bto\b|\buntil\b|\btill\b|\bthrough\b|\bthru\b)\s*"
_RANGE_SEP_PATTERN = re.compile(_RANGE_SEP, re.IGNORECASE)

_MONTH_DATE = re.compile(
    rf"(?:\b{_DAY}{_RANGE_SEP})?{_MONTH_PHRASE}"
    rf"(?:{_RANGE_SEP}(?:{_MONTH_PHRASE}|\b{_DAY}\b(?:,?\s+{_YEAR}\b)?))?",
    re.IGNORECASE,
)
_MAY_LEAD_IN = re.compile(
    r"\b(?:in|early|mid|late|end\s+of|beginning\s+of|start\s+of|during|this|next)\s*$",
    re.IGNORECASE,
)

_ISO_DATE = re.compile(r"\b(?P<y>\d{4})-(?P<m>\d{1,2})-(?P<d>\d{1,2})\b")
_SLASH_DATE = re.compile(r"\b(?P<d>\d{1,2})/(?P<m>\d{1,2})(?:/(?P<y>\d{4}|\d{2}))?\b")
_DASH_DATE_WITH_YEAR = re.compile(r"\b(?P<d>\d{1,2})-(?P<m>\d{1,2})-(?P<y>\d{4}|\d{2})\b")
_DASH_DATE = re.compile(r"\b(?P<d>\d{1,2})-(?P<m>\d{1,2})\b")

_RELATIVE_DATE = re.compile(
    r"\b(?:today|tomorrow|tonight|asap|flexible|anytime|any\s+time|weekend|"
    r"(?:next|this)\s+(?:week|month|year|weekend|summer|winter|spring|autumn|fall)|"
    r"summer|winter|spring|autumn|fall|christmas|xmas|easter|thanksgiving|"
    r"new\s+year'?s?|holidays?|in\s+\d+\s+(?:days|weeks|months))\b",
    re.IGNORECASE,
)


def _valid_day_month(match: "re.Match[str]") -> bool:
    return 1 <= int(match.group("d")) <= 31 and 1 <= int(match.group("m")) <= 12


def _numeric_date(message: str, pattern: "re.Pattern[str]") -> Optional[str]:
    for match in pattern.finditer(message):
        if not _valid_day_month(match):
            continue
        end = match.end()
        # Extend over a range such as "10/06 - 20/06"
        sep = _RANGE_SEP_PATTERN.match(message, end)
        if sep:
            second = pattern.match(message, sep.end())
            if second and _valid_day_month(second):
                end = second.end()
        return message[match.start():end]
    return None


def _month_date(message: str) -> Optional[str]:
    for match in _MONTH_DATE.finditer(message):
        phrase = match.group(0).strip()
        if phrase.lower().rstrip(".") == "may":
            if not _MAY_LEAD_IN.search(message[:match.start()]):
                continue
        return phrase
    return None


@register_recognizer("dates")
def recognize_dates(message: str) -> Optional[str]:
    """
    Month names ('15 March to 22 March', 'early June 2025') and numeric
    dates (D/M[/Y], D-M-Y, YYYY-MM-DD). Returns the matched phrase.
    """
    found = _month_date(message)
    if found:
        return found

    for pattern in (_SLASH_DATE, _DASH_DATE_WITH_YEAR):
        found = _numeric_date(message, pattern)
        if found:
            return found

    for match in _ISO_DATE.finditer(message):
        if _valid_day_month(match):
            return match.group(0)

    return None


@register_heuristic(FieldKind.DATES)
def answer_dates(message: str) -> Optional[str]:
    found = recognize_dates(message) or _numeric_date(message, _DASH_DATE)
    if found:
        return found
    text = " ".join(message.split()).rstrip(".!")
    if _RELATIVE_DATE.search(text) and len(text) <= DATE_ANSWER_MAX_LENGTH:
        return text
    return None


# =============================================================================
# KEYWORD FIELDS
# =============================================================================

ACCOMMODATION_TYPES = (
    ("hotel", r"hotels?"),
    ("resort", r"resorts?"),
    ("apartment", r"apartments?|flat|condo"),
    ("villa", r"villas?"),
    ("hostel", r"hostels?"),
    ("vacation rental", r"airbnb|vacation\s+rental|holiday\s+rental"),
    ("guesthouse", r"guest\s?houses?|b&b|bed\s+and\s+breakfast"),
    ("cabin", r"cabins?|lodges?|chalets?"),
    ("camping", r"camping|campsite|glamping"),
)

TRAVEL_PACES = (
    ("relaxed", r"relaxed|slow|laid[-\s]back|leisurely|chill"),
    ("balanced", r"balanced|moderate"),
    ("busy", r"busy|packed|fast[-\s]paced|action[-\s]packed|intense"),
)

AMENITIES = (
    ("wifi", r"wi-?fi|internet"),
    ("pool", r"pools?"),
    ("gym", r"gym|fitness"),
    ("spa", r"spa"),
    ("parking", r"parking"),
    ("breakfast", r"breakfast"),
    ("air conditioning", r"air\s?con(?:ditioning)?"),
    ("kitchen", r"kitchen(?:ette)?"),
    ("pet friendly", r"pet[-\s]friendly"),
    ("beach access", r"beach\s+access|beachfront"),
    ("laundry", r"laundry"),
)


def _compile_keywords(table: Tuple[Tuple[str, str], ...]) -> List[Tuple[str, "re.Pattern[str]"]]:
    return [(canonical, re.compile(rf"\b(?:{pattern})\b", re.IGNORECASE)) for canonical, pattern in table]


_ACCOMMODATION_KEYWORDS = _compile_keywords(ACCOMMODATION_TYPES)
_PACE_KEYWORDS = _compile_keywords(TRAVEL_PACES)
_AMENITY_KEYWORDS = _compile_keywords(AMENITIES)


def match_keywords(message: str, keywords: List[Tuple[str, "re.Pattern[str]"]]) -> List[str]:
    """Canonical names of every keyword found, in table order."""
    return [canonical for canonical, pattern in keywords if pattern.search(message)]


@register_recognizer("accommodation_type")
def recognize_accommodation_type(message: str) -> Optional[str]:
    found = match_keywords(message, _ACCOMMODATION_KEYWORDS)
    return ", ".join(found) if found else None


@register_recognizer("travel_pace")
def recognize_travel_pace(message: str) -> Optional[str]:
    found = match_keywords(message, _PACE_KEYWORDS)
    return found[0] if found else None


@register_recognizer("amenities")
def recognize_amenities(message: str) -> Optional[str]:
    found = match_keywords(message, _AMENITY_KEYWORDS)
    return ", ".join(found) if found else None


# =============================================================================
# FREE TEXT
# =============================================================================

TEXT_MIN_LENGTH = 1
TEXT_MAX_LENGTH = 200


@register_heuristic(FieldKind.TEXT)
def answer_text(message: str) -> Optional[str]:
    """Any trimmed answer within the length window, taken literally."""
    text = " ".join(message.split())
    if TEXT_MIN_LENGTH <= len(text) <= TEXT_MAX_LENGTH:
        return text
    return None
