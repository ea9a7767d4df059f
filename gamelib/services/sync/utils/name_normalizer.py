"""Title normalization for matching platform game names against the catalog.

Handles common variations across stores:
- Trademark symbols: "DOOM™" → "doom"
- Edition qualifiers: "Skyrim - Special Edition" → "skyrim"
- Case and extra spaces: "DARK  SOULS" → "dark souls"

Also holds the PlayStation-specific cleanups used to join trophy titles
with the game-list playtime feed.
"""
import re

# Edition qualifiers stripped before comparison. Matched with an optional
# leading ":" or dash (hyphen, en or em) separator; the trailing "edition"
# is optional only when the qualifier ends the title ("Dark Souls Remastered").
EDITION_QUALIFIERS = (
    'game of the year', 'goty', 'definitive', 'complete', 'enhanced',
    'remastered', 'gold', 'special', 'deluxe', 'ultimate', 'anniversary',
)

_SYMBOLS_RE = re.compile(r'[™®©]')
_EDITION_RE = re.compile(
    r'\s*[-:–—]?\s*\b(?:' + '|'.join(EDITION_QUALIFIERS) + r')\b(?:\s+edition\b|\s*$)'
)
_WHITESPACE_RE = re.compile(r'\s+')

# PlayStation title cleanup
_PS_SUFFIXES = (
    ' ps4™ & ps5™', ' ps4™ ve ps5™', ' ps4 & ps5', ' ps4 ve ps5',
    ' ps5™', ' ps4™', ' ps5', ' ps4',
)
_TROPHY_SUFFIX_RE = re.compile(r'\s+troph(?:y|ies)$', re.IGNORECASE)
_EA_FC_RE = re.compile(r'ea sports fc\s*(\d+)')
_FIFA_RE = re.compile(r'fifa\s*(\d+)')
FIFA_REBRAND_YEAR = 24


def normalize(name: str) -> str:
    """
    Normalize a game title for similarity comparison.

    Args:
        name: Title as reported by a platform or the catalog

    Returns:
        Lowercased title without trademark symbols or edition qualifiers

    Examples:
        >>> normalize("The Witcher 3: Wild Hunt - Game of the Year Edition™")
        'the witcher 3: wild hunt'
        >>> normalize("DOOM®")
        'doom'
    """
    if not name:
        return ""

    name = name.lower()
    name = _SYMBOLS_RE.sub('', name)
    name = _EDITION_RE.sub(' ', name)
    return _WHITESPACE_RE.sub(' ', name).strip()


def clean_playstation_title(name: str) -> str:
    """
    Clean a PSN trophy title for catalog search.

    Examples:
        >>> clean_playstation_title("Ghost of Tsushima Trophies")
        'Ghost of Tsushima'
        >>> clean_playstation_title("Hogwarts Legacy PS4 & PS5")
        'Hogwarts Legacy'
    """
    cleaned = _TROPHY_SUFFIX_RE.sub('', name.strip())
    lowered = cleaned.lower()
    for suffix in _PS_SUFFIXES:
        if lowered.endswith(suffix):
            cleaned = cleaned[:-len(suffix)]
            lowered = cleaned.lower()
    cleaned = _SYMBOLS_RE.sub('', cleaned)
    return _WHITESPACE_RE.sub(' ', cleaned).strip()


def playstation_join_key(name: str) -> str:
    """
    Key used to join trophy titles with game-list playtime entries.

    The two PSN feeds use different title ids, so names are compared instead.
    FIFA 24 and later and EA SPORTS FC share one key.

    Examples:
        >>> playstation_join_key("EA SPORTS FC™ 24")
        'fifa fc 24'
        >>> playstation_join_key("FIFA 24 Trophies")
        'fifa fc 24'
    """
    key = clean_playstation_title(name).lower()
    key = re.sub(r'[^\w\s]', '', key)
    key = _WHITESPACE_RE.sub(' ', key).strip()

    match = _EA_FC_RE.search(key)
    if match:
        return f"fifa fc {match.group(1)}"

    match = _FIFA_RE.search(key)
    if match and int(match.group(1)) >= FIFA_REBRAND_YEAR:
        return f"fifa fc {match.group(1)}"

    return key
