"""Value types passed between the adapters, matcher, reconciler and store."""
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from gamelib.models.enums import Platform

# Sizes the catalog serves at; anything smaller is upgraded for display
_COVER_SIZES = ("t_thumb", "t_cover_big", "t_cover_small", "t_cover_small_2x",
                "t_cover_big_2x", "t_micro", "t_logo_med")
_SCREENSHOT_SIZES = ("t_thumb", "t_screenshot_med", "t_screenshot_big")

# Critic reviews needed before aggregated_rating is shown as a metacritic score
METACRITIC_MIN_REVIEWS = 7


def _resolve_image_url(url: Optional[str], sizes: Tuple[str, ...], target: str) -> Optional[str]:
    if not url:
        return None
    if url.startswith("//"):
        url = "https:" + url
    for size in sizes:
        url = url.replace(f"/{size}/", f"/{target}/")
    return url


def _names(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(
        item["name"] for item in value
        if isinstance(item, dict) and isinstance(item.get("name"), str)
    )


@dataclass(frozen=True)
class RawPlatformGame:
    """
    A game as reported by one platform, before catalog resolution.

    external_id is always a string, whatever the platform's native type
    (Steam app ids are integers, PSN uses NPWR communication ids).
    ranked_data is the Riot ranked blob for the title, None elsewhere.
    """
    platform: Platform
    external_id: str
    display_name: str
    playtime_minutes: int = 0
    icon_url: Optional[str] = None
    header_url: Optional[str] = None
    capsule_url: Optional[str] = None
    hero_url: Optional[str] = None
    completion_percent: Optional[int] = None
    platform_label: Optional[str] = None
    ranked_data: Optional[Dict[str, Any]] = field(default=None, hash=False)


@dataclass(frozen=True)
class CanonicalGameEntry:
    """A game record from the catalog service (IGDB)."""
    catalog_id: int
    name: str
    cover_url: Optional[str] = None
    screenshot_urls: Tuple[str, ...] = ()
    summary: Optional[str] = None
    platforms: Tuple[str, ...] = ()
    genres: Tuple[str, ...] = ()
    aggregated_rating: Optional[float] = None
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    metacritic_score: Optional[int] = None
    release_date: Optional[date] = None

    @classmethod
    def from_igdb(cls, payload: Dict[str, Any]) -> "CanonicalGameEntry":
        """
        Build an entry from one IGDB /games result.

        Cover URLs are upgraded to t_1080p and screenshots to t_screenshot_huge;
        protocol-relative URLs are resolved to https.
        """
        cover = payload.get("cover")
        cover_url = _resolve_image_url(
            cover.get("url") if isinstance(cover, dict) else None, _COVER_SIZES, "t_1080p"
        )

        screenshots = []
        for shot in payload.get("screenshots") or []:
            url = shot.get("url") if isinstance(shot, dict) else shot
            resolved = _resolve_image_url(url, _SCREENSHOT_SIZES, "t_screenshot_huge")
            if resolved:
                screenshots.append(resolved)

        aggregated = payload.get("aggregated_rating")
        aggregated_count = payload.get("aggregated_rating_count") or 0
        metacritic = None
        if aggregated is not None and aggregated_count >= METACRITIC_MIN_REVIEWS:
            metacritic = int(round(aggregated))

        release_date = None
        released = payload.get("first_release_date")
        if isinstance(released, (int, float)):
            release_date = datetime.fromtimestamp(released, tz=timezone.utc).date()

        return cls(
            catalog_id=int(payload["id"]),
            name=payload.get("name") or "Unknown Game",
            cover_url=cover_url,
            screenshot_urls=tuple(screenshots),
            summary=payload.get("summary"),
            platforms=_names(payload.get("platforms")),
            genres=_names(payload.get("genres")),
            aggregated_rating=aggregated,
            rating=payload.get("rating"),
            rating_count=payload.get("rating_count"),
            metacritic_score=metacritic,
            release_date=release_date,
        )

    def metadata_columns(self) -> Dict[str, Any]:
        """LibraryEntry columns sourced from the catalog."""
        return {
            "catalog_id": self.catalog_id,
            "display_name": self.name,
            "cover_url": self.cover_url,
            "summary": self.summary,
            "genres": list(self.genres),
            "platforms": list(self.platforms),
            "screenshot_urls": list(self.screenshot_urls),
            "aggregated_rating": self.aggregated_rating,
            "catalog_rating": self.rating,
            "catalog_rating_count": self.rating_count,
            "metacritic_score": self.metacritic_score,
            "release_date": self.release_date,
        }


class ReconcileOutcome(str, Enum):
    IMPORTED = "imported"
    UPDATED = "updated"
    FAILED = "failed"
    SKIPPED = "skipped"  # playtime refresh found no linked entry


@dataclass(frozen=True)
class UpdateFieldSet:
    """
    Columns a re-sync may write on an existing entry.

    always: written on every touch (platform-authored values).
    if_present: written only when this run resolved a catalog match, and
        then only the columns that carry a value; None and empty lists
        leave the stored value alone.
    """
    always: Dict[str, Any]
    if_present: Dict[str, Any] = field(default_factory=dict)

    def columns(self) -> Dict[str, Any]:
        """Column values to write; always wins over if_present."""
        merged = {k: v for k, v in self.if_present.items() if _has_value(v)}
        merged.update(self.always)
        return merged


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (list, tuple, dict)):
        return len(value) > 0
    return True


@dataclass(frozen=True)
class ExistingKeyMaps:
    """
    Snapshot of a user's existing entries, taken once per sync.

    by_platform_key maps this platform's external id to an entry id;
    by_catalog_id maps catalog ids to entry ids across all platforms.
    """
    by_platform_key: Dict[str, str] = field(default_factory=dict)
    by_catalog_id: Dict[int, str] = field(default_factory=dict)

    def lookup(self, external_id: str, catalog_id: Optional[int]) -> Optional[str]:
        entry_id = self.by_platform_key.get(external_id)
        if entry_id is None and catalog_id is not None:
            entry_id = self.by_catalog_id.get(catalog_id)
        return entry_id


@dataclass
class SyncResult:
    """Counters for one synchronizer run."""
    total_games: int = 0
    matched: int = 0
    unmatched: int = 0
    imported: int = 0
    updated: int = 0
    failed: int = 0

    def record(self, outcome: ReconcileOutcome) -> None:
        if outcome == ReconcileOutcome.IMPORTED:
            self.imported += 1
        elif outcome == ReconcileOutcome.UPDATED:
            self.updated += 1
        elif outcome == ReconcileOutcome.FAILED:
            self.failed += 1

    @property
    def summary(self) -> str:
        return f"{self.imported} added, {self.updated} updated, {self.failed} failed"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["summary"] = self.summary
        return data
