"""
Read-only gym directory.

Gyms are loaded from the bundled ``src/gymly/data/gyms.yaml``.  A user
file at ``~/.gymly/gyms.yaml`` is merged over it by id: matching ids are
deep-merged (only changed keys need to be listed), new ids are appended.
Malformed entries are skipped with a warning rather than stopping the app.
"""

from __future__ import annotations

import os
import warnings
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable

import yaml

from .config import SEARCH_RESULT_LIMIT, UNKNOWN_GYM_NAME
from .errors import NotFoundError
from .models import WEEKDAYS, DayHours, Gym, GymHours

_REQUIRED_GYM_FIELDS: frozenset[str] = frozenset({"id", "name", "latitude", "longitude"})


@dataclass(frozen=True)
class GymStatus:
    """Whether a gym is open at a given moment."""

    is_open: bool
    current_hours: DayHours | None = None


def hours_from_dict(d: dict) -> GymHours:
    """Convert a raw hours mapping to GymHours, raising ValueError on bad times."""
    days = []
    for name in WEEKDAYS:
        raw = d.get(name)
        if raw is None:
            continue
        days.append((name, DayHours(open=str(raw["open"]), close=str(raw["close"]))))
    return GymHours(days=tuple(days), is_open_24_hours=bool(d.get("is_open_24_hours", False)))


def gym_from_dict(d: dict) -> Gym:
    """Convert a raw dict (from YAML) to a Gym.

    Raises ValueError if any required field is absent or invalid.
    """
    missing = _REQUIRED_GYM_FIELDS - set(d)
    if missing:
        raise ValueError(f"Gym missing fields: {sorted(missing)}")

    def _opt(key: str) -> str | None:
        value = d.get(key)
        if value is None:
            return None
        return str(value).strip() or None

    raw_hours = d.get("hours")
    return Gym(
        id=int(d["id"]),
        name=str(d["name"]),
        latitude=float(d["latitude"]),
        longitude=float(d["longitude"]),
        brand=_opt("brand"),
        address=_opt("address"),
        city=_opt("city"),
        postal_code=_opt("postal_code"),
        region=_opt("region"),
        hours=hours_from_dict(raw_hours) if isinstance(raw_hours, dict) else None,
    )


def _load_yaml_entries(path: Path) -> list[dict]:
    """Load the 'gyms' list from a YAML file; warn and return [] on error."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        warnings.warn(f"gymly: could not read {path} ({exc})", stacklevel=2)
        return []
    if not isinstance(data, dict) or not isinstance(data.get("gyms"), list):
        return []
    return [e for e in data["gyms"] if isinstance(e, dict)]


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base (non-destructive to base)."""
    result = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def get_bundled_gyms_path() -> Path:
    """Path of the gym directory shipped with the package."""
    # directory.py lives at src/gymly/core/directory.py
    return Path(__file__).parent.parent / "data" / "gyms.yaml"


def get_user_gyms_path() -> Path | None:
    """Return ~/.gymly/gyms.yaml if it exists, else None."""
    home = Path(os.environ.get("HOME", "~")).expanduser()
    p = home / ".gymly" / "gyms.yaml"
    return p if p.exists() else None


def load_gyms(
    bundled_path: Path | None = None,
    user_path: Path | None = None,
) -> list[Gym]:
    """
    Load the gym list, bundled first, then user overrides by id.

    Directory order is preserved: bundled gyms keep their position, user-only
    gyms are appended in file order.
    """
    bundled_path = bundled_path or get_bundled_gyms_path()
    if user_path is None:
        user_path = get_user_gyms_path()

    raw_by_id: dict[int, dict] = {}
    order: list[int] = []
    sources = [bundled_path] + ([user_path] if user_path is not None else [])
    for source in sources:
        for entry in _load_yaml_entries(source):
            try:
                gym_id = int(entry["id"])
            except (KeyError, TypeError, ValueError):
                warnings.warn(f"gymly: skipping gym without a numeric id in {source}", stacklevel=2)
                continue
            if gym_id in raw_by_id:
                raw_by_id[gym_id] = _deep_merge(raw_by_id[gym_id], entry)
            else:
                raw_by_id[gym_id] = dict(entry)
                order.append(gym_id)

    gyms: list[Gym] = []
    for gym_id in order:
        try:
            gyms.append(gym_from_dict(raw_by_id[gym_id]))
        except (ValueError, KeyError, TypeError) as exc:
            warnings.warn(f"gymly: skipping gym {gym_id} ({exc})", stacklevel=2)
    return gyms


def _title_case(value: str) -> str:
    return " ".join(part[:1].upper() + part[1:] for part in value.split(" ") if part)


def format_gym_display_name(gym: Gym | None) -> str:
    """
    Name shown for a gym in lists: the name plus its city (or brand),
    unless the name already contains it.
    """
    if gym is None:
        return UNKNOWN_GYM_NAME
    base = gym.name.strip() or UNKNOWN_GYM_NAME
    location = (gym.city or gym.brand or "").strip()
    if not location or location.lower() in base.lower():
        return base
    return f"{base} {_title_case(location)}"


def gym_status(gym: Gym, at: datetime) -> GymStatus:
    """Open/closed status of a gym at a local time."""
    hours = gym.hours
    if hours is None:
        return GymStatus(is_open=False)
    if hours.is_open_24_hours:
        return GymStatus(is_open=True)
    today = hours.for_weekday(at.weekday())
    if today is None:
        return GymStatus(is_open=False)
    current = at.hour * 100 + at.minute
    opens = int(today.open.replace(":", ""))
    closes = int(today.close.replace(":", ""))
    return GymStatus(is_open=opens <= current < closes, current_hours=today)


class GymDirectory:
    """
    Ordered, read-only collection of gyms.

    Iteration follows directory order, which is also the tie-break order
    for nearest-gym detection.
    """

    def __init__(self, gyms: Iterable[Gym]):
        self._gyms: list[Gym] = list(gyms)
        self._by_id: dict[int, Gym] = {g.id: g for g in self._gyms}

    @classmethod
    def load(cls) -> "GymDirectory":
        """Directory from the bundled YAML plus user overrides."""
        return cls(load_gyms())

    def __iter__(self):
        return iter(self._gyms)

    def __len__(self) -> int:
        return len(self._gyms)

    def find(self, gym_id: int | None) -> Gym | None:
        """Gym by id, or None."""
        if gym_id is None:
            return None
        return self._by_id.get(gym_id)

    def get(self, gym_id: int) -> Gym:
        """Gym by id; raises NotFoundError if absent."""
        gym = self.find(gym_id)
        if gym is None:
            raise NotFoundError(f"Unknown gym id: {gym_id}")
        return gym

    def search(self, query: str, limit: int = SEARCH_RESULT_LIMIT) -> list[Gym]:
        """
        Token search over name, city, brand and postal code.

        Every whitespace-separated token must appear somewhere in the gym's
        text.  An empty query gives no suggestions.
        """
        tokens = query.strip().lower().split()
        if not tokens:
            return []
        matches: list[Gym] = []
        for gym in self._gyms:
            haystack = " ".join(
                part for part in (gym.name, gym.city, gym.brand, gym.postal_code) if part
            ).lower().replace(",", " ")
            if all(t in haystack for t in tokens):
                matches.append(gym)
                if len(matches) >= limit:
                    break
        return matches

    def find_by_query(self, query: str) -> Gym | None:
        """First gym whose name or address contains the query."""
        needle = query.strip().lower()
        if not needle:
            return None
        for gym in self._gyms:
            if needle in gym.name.lower() or needle in (gym.address or "").lower():
                return gym
        return None
