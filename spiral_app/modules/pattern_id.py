# spiral_app/modules/pattern_id.py

import logging
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from spiral_app.config.constants import TREND_WINDOW_DAYS
from spiral_app.core.utils import day_of_week, round_half_up
from spiral_app.modules.mood_tracker import mood_category

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            logger.warning("Unparseable episode timestamp: %s", value)
    return None


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


class EpisodePatternEngine:
    """
    Looks across a user's stored episodes for the figures the dashboard
    shows: severity summary, trend of a tracked value, logging streaks and
    the most frequent answers.

    Episodes are plain dicts as produced by ``EpisodeModel.to_dict()``.
    """

    def __init__(self, config: Optional[Dict] = None):
        self.config = config or {
            "trend_window_days": TREND_WINDOW_DAYS,
            "top_n": 5,
        }

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------
    def summarize(self, episodes: List[Dict[str, Any]]) -> Dict[str, Any]:
        severities = [e["severity"] for e in episodes if e.get("severity") is not None]
        by_day = defaultdict(list)
        latest = None
        for episode in episodes:
            created = _as_datetime(episode.get("created_at"))
            if created is None:
                continue
            if episode.get("severity") is not None:
                by_day[day_of_week(created)].append(episode["severity"])
            if latest is None or created > latest:
                latest = created

        return {
            "count": len(episodes),
            "average_severity": round_half_up(sum(severities) / len(severities), 1) if severities else 0,
            "min_severity": min(severities) if severities else None,
            "max_severity": max(severities) if severities else None,
            "severity_by_day": {
                day: round_half_up(sum(values) / len(values), 1) for day, values in sorted(by_day.items())
            },
            "latest": latest.isoformat() if latest else None,
        }

    def values_by_day(self, episodes: List[Dict[str, Any]], field: str) -> Dict[str, float]:
        """Daily mean of a numeric data field, keyed by ISO date, oldest first."""
        buckets = defaultdict(list)
        for episode in episodes:
            created = _as_datetime(episode.get("created_at"))
            value = _as_number((episode.get("data") or {}).get(field))
            if created is None or value is None:
                continue
            buckets[created.date().isoformat()].append(value)
        return {day: sum(values) / len(values) for day, values in sorted(buckets.items())}

    def calculate_trend(self, values_by_day: Dict[str, float]) -> float:
        """
        Percent change between the mean of the first and the last window of
        days. Zero when there are fewer days than the window or the first
        mean is zero.
        """
        window = self.config.get("trend_window_days", TREND_WINDOW_DAYS)
        values = [values_by_day[day] for day in sorted(values_by_day)]
        if len(values) < window:
            return 0
        first = sum(values[:window]) / window
        last = sum(values[-window:]) / window
        if first == 0:
            return 0
        return round_half_up((last - first) / first * 100, 1)

    def streaks(self, episodes: List[Dict[str, Any]], today: date) -> Dict[str, Any]:
        calendar = Counter()
        for episode in episodes:
            created = _as_datetime(episode.get("created_at"))
            if created is not None:
                calendar[created.date()] += 1

        best = 0
        run = 0
        previous = None
        for day in sorted(calendar):
            run = run + 1 if previous is not None and day - previous == timedelta(days=1) else 1
            best = max(best, run)
            previous = day

        # A streak still counts if today's entry hasn't been made yet
        cursor = today if today in calendar else today - timedelta(days=1)
        current = 0
        while cursor in calendar:
            current += 1
            cursor -= timedelta(days=1)

        return {
            "current": current,
            "best": best,
            "calendar": {day.isoformat(): count for day, count in sorted(calendar.items())},
        }

    def top_values(
        self, episodes: List[Dict[str, Any]], key: str, n: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        counts = Counter()
        for episode in episodes:
            value = (episode.get("data") or {}).get(key)
            if isinstance(value, list):
                counts.update(str(v) for v in value if v not in (None, ""))
            elif value not in (None, "") and not isinstance(value, dict):
                counts[str(value)] += 1
        limit = n or self.config.get("top_n", 5)
        return [{"value": value, "count": count} for value, count in counts.most_common(limit)]

    # ------------------------------------------------------------------
    # Compositions
    # ------------------------------------------------------------------
    def mood_analytics(self, episodes: List[Dict[str, Any]]) -> Dict[str, Any]:
        moods = [
            m for m in (_as_number((e.get("data") or {}).get("mood")) for e in episodes) if m is not None
        ]
        energies = [
            v for v in (_as_number((e.get("data") or {}).get("energy")) for e in episodes) if v is not None
        ]
        categories = Counter(mood_category(int(m)) for m in moods)
        return {
            "average_mood": round_half_up(sum(moods) / len(moods), 1) if moods else 0,
            "average_energy": round_half_up(sum(energies) / len(energies), 1) if energies else 0,
            "trend": self.calculate_trend(self.values_by_day(episodes, "mood")),
            "categories": {c: categories.get(c, 0) for c in ("negative", "neutral", "positive")},
            "top_emotions": self.top_values(episodes, "emotions"),
        }

    def analyze_episodes(
        self,
        episodes: List[Dict[str, Any]],
        today: date,
        trend_field: Optional[str] = None,
        top_fields: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        report = {
            "summary": self.summarize(episodes),
            "streaks": self.streaks(episodes, today),
            "trend": None,
            "top_values": {},
        }
        if trend_field:
            daily = self.values_by_day(episodes, trend_field)
            report["trend"] = {
                "field": trend_field,
                "daily": daily,
                "percent_change": self.calculate_trend(daily),
            }
        for field in top_fields or []:
            report["top_values"][field] = self.top_values(episodes, field)

        logger.info(
            "Pattern analysis over %d episodes (streak %d)",
            len(episodes),
            report["streaks"]["current"],
        )
        return report

    def to_dict(self) -> dict:
        return {"config": self.config}

    def update_from_dict(self, data: dict):
        if "config" in data:
            config_update = data.get("config", {})
            if isinstance(config_update, dict):
                self.config.update(config_update)
            else:
                logger.warning("Invalid format for config update in EpisodePatternEngine.")
