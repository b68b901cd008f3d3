# spiral_app/modules/sleep_tracker.py

import logging
from datetime import datetime, timedelta
from typing import Any, Dict

from spiral_app.core.utils import clamp, day_of_week, round_half_up
from spiral_app.core.widget import Widget, WidgetContext

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

# Midpoint minutes for each "time to fall asleep" answer
LATENCY_MINUTES = {
    "0-5": 3,
    "5-15": 10,
    "15-30": 22,
    "30-60": 45,
    "60+": 75,
}

NEGATIVE_PRE_SLEEP = ("screen-time", "exercise", "meal", "alcohol", "caffeine", "work")

QUALITY_OPTIONS = {
    "": "Select...",
    "excellent": "Excellent",
    "good": "Good",
    "fair": "Fair",
    "poor": "Poor",
    "terrible": "Terrible",
}


def sleep_duration_minutes(bedtime: str, wake_time: str) -> int:
    """Minutes between two HH:MM times; a wake time at or before bedtime is the next day."""
    bed = datetime.strptime(bedtime, "%H:%M")
    wake = datetime.strptime(wake_time, "%H:%M")
    if wake <= bed:
        wake += timedelta(days=1)
    return int((wake - bed).total_seconds() // 60)


def sleep_quality_score(data: Dict[str, Any], duration_hours: float) -> int:
    """0-100 composite of rating, refreshment, duration, wake-ups and issues."""
    score = data.get("quality_rating", 0) * 8
    score += data.get("refreshed_level", 0) * 2

    if 7 <= duration_hours <= 9:
        score += 20
    elif 6 <= duration_hours <= 10:
        score += 10

    score -= min(10, data.get("wake_ups", 0) * 2)
    score -= min(10, len(data.get("issues", [])) * 2)
    return int(clamp(score, 0, 100))


def sleep_efficiency(duration_minutes: int, fall_asleep_time: str) -> int:
    latency = LATENCY_MINUTES.get(fall_asleep_time, 0)
    total = duration_minutes + latency
    if total <= 0:
        return 0
    return round_half_up(duration_minutes / total * 100)


class SleepTracker(Widget):
    widget_id = "sleep-tracker"
    name = "Sleep Tracker"
    description = "Log sleep timing, quality and what affected your rest."
    icon = "dashicons-clock"
    capabilities = ["analytics", "trends", "wearables"]
    default_settings = {
        "default_bedtime": "22:00",
        "default_wake_time": "07:00",
        "track_dreams": True,
        "track_naps": True,
        "sleep_goal_hours": 8,
    }
    trend_field = "quality_rating"
    top_fields = ["issues", "pre_sleep_activities"]

    field_definitions = {
        "sleep_type": {
            "label": "Sleep Type",
            "type": "radio",
            "options": {"night": "Night Sleep", "nap": "Nap"},
            "default": "night",
        },
        "bedtime": {
            "label": "Bedtime",
            "type": "time",
            "required": True,
            "required_message": "Please enter your bedtime.",
        },
        "wake_time": {
            "label": "Wake Time",
            "type": "time",
            "required": True,
            "required_message": "Please enter your wake time.",
        },
        "quality_rating": {
            "label": "Sleep Quality",
            "type": "range",
            "min": 1,
            "max": 5,
            "required": True,
            "required_message": "Please rate your sleep quality.",
        },
        "refreshed_level": {"label": "How Refreshed", "type": "range", "min": 1, "max": 10},
        "fall_asleep_time": {
            "label": "Time to Fall Asleep",
            "type": "select",
            "options": {
                "": "Select...",
                "0-5": "Under 5 minutes",
                "5-15": "5-15 minutes",
                "15-30": "15-30 minutes",
                "30-60": "30-60 minutes",
                "60+": "Over an hour",
            },
        },
        "wake_ups": {"label": "Times Woken", "type": "number", "min": 0},
        "issues": {
            "label": "Sleep Issues",
            "type": "checkbox",
            "options": {
                "difficulty-falling": "Difficulty falling asleep",
                "frequent-waking": "Frequent waking",
                "early-waking": "Woke too early",
                "restless": "Restless sleep",
                "nightmares": "Nightmares",
                "snoring": "Snoring",
                "breathing-issues": "Breathing issues",
                "leg-movements": "Leg movements",
                "too-hot": "Too hot",
                "too-cold": "Too cold",
                "noise": "Noise",
                "light": "Light",
            },
        },
        "pre_sleep_activities": {
            "label": "Before Bed",
            "type": "checkbox",
            "tier": "silver",
            "options": {
                "screen-time": "Screen time",
                "reading": "Reading",
                "exercise": "Exercise",
                "meal": "Late meal",
                "alcohol": "Alcohol",
                "caffeine": "Caffeine",
                "meditation": "Meditation",
                "bath": "Bath",
                "work": "Work",
                "socializing": "Socializing",
            },
        },
        "environment_quality": {
            "label": "Sleep Environment",
            "type": "select",
            "tier": "silver",
            "options": QUALITY_OPTIONS,
        },
        "stress_level": {
            "label": "Stress Before Bed",
            "type": "range",
            "tier": "silver",
            "min": 1,
            "max": 10,
        },
        "dream_recall": {
            "label": "Dream Recall",
            "type": "select",
            "tier": "gold",
            "options": {
                "": "None",
                "vague": "Vague",
                "partial": "Partial",
                "clear": "Clear",
                "vivid": "Vivid",
            },
        },
        "dream_type": {
            "label": "Dream Type",
            "type": "select",
            "tier": "gold",
            "options": {
                "": "Select...",
                "pleasant": "Pleasant",
                "neutral": "Neutral",
                "stressful": "Stressful",
                "nightmare": "Nightmare",
                "lucid": "Lucid",
                "recurring": "Recurring",
            },
        },
        "dream_notes": {"label": "Dream Notes", "type": "textarea", "tier": "gold", "rows": 3},
        "sleep_aids": {
            "label": "Sleep Aids Used",
            "type": "checkbox",
            "tier": "platinum",
            "options": {
                "melatonin": "Melatonin",
                "prescription": "Prescription",
                "herbal": "Herbal",
                "white-noise": "White noise",
                "weighted-blanket": "Weighted blanket",
                "sleep-mask": "Sleep mask",
                "earplugs": "Earplugs",
                "aromatherapy": "Aromatherapy",
                "cbd": "CBD",
                "other": "Other",
            },
        },
        "has_wearable_data": {
            "label": "I have wearable data",
            "type": "boolean",
            "tier": "platinum",
        },
        "deep_sleep_minutes": {
            "label": "Deep Sleep (minutes)",
            "type": "number",
            "tier": "platinum",
            "min": 0,
            "conditional": {"field": "has_wearable_data", "value": True},
        },
        "rem_sleep_minutes": {
            "label": "REM Sleep (minutes)",
            "type": "number",
            "tier": "platinum",
            "min": 0,
            "conditional": {"field": "has_wearable_data", "value": True},
        },
        "hrv_average": {
            "label": "Average HRV",
            "type": "number",
            "tier": "platinum",
            "min": 0,
            "conditional": {"field": "has_wearable_data", "value": True},
        },
        "request_ai_analysis": {
            "label": "Request AI sleep analysis",
            "type": "boolean",
            "tier": "platinum",
        },
        "notes": {"label": "Notes", "type": "textarea", "rows": 3},
    }

    def clean(self, validated, data, context):
        validated.setdefault("sleep_type", "night")
        return {}

    def compute_severity(self, validated: Dict[str, Any], context: WidgetContext) -> int:
        # 5 stars -> 1, 1 star -> 9
        return 11 - validated["quality_rating"] * 2

    def calculate(self, validated, context):
        minutes = sleep_duration_minutes(validated["bedtime"], validated["wake_time"])
        return {
            "duration_minutes": minutes,
            "duration_hours": round_half_up(minutes / 60.0, 1),
        }

    def prepare_metadata(self, metadata, validated, context):
        calculated = validated.get("calculated", {})
        hours = calculated.get("duration_hours", 0)
        minutes = calculated.get("duration_minutes", 0)

        negatives = [
            item for item in validated.get("pre_sleep_activities", []) if item in NEGATIVE_PRE_SLEEP
        ]
        metadata.update(
            {
                "sleep_quality_score": sleep_quality_score(validated, hours),
                "negative_factor_count": len(negatives),
                "day_of_week": day_of_week(context.now),
                "is_weekend": context.now.weekday() >= 5,
                "sleep_debt": hours < 7,
            }
        )
        if validated.get("fall_asleep_time"):
            metadata["sleep_efficiency"] = sleep_efficiency(minutes, validated["fall_asleep_time"])
        return metadata
