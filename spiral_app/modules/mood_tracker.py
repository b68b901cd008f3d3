# spiral_app/modules/mood_tracker.py

import logging
from typing import Any, Dict

from spiral_app.core.utils import day_of_week, time_of_day
from spiral_app.core.widget import Widget, WidgetContext

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

# Points each optional answer adds to the completeness score (max 100)
COMPLETENESS_WEIGHTS = {
    "note": 10,
    "sleep_quality": 15,
    "activities": 20,
    "emotions": 20,
    "social_interaction": 10,
    "factors": 10,
    "journal": 15,
}


def mood_category(mood: int) -> str:
    if mood <= 3:
        return "negative"
    if mood <= 6:
        return "neutral"
    return "positive"


class MoodTracker(Widget):
    widget_id = "mood-tracker"
    name = "Mood Tracker"
    description = "Track your daily mood, energy and what shaped them."
    icon = "dashicons-smiley"
    capabilities = ["analytics", "trends"]
    default_settings = {"show_energy": True, "reminder_time": "20:00"}
    trend_field = "mood"
    top_fields = ["emotions", "activities", "factors"]

    field_definitions = {
        "mood": {
            "label": "Mood",
            "type": "range",
            "min": 1,
            "max": 10,
            "required": True,
            "required_message": "Please select your mood.",
            "default": 5,
        },
        "energy": {"label": "Energy Level", "type": "range", "min": 1, "max": 10, "default": 5},
        "note": {"label": "Quick Note", "type": "text", "placeholder": "What's on your mind?"},
        "sleep_quality": {
            "label": "Last Night's Sleep",
            "type": "select",
            "options": {
                "": "Select...",
                "terrible": "Terrible",
                "poor": "Poor",
                "fair": "Fair",
                "good": "Good",
                "excellent": "Excellent",
            },
        },
        "activities": {
            "label": "Activities",
            "type": "checkbox",
            "options": {
                "exercise": "Exercise",
                "work": "Work",
                "social": "Social",
                "outdoors": "Outdoors",
                "creative": "Creative",
                "relaxation": "Relaxation",
                "family": "Family",
                "hobbies": "Hobbies",
            },
        },
        "emotions": {
            "label": "Emotions",
            "type": "checkbox",
            "tier": "silver",
            "options": {
                "happy": "Happy",
                "sad": "Sad",
                "anxious": "Anxious",
                "calm": "Calm",
                "angry": "Angry",
                "grateful": "Grateful",
                "excited": "Excited",
                "bored": "Bored",
                "stressed": "Stressed",
                "content": "Content",
                "frustrated": "Frustrated",
                "hopeful": "Hopeful",
            },
        },
        "social_interaction": {
            "label": "Social Interaction",
            "type": "select",
            "tier": "silver",
            "options": {
                "": "Select...",
                "none": "None",
                "minimal": "Minimal",
                "moderate": "Moderate",
                "high": "High",
                "overwhelming": "Overwhelming",
            },
        },
        "factors": {
            "label": "Influencing Factors",
            "type": "checkbox",
            "tier": "gold",
            "options": {
                "weather": "Weather",
                "work-stress": "Work Stress",
                "relationship": "Relationship",
                "health": "Health",
                "financial": "Financial",
                "news": "News",
                "hormonal": "Hormonal",
                "medication": "Medication",
            },
        },
        "journal": {"label": "Journal Entry", "type": "textarea", "tier": "gold", "rows": 5},
        "gratitude": {"label": "Gratitude", "type": "textarea", "tier": "platinum", "rows": 3},
        "goal_progress": {
            "label": "Goal Progress",
            "type": "range",
            "tier": "platinum",
            "min": 1,
            "max": 10,
        },
        "request_ai_insights": {
            "label": "Request AI insights for this entry",
            "type": "boolean",
            "tier": "platinum",
        },
    }

    def compute_severity(self, validated: Dict[str, Any], context: WidgetContext) -> int:
        # Low mood is a severe episode
        return 11 - validated["mood"]

    def prepare_metadata(self, metadata, validated, context):
        score = sum(
            weight for field, weight in COMPLETENESS_WEIGHTS.items() if field in validated
        )
        metadata.update(
            {
                "time_of_day": time_of_day(context.now),
                "day_of_week": day_of_week(context.now),
                "completeness_score": score,
                "mood_category": mood_category(validated["mood"]),
            }
        )
        return metadata
