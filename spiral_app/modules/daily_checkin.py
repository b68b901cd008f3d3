# spiral_app/modules/daily_checkin.py

import logging

from spiral_app.config.constants import UNLIMITED
from spiral_app.core.utils import round_half_up
from spiral_app.core.widget import Widget

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

DAILY_LIMIT_MESSAGE = (
    "You have reached your daily check-in limit of %d. Upgrade to increase your limit."
)


class DailyCheckin(Widget):
    widget_id = "daily-checkin"
    name = "Daily Check-in"
    description = "A quick daily pulse on mood, energy and self-care."
    icon = "dashicons-calendar-alt"
    capabilities = ["analytics", "streaks"]
    default_settings = {"reminder_time": "09:00"}
    trend_field = "overall_mood"
    top_fields = ["symptoms_check", "self_care"]

    tier_features = {
        "free": {"max_daily_checkins": 1},
        "silver": {"max_daily_checkins": 2},
        "gold": {"max_daily_checkins": 3},
        "platinum": {"max_daily_checkins": UNLIMITED},
    }

    field_definitions = {
        "overall_mood": {
            "label": "Overall Mood Today",
            "type": "range",
            "min": 1,
            "max": 10,
            "required": True,
            "required_message": "Overall mood rating is required (1-10).",
            "default": 5,
        },
        "energy_level": {
            "label": "Energy Level",
            "type": "range",
            "min": 1,
            "max": 10,
            "required": True,
            "required_message": "Energy level rating is required (1-10).",
            "default": 5,
        },
        "checkin_time": {
            "label": "Check-in Time",
            "type": "select",
            "required": True,
            "required_message": "Please select a valid check-in time.",
            "options": {
                "": "Select...",
                "morning": "Morning",
                "afternoon": "Afternoon",
                "evening": "Evening",
                "night": "Night",
            },
        },
        "sleep_quality": {
            "label": "Last Night's Sleep Quality",
            "type": "range",
            "tier": "silver",
            "min": 1,
            "max": 5,
        },
        "accomplishments": {"label": "Today's Accomplishments", "type": "textarea", "tier": "silver", "rows": 3},
        "challenges": {"label": "Today's Challenges", "type": "textarea", "tier": "silver", "rows": 3},
        "symptoms_check": {
            "label": "Symptom Check",
            "type": "checkbox",
            "tier": "silver",
            "options": {
                "anxiety": "Anxiety",
                "depression": "Low mood",
                "irritability": "Irritability",
                "fatigue": "Fatigue",
                "focus_issues": "Trouble focusing",
                "physical_pain": "Physical pain",
                "appetite_changes": "Appetite changes",
                "sleep_issues": "Sleep issues",
            },
        },
        "gratitude": {"label": "Gratitude List", "type": "textarea", "tier": "gold", "rows": 3},
        "goals_progress": {"label": "Progress on Goals", "type": "textarea", "tier": "gold", "rows": 3},
        "social_interaction": {
            "label": "Social Interaction Quality",
            "type": "select",
            "tier": "gold",
            "options": {
                "": "Select...",
                "none": "None",
                "minimal": "Minimal",
                "moderate": "Moderate",
                "good": "Good",
                "excellent": "Excellent",
            },
        },
        "therapist_notes": {"label": "Notes for Therapist", "type": "textarea", "tier": "platinum", "rows": 3},
        "self_care": {
            "label": "Self-Care Activities",
            "type": "checkbox",
            "tier": "gold",
            "options": {
                "exercise": "Exercise",
                "meditation": "Meditation",
                "healthy_eating": "Healthy eating",
                "hydration": "Hydration",
                "nature": "Time in nature",
                "creative": "Creative activity",
                "social": "Social connection",
                "rest": "Rest",
            },
        },
        "notes": {"label": "Additional Notes", "type": "textarea", "rows": 2},
    }

    def check_limits(self, data, context):
        self.enforce_count_limit(
            "max_daily_checkins",
            self.count_today(context),
            context,
            DAILY_LIMIT_MESSAGE,
            "daily_limit_reached",
        )

    def compute_severity(self, validated, context):
        average = (validated["overall_mood"] + validated["energy_level"]) / 2.0
        return 11 - round_half_up(average)

    def calculate(self, validated, context):
        calculated = self.stamp(context, "checkin")
        del calculated["checkin_time"]
        calculated["checkin_hour"] = context.now.strftime("%H")
        calculated["wellness_score"] = (validated["overall_mood"] + validated["energy_level"]) / 2.0
        if validated.get("symptoms_check"):
            calculated["symptom_count"] = len(validated["symptoms_check"])
        if validated.get("self_care"):
            calculated["selfcare_count"] = len(validated["self_care"])
        return calculated
