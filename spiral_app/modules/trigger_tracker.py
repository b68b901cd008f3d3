# spiral_app/modules/trigger_tracker.py

import logging
from datetime import timedelta

from spiral_app.config.constants import (
    RECURRING_TRIGGER_PREFIX_CHARS,
    RECURRING_TRIGGER_WINDOW_DAYS,
    SEVERITY_MAX,
    UNLIMITED,
)
from spiral_app.core.widget import Widget, WidgetContext

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

DAILY_LIMIT_MESSAGE = (
    "You have reached your daily trigger tracking limit of %d. "
    "Upgrade to track more triggers."
)


class TriggerTracker(Widget):
    widget_id = "trigger-tracker"
    name = "Trigger Tracker"
    description = "Identify what sets off difficult moments and how you respond."
    icon = "dashicons-warning"
    capabilities = ["analytics", "patterns"]
    default_settings = {"show_recurring_hint": True}
    trend_field = "intensity"
    top_fields = ["trigger_category", "emotional_response", "environmental_factors"]

    tier_features = {
        "free": {"max_daily_entries": 3},
        "silver": {"max_daily_entries": 10},
        "gold": {"max_daily_entries": UNLIMITED},
        "platinum": {"max_daily_entries": UNLIMITED},
    }

    field_definitions = {
        "trigger_category": {
            "label": "Trigger Category",
            "type": "select",
            "required": True,
            "required_message": "Please select a trigger category.",
            "options": {
                "": "-- Select Category --",
                "interpersonal": "Interpersonal (People/Relationships)",
                "environmental": "Environmental (Places/Situations)",
                "internal": "Internal (Thoughts/Feelings)",
                "physical": "Physical (Body/Health)",
                "temporal": "Temporal (Time-related)",
                "sensory": "Sensory (Sights/Sounds/Smells)",
                "digital": "Digital (Social Media/News)",
                "financial": "Financial (Money/Work)",
                "other": "Other",
            },
        },
        "trigger_description": {
            "label": "Describe the Trigger",
            "type": "textarea",
            "required": True,
            "required_message": "Please describe the trigger.",
            "rows": 3,
            "placeholder": "What specifically triggered you?",
        },
        "intensity": {
            "label": "Trigger Intensity",
            "type": "range",
            "min": 1,
            "max": 10,
            "default": 5,
            "required": True,
            "required_message": "Trigger intensity is required (1-10).",
            "description": "1 = Mild, 10 = Severe",
        },
        "emotional_response": {
            "label": "Emotional Response",
            "type": "checkbox",
            "required": True,
            "required_message": "Please select at least one emotional response.",
            "options": {
                "anxiety": "Anxiety/Worry",
                "anger": "Anger/Irritation",
                "sadness": "Sadness/Depression",
                "fear": "Fear/Panic",
                "shame": "Shame/Guilt",
                "overwhelm": "Overwhelm",
                "numbness": "Numbness/Disconnection",
                "frustration": "Frustration",
            },
        },
        "physical_response": {
            "label": "Physical Response",
            "type": "checkbox",
            "tier": "silver",
            "options": {
                "racing_heart": "Racing Heart",
                "sweating": "Sweating",
                "shaking": "Shaking/Trembling",
                "nausea": "Nausea",
                "headache": "Headache",
                "muscle_tension": "Muscle Tension",
                "breathing_difficulty": "Breathing Difficulty",
                "fatigue": "Sudden Fatigue",
            },
        },
        "location": {
            "label": "Where did this happen?",
            "type": "text",
            "tier": "silver",
            "placeholder": "Home, work, store, etc.",
        },
        "time_of_day": {
            "label": "Time of Day",
            "type": "select",
            "tier": "silver",
            "options": {
                "": "-- Select Time --",
                "early_morning": "Early Morning (5-8 AM)",
                "morning": "Morning (8-12 PM)",
                "afternoon": "Afternoon (12-5 PM)",
                "evening": "Evening (5-9 PM)",
                "night": "Night (9 PM-12 AM)",
                "late_night": "Late Night (12-5 AM)",
            },
        },
        "environmental_factors": {
            "label": "Environmental Factors",
            "type": "checkbox",
            "tier": "silver",
            "options": {
                "crowded": "Crowded Space",
                "noise": "Loud Noise",
                "lighting": "Bright/Dim Lighting",
                "temperature": "Temperature (Hot/Cold)",
                "confined": "Confined Space",
                "social_pressure": "Social Pressure",
                "alone": "Being Alone",
                "unfamiliar": "Unfamiliar Environment",
            },
        },
        "coping_response": {
            "label": "How did you cope?",
            "type": "textarea",
            "tier": "silver",
            "rows": 3,
        },
        "coping_effectiveness": {
            "label": "How effective was your coping?",
            "type": "range",
            "tier": "silver",
            "min": 1,
            "max": 5,
            "default": 3,
        },
        "trigger_chain": {
            "label": "Was this part of a trigger chain?",
            "type": "radio",
            "tier": "gold",
            "default": "no",
            "options": {
                "no": "No - standalone trigger",
                "start": "Yes - this started a chain",
                "middle": "Yes - part of ongoing chain",
                "end": "Yes - end result of chain",
            },
        },
        "related_triggers": {"label": "Related Triggers", "type": "textarea", "tier": "gold", "rows": 2},
        "warning_signs": {"label": "Early Warning Signs", "type": "textarea", "tier": "gold", "rows": 2},
        "prevention_plan": {"label": "Prevention Ideas", "type": "textarea", "tier": "gold", "rows": 2},
        "support_needed": {
            "label": "Support Needed",
            "type": "checkbox",
            "tier": "platinum",
            "options": {
                "professional": "Professional help",
                "medication": "Medication review",
                "therapy": "Therapy techniques",
                "social": "Social support",
                "environmental": "Environmental changes",
                "lifestyle": "Lifestyle changes",
            },
        },
        "notes": {"label": "Additional Notes", "type": "textarea", "rows": 2},
    }

    def check_limits(self, data, context):
        self.enforce_count_limit(
            "max_daily_entries",
            self.count_today(context),
            context,
            DAILY_LIMIT_MESSAGE,
            "daily_limit_reached",
        )

    def clean(self, validated, data, context):
        if validated.get("coping_response") and "coping_effectiveness" not in validated:
            return {
                "coping_effectiveness": "Please rate the effectiveness of your coping response."
            }
        return {}

    def compute_severity(self, validated, context):
        return validated["intensity"]

    def calculate(self, validated, context):
        calculated = self.stamp(context, "trigger")
        emotional = len(validated.get("emotional_response", []))
        physical = len(validated.get("physical_response", []))

        impact = validated["intensity"]
        if emotional > 3:
            impact += 1
        if physical > 3:
            impact += 1

        calculated.update(
            {
                "emotional_count": emotional,
                "physical_count": physical,
                "impact_score": min(impact, SEVERITY_MAX),
                "is_recurring": self.is_recurring(validated["trigger_description"], context),
            }
        )
        return calculated

    def is_recurring(self, description: str, context: WidgetContext) -> bool:
        """Seen a trigger opening the same way within the recent window?"""
        prefix = description[:RECURRING_TRIGGER_PREFIX_CHARS].lower()
        if not prefix:
            return False
        since = context.now - timedelta(days=RECURRING_TRIGGER_WINDOW_DAYS)
        for episode in context.episodes.list_since(context.user_id, since, widget_id=self.widget_id):
            previous = str((episode.data or {}).get("trigger_description", "")).lower()
            if prefix in previous:
                return True
        return False
