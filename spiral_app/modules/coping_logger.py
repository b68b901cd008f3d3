# spiral_app/modules/coping_logger.py

import logging

from spiral_app.core.utils import round_half_up
from spiral_app.core.widget import Widget

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class CopingLogger(Widget):
    """Coping-skill log: which skill, how well it worked, mood before and after."""

    widget_id = "coping-logger"
    name = "Coping Skills Logger"
    description = "Record the coping skills you use and how well they work."
    icon = "dashicons-heart"
    capabilities = ["analytics", "skill_library"]
    default_settings = {"show_skill_suggestions": True}
    trend_field = "effectiveness"
    top_fields = ["skill_category", "skill_source"]

    field_definitions = {
        "skill_category": {
            "label": "Coping Skill Category",
            "type": "select",
            "required": True,
            "options": {
                "": "Select a category...",
                "grounding": "Grounding Techniques",
                "breathing": "Breathing Exercises",
                "mindfulness": "Mindfulness/Meditation",
                "physical": "Physical Activity",
                "creative": "Creative Expression",
                "social": "Social Connection",
                "distraction": "Healthy Distraction",
                "self_soothing": "Self-Soothing",
                "cognitive": "Cognitive Techniques",
                "professional": "Professional Support",
                "other": "Other",
            },
        },
        "skill_used": {
            "label": "Specific Skill Used",
            "type": "text",
            "required": True,
            "placeholder": "e.g., 5-4-3-2-1 grounding",
        },
        "effectiveness": {
            "label": "How Effective Was It?",
            "type": "range",
            "min": 1,
            "max": 10,
            "required": True,
            "default": 5,
        },
        "would_use_again": {
            "label": "Would You Use This Again?",
            "type": "radio",
            "options": {
                "yes": "Yes, definitely",
                "maybe": "Maybe",
                "situation": "Depends on the situation",
                "no": "No",
            },
        },
        "notes": {"label": "Additional Notes", "type": "textarea", "rows": 3},
        "situation": {
            "label": "What Situation Did You Use It For?",
            "type": "textarea",
            "tier": "silver",
            "rows": 2,
        },
        "mood_before": {
            "label": "Mood Before Using Skill",
            "type": "range",
            "tier": "silver",
            "min": 1,
            "max": 10,
        },
        "mood_after": {
            "label": "Mood After Using Skill",
            "type": "range",
            "tier": "silver",
            "min": 1,
            "max": 10,
        },
        "time_taken": {
            "label": "How Long Did You Use It?",
            "type": "select",
            "tier": "silver",
            "options": {
                "": "Select...",
                "under_1": "Under 1 minute",
                "1_5": "1-5 minutes",
                "5_10": "5-10 minutes",
                "10_20": "10-20 minutes",
                "20_30": "20-30 minutes",
                "30_60": "30-60 minutes",
                "over_60": "Over an hour",
            },
        },
        "skill_source": {
            "label": "Where Did You Learn This?",
            "type": "select",
            "tier": "silver",
            "options": {
                "": "Select...",
                "therapist": "Therapist",
                "app": "App",
                "book": "Book",
                "video": "Video",
                "group": "Support group",
                "friend": "Friend or family",
                "self": "Figured it out myself",
                "other": "Other",
            },
        },
    }

    def clean(self, validated, data, context):
        errors = {}
        if "mood_before" in validated and "mood_after" not in validated:
            errors["mood_after"] = "Please also rate your mood after using the skill."
        elif "mood_after" in validated and "mood_before" not in validated:
            errors["mood_before"] = "Please also rate your mood before using the skill."
        return errors

    def compute_severity(self, validated, context):
        # A skill that did not help means a harder moment
        return 11 - validated["effectiveness"]

    def calculate(self, validated, context):
        calculated = self.stamp(context, "skill")
        if "mood_before" in validated and "mood_after" in validated:
            before = validated["mood_before"]
            improvement = validated["mood_after"] - before
            calculated["mood_improvement"] = improvement
            calculated["mood_improvement_percent"] = round_half_up(improvement / before * 100)
        return calculated
