# spiral_app/modules/overthinking_logger.py

import logging

from spiral_app.core.widget import Widget

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

# Points each reflective answer contributes to the entry quality score
QUALITY_POINTS = {
    "trigger": 20,
    "category": 10,
    "symptoms": 15,
    "distortions": 20,
    "reframe": 25,
}
COPING_POINTS = 10


class OverthinkingLogger(Widget):
    widget_id = "overthinking-logger"
    name = "Overthinking Logger"
    description = "Capture spiralling thoughts, their triggers and how you reframed them."
    icon = "dashicons-format-status"
    capabilities = ["analytics", "patterns", "ai_analysis"]
    default_settings = {"quick_mode": False}
    trend_field = "severity"
    top_fields = ["category", "distortions", "symptoms"]

    field_definitions = {
        "thought": {
            "label": "What are you overthinking about?",
            "type": "textarea",
            "required": True,
            "required_message": "Please describe what you are overthinking about.",
            "rows": 4,
        },
        "severity": {
            "label": "Severity",
            "type": "range",
            "min": 1,
            "max": 10,
            "required": True,
            "required_message": "Severity must be between 1 and 10.",
            "default": 5,
        },
        "duration": {
            "label": "How long have you been overthinking?",
            "type": "select",
            "options": {
                "": "Select...",
                "few-minutes": "A few minutes",
                "15-30-minutes": "15-30 minutes",
                "30-60-minutes": "30-60 minutes",
                "1-2-hours": "1-2 hours",
                "2-4-hours": "2-4 hours",
                "more-than-4": "More than 4 hours",
                "all-day": "All day",
                "multiple-days": "Multiple days",
            },
        },
        "trigger": {"label": "What triggered this episode?", "type": "text"},
        "category": {
            "label": "Category",
            "type": "select",
            "options": {
                "": "Select...",
                "work": "Work",
                "relationships": "Relationships",
                "health": "Health",
                "finances": "Finances",
                "future": "Future",
                "past": "Past",
                "social": "Social",
                "decisions": "Decisions",
                "performance": "Performance",
                "other": "Other",
            },
        },
        "symptoms": {
            "label": "Physical Symptoms",
            "type": "checkbox",
            "tier": "silver",
            "options": {
                "tension": "Muscle tension",
                "headache": "Headache",
                "fatigue": "Fatigue",
                "restlessness": "Restlessness",
                "stomach": "Stomach issues",
                "heart-racing": "Racing heart",
                "sweating": "Sweating",
                "breathing": "Breathing changes",
            },
        },
        "distortions": {
            "label": "Cognitive Distortions",
            "type": "checkbox",
            "tier": "gold",
            "options": {
                "all-or-nothing": "All-or-nothing thinking",
                "overgeneralization": "Overgeneralization",
                "mental-filter": "Mental filter",
                "disqualifying": "Disqualifying the positive",
                "jumping": "Jumping to conclusions",
                "magnification": "Magnification",
                "emotional": "Emotional reasoning",
                "should": "Should statements",
                "labeling": "Labeling",
                "personalization": "Personalization",
            },
        },
        "reframe": {"label": "Reframe your thoughts", "type": "textarea", "tier": "gold", "rows": 3},
        "coping_strategy": {
            "label": "What helped or might help?",
            "type": "select",
            "tier": "gold",
            "options": {
                "": "Select...",
                "breathing": "Breathing exercises",
                "exercise": "Physical exercise",
                "distraction": "Distraction",
                "talking": "Talking to someone",
                "writing": "Writing it down",
                "meditation": "Meditation",
                "problem-solving": "Problem solving",
                "acceptance": "Acceptance",
                "none-yet": "Nothing yet",
            },
        },
        "notes": {"label": "Additional notes", "type": "textarea", "rows": 2},
        "request_ai_analysis": {
            "label": "Request AI analysis and suggestions",
            "type": "boolean",
            "tier": "platinum",
        },
    }

    def prepare_metadata(self, metadata, validated, context):
        score = sum(points for field, points in QUALITY_POINTS.items() if validated.get(field))
        coping = validated.get("coping_strategy")
        if coping and coping != "none-yet":
            score += COPING_POINTS

        metadata.update(
            {
                "has_symptoms": bool(validated.get("symptoms")),
                "has_distortions": bool(validated.get("distortions")),
                "has_reframe": bool(validated.get("reframe")),
                "quality_score": score,
            }
        )
        return metadata
