# spiral_app/modules/medication_tracker.py

"""
Medication adherence tracking.

Unlike the other widgets this one is action driven: ``action_type`` selects
which conditional fields apply, and every action also updates the user's
medication list (kept in user meta under ``medications``, keyed by a
generated medication id).
"""

import logging
import random
from typing import Any, Dict

from spiral_app.config.constants import DOSE_HISTORY_LIMIT, UNLIMITED
from spiral_app.core.utils import round_half_up
from spiral_app.core.widget import Widget, WidgetContext

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

MEDICATIONS_META = "medications"

MEDICATION_LIMIT_MESSAGE = "You have reached your limit of %d medications. Upgrade to track more."

ACTIONS_WITH_EXISTING = [
    "take_medication",
    "skip_dose",
    "side_effect",
    "update_medication",
    "efficacy_review",
]
ADD_OR_UPDATE = ["add_medication", "update_medication"]

# Base severity per action; side effects and efficacy reviews use their ratings
ACTION_SEVERITY = {
    "add_medication": 3,
    "take_medication": 2,
    "skip_dose": 7,
    "side_effect": 5,
    "update_medication": 5,
    "efficacy_review": 5,
}
DISCONTINUE_SEVERITY = 6


def _when(action):
    return {"field": "action_type", "value": action}


class MedicationTracker(Widget):
    widget_id = "medication-tracker"
    name = "Medication Tracker"
    description = "Track medication adherence and monitor side effects"
    icon = "dashicons-heart"
    capabilities = ["analytics", "adherence", "prescriber_reports"]
    default_settings = {"show_adherence": True}
    top_fields = ["skip_reason", "side_effect_type"]

    tier_features = {
        "free": {"basic_tracking": True, "adherence_tracking": True, "max_medications": 2},
        "silver": {
            "side_effect_tracking": True,
            "reminder_notes": True,
            "mood_correlation": True,
            "max_medications": 5,
        },
        "gold": {
            "efficacy_tracking": True,
            "interaction_warnings": True,
            "refill_tracking": True,
            "max_medications": 10,
        },
        "platinum": {
            "prescriber_reports": True,
            "pharmacy_integration": True,
            "max_medications": UNLIMITED,
        },
    }

    field_definitions = {
        "action_type": {
            "label": "Action",
            "type": "select",
            "required": True,
            "required_message": "Please select an action.",
            "options": {
                "": "-- Select Action --",
                "take_medication": "Record Medication Taken",
                "skip_dose": "Record Skipped Dose",
                "side_effect": "Report Side Effect",
                "add_medication": "Add New Medication",
                "update_medication": "Update Medication",
                "efficacy_review": "Efficacy Review",
            },
        },
        "medication_name": {
            "label": "Medication Name",
            "type": "text",
            "required": True,
            "required_message": "Please enter the medication name.",
            "conditional": _when("add_medication"),
        },
        "existing_medication": {
            "label": "Select Medication",
            "type": "select",
            "required": True,
            "required_message": "Please select a medication.",
            "options": {"": "-- Select Medication --"},
            "conditional": _when(ACTIONS_WITH_EXISTING),
        },
        "dosage": {
            "label": "Dosage",
            "type": "text",
            "placeholder": "e.g., 50mg, 2 tablets",
            "conditional": _when(ADD_OR_UPDATE),
        },
        "frequency": {
            "label": "Frequency",
            "type": "select",
            "conditional": _when(ADD_OR_UPDATE),
            "options": {
                "": "-- Select Frequency --",
                "as_needed": "As Needed (PRN)",
                "once_daily": "Once Daily",
                "twice_daily": "Twice Daily",
                "three_daily": "Three Times Daily",
                "four_daily": "Four Times Daily",
                "every_other_day": "Every Other Day",
                "weekly": "Weekly",
                "biweekly": "Bi-weekly",
                "monthly": "Monthly",
            },
        },
        "medication_type": {
            "label": "Medication Type",
            "type": "select",
            "tier": "silver",
            "conditional": _when(ADD_OR_UPDATE),
            "options": {
                "": "-- Select Type --",
                "antidepressant": "Antidepressant",
                "anti_anxiety": "Anti-Anxiety",
                "mood_stabilizer": "Mood Stabilizer",
                "antipsychotic": "Antipsychotic",
                "stimulant": "Stimulant",
                "sleep_aid": "Sleep Aid",
                "supplement": "Supplement/Vitamin",
                "other": "Other",
            },
        },
        "prescriber": {
            "label": "Prescriber",
            "type": "text",
            "tier": "silver",
            "conditional": _when(ADD_OR_UPDATE),
        },
        "start_date": {"label": "Start Date", "type": "date", "conditional": _when("add_medication")},
        "time_taken": {
            "label": "Time Taken",
            "type": "select",
            "conditional": _when("take_medication"),
            "options": {
                "": "-- Select Time --",
                "morning": "Morning",
                "noon": "Noon",
                "afternoon": "Afternoon",
                "evening": "Evening",
                "bedtime": "Bedtime",
                "as_needed": "As Needed",
            },
        },
        "skip_reason": {
            "label": "Reason for Skipping",
            "type": "select",
            "required": True,
            "required_message": "Please select a reason for skipping.",
            "conditional": _when("skip_dose"),
            "options": {
                "": "-- Select Reason --",
                "forgot": "Forgot",
                "side_effects": "Side Effects",
                "feeling_better": "Feeling Better",
                "ran_out": "Ran Out",
                "cost": "Cost/Insurance Issues",
                "traveling": "Traveling",
                "other": "Other",
            },
        },
        "side_effect_type": {
            "label": "Side Effect Type",
            "type": "checkbox",
            "tier": "silver",
            "required": True,
            "required_message": "Please select at least one side effect type.",
            "conditional": _when("side_effect"),
            "options": {
                "nausea": "Nausea/Stomach Upset",
                "headache": "Headache",
                "dizziness": "Dizziness",
                "fatigue": "Fatigue/Drowsiness",
                "insomnia": "Insomnia",
                "weight_change": "Weight Change",
                "appetite_change": "Appetite Change",
                "mood_change": "Mood Changes",
                "sexual": "Sexual Side Effects",
                "tremor": "Tremor/Shaking",
                "dry_mouth": "Dry Mouth",
                "other": "Other",
            },
        },
        "side_effect_severity": {
            "label": "Side Effect Severity",
            "type": "range",
            "tier": "silver",
            "min": 1,
            "max": 10,
            "default": 5,
            "required": True,
            "required_message": "Please rate the severity of the side effect.",
            "conditional": _when("side_effect"),
        },
        "side_effect_description": {
            "label": "Describe Side Effect",
            "type": "textarea",
            "tier": "silver",
            "rows": 3,
            "conditional": _when("side_effect"),
        },
        "mood_before": {
            "label": "Mood Before Medication",
            "type": "range",
            "tier": "silver",
            "min": 1,
            "max": 10,
            "conditional": _when("take_medication"),
        },
        "mood_after": {
            "label": "Mood After Medication",
            "type": "range",
            "tier": "silver",
            "min": 1,
            "max": 10,
            "conditional": _when("take_medication"),
        },
        "efficacy_rating": {
            "label": "How Well Is This Medication Working?",
            "type": "range",
            "tier": "gold",
            "min": 1,
            "max": 10,
            "default": 5,
            "conditional": _when("efficacy_review"),
        },
        "efficacy_notes": {
            "label": "Efficacy Notes",
            "type": "textarea",
            "tier": "gold",
            "rows": 3,
            "conditional": _when("efficacy_review"),
        },
        "refill_date": {
            "label": "Next Refill Date",
            "type": "date",
            "tier": "gold",
            "conditional": _when(ADD_OR_UPDATE),
        },
        "discontinue": {
            "label": "Discontinue Medication?",
            "type": "radio",
            "tier": "silver",
            "default": "no",
            "conditional": _when("update_medication"),
            "options": {"no": "No, continue medication", "yes": "Yes, discontinue"},
        },
        "discontinue_reason": {
            "label": "Reason for Discontinuing",
            "type": "textarea",
            "tier": "silver",
            "rows": 2,
            "conditional": {"field": "discontinue", "value": "yes"},
        },
        "share_with_prescriber": {
            "label": "Share with Prescriber?",
            "type": "radio",
            "tier": "platinum",
            "default": "yes",
            "options": {"yes": "Yes, include in report", "no": "No, keep private"},
        },
        "notes": {"label": "Additional Notes", "type": "textarea", "rows": 3},
    }

    # ------------------------------------------------------------------
    # Per-user medication list
    # ------------------------------------------------------------------
    def get_medications(self, context: WidgetContext) -> Dict[str, Dict[str, Any]]:
        medications = context.user_meta.get(context.user_id, MEDICATIONS_META, {})
        return medications if isinstance(medications, dict) else {}

    def save_medications(self, context: WidgetContext, medications: Dict[str, Dict[str, Any]]):
        context.user_meta.set(context.user_id, MEDICATIONS_META, medications)

    def count_active(self, context: WidgetContext) -> int:
        return sum(
            1 for med in self.get_medications(context).values() if med.get("status") == "active"
        )

    def field_options(self, context):
        options = {"": "-- Select Medication --"}
        for med_id, med in self.get_medications(context).items():
            label = med.get("name", med_id)
            if med.get("dosage"):
                label = "%s (%s)" % (label, med["dosage"])
            if med.get("status") != "active":
                label = "%s [%s]" % (label, med.get("status"))
            options[med_id] = label
        return {"existing_medication": options}

    def user_summary(self, context):
        medications = self.get_medications(context)
        taken = sum(med.get("doses_taken", 0) for med in medications.values())
        skipped = sum(med.get("doses_skipped", 0) for med in medications.values())
        total = taken + skipped
        return {
            "active_medications": self.count_active(context),
            "doses_taken": taken,
            "doses_skipped": skipped,
            "adherence_rate": round_half_up(taken / total * 100, 1) if total else 0,
            "side_effects": sum(len(med.get("side_effects", [])) for med in medications.values()),
        }

    # ------------------------------------------------------------------
    # Pipeline hooks
    # ------------------------------------------------------------------
    def check_limits(self, data, context):
        if data.get("action_type") != "add_medication":
            return
        self.enforce_count_limit(
            "max_medications",
            self.count_active(context),
            context,
            MEDICATION_LIMIT_MESSAGE,
            "item_limit_reached",
        )

    def clean(self, validated, data, context):
        errors = {}
        if validated.get("action_type") == "add_medication":
            if not validated.get("dosage"):
                errors["dosage"] = "Please enter the dosage."
            if not validated.get("frequency"):
                errors["frequency"] = "Please select the frequency."
        return errors

    def compute_severity(self, validated, context):
        action = validated["action_type"]
        if action == "side_effect" and "side_effect_severity" in validated:
            return validated["side_effect_severity"]
        if action == "efficacy_review" and "efficacy_rating" in validated:
            return 11 - validated["efficacy_rating"]
        if action == "update_medication" and validated.get("discontinue") == "yes":
            return DISCONTINUE_SEVERITY
        return ACTION_SEVERITY.get(action)

    def calculate(self, validated, context):
        calculated = self.stamp(context, "action")
        action = validated["action_type"]
        if action == "take_medication":
            calculated["adherence"] = True
            if "mood_before" in validated and "mood_after" in validated:
                calculated["mood_change"] = validated["mood_after"] - validated["mood_before"]
        elif action == "skip_dose":
            calculated["adherence"] = False
        elif action == "side_effect":
            calculated["side_effect_count"] = len(validated.get("side_effect_type", []))
        return calculated

    def apply(self, validated, calculated, context):
        action = validated["action_type"]
        medications = self.get_medications(context)
        today = context.now.strftime("%Y-%m-%d")

        if action == "add_medication":
            med_id = "med_%d_%d" % (int(context.now.timestamp()), random.randint(1000, 9999))
            medications[med_id] = {
                "name": validated.get("medication_name", ""),
                "dosage": validated.get("dosage", ""),
                "frequency": validated.get("frequency", ""),
                "type": validated.get("medication_type", "other"),
                "prescriber": validated.get("prescriber", ""),
                "start_date": validated.get("start_date", today),
                "refill_date": validated.get("refill_date", ""),
                "status": "active",
                "doses_taken": 0,
                "doses_skipped": 0,
                "side_effects": [],
                "efficacy_reviews": [],
            }
            calculated["medication_id"] = med_id
            self.save_medications(context, medications)
            logger.info("User %s added medication %s", context.user_id, med_id)
            return

        med_id = validated.get("existing_medication")
        med = medications.get(med_id)
        if med is None:
            return
        calculated["medication_id"] = med_id

        if action == "take_medication":
            med["doses_taken"] = med.get("doses_taken", 0) + 1
            med["last_taken"] = context.now.strftime("%Y-%m-%d %H:%M:%S")
            history = med.get("dose_history", [])
            history.append(
                {
                    "date": today,
                    "time": validated.get("time_taken", context.now.strftime("%H:%M")),
                    "mood_before": validated.get("mood_before"),
                    "mood_after": validated.get("mood_after"),
                    "notes": validated.get("notes", ""),
                }
            )
            med["dose_history"] = history[-DOSE_HISTORY_LIMIT:]
        elif action == "skip_dose":
            med["doses_skipped"] = med.get("doses_skipped", 0) + 1
            med.setdefault("skip_history", []).append(
                {"date": today, "reason": validated.get("skip_reason")}
            )
        elif action == "side_effect":
            med.setdefault("side_effects", []).append(
                {
                    "date": today,
                    "types": validated.get("side_effect_type", []),
                    "severity": validated.get("side_effect_severity", 5),
                    "description": validated.get("side_effect_description", ""),
                }
            )
        elif action == "update_medication":
            for field in ("dosage", "frequency", "refill_date"):
                if validated.get(field):
                    med[field] = validated[field]
            if validated.get("discontinue") == "yes":
                med["status"] = "discontinued"
                med["end_date"] = today
                med["discontinue_reason"] = validated.get("discontinue_reason", "")
        elif action == "efficacy_review":
            med.setdefault("efficacy_reviews", []).append(
                {
                    "date": today,
                    "rating": validated.get("efficacy_rating", 5),
                    "notes": validated.get("efficacy_notes", ""),
                }
            )

        self.save_medications(context, medications)
