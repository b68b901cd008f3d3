# spiral_app/modules/goal_setting.py

import logging
import random
from typing import Any, Dict

from spiral_app.config.constants import UNLIMITED
from spiral_app.core.utils import round_half_up
from spiral_app.core.widget import Widget, WidgetContext

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

ACTIVE_GOALS_META = "active_goals"
COMPLETED_GOALS_META = "completed_goals"

GOAL_LIMIT_MESSAGE = (
    "You have reached your limit of %d active goals. "
    "Complete or pause a goal to add new ones."
)

ACTION_SEVERITY = {
    "new_goal": 3,
    "update_progress": 4,
    "complete_goal": 2,
    "pause_goal": 6,
    "reflect": 5,
}


def _when(action):
    return {"field": "action_type", "value": action}


class GoalSetting(Widget):
    widget_id = "goal-setting"
    name = "Goal Setting"
    description = "Set and track your mental health goals"
    icon = "dashicons-flag"
    capabilities = ["analytics", "milestones"]
    default_settings = {"show_completed": True}
    trend_field = "progress_update"
    top_fields = ["goal_category"]

    tier_features = {
        "free": {"basic_goals": True, "goal_tracking": True, "max_active_goals": 3},
        "silver": {
            "smart_goals": True,
            "milestone_tracking": True,
            "goal_categories": True,
            "max_active_goals": 5,
        },
        "gold": {
            "goal_templates": True,
            "accountability_partners": True,
            "reminder_system": True,
            "max_active_goals": 10,
        },
        "platinum": {
            "ai_goal_suggestions": True,
            "therapist_collaboration": True,
            "max_active_goals": UNLIMITED,
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
                "new_goal": "Set New Goal",
                "update_progress": "Update Goal Progress",
                "complete_goal": "Mark Goal Complete",
                "pause_goal": "Pause Goal",
                "reflect": "Goal Reflection",
            },
        },
        "goal_title": {
            "label": "Goal Title",
            "type": "text",
            "required": True,
            "required_message": "Please enter a goal title.",
            "conditional": _when("new_goal"),
        },
        "existing_goal": {
            "label": "Select Goal",
            "type": "select",
            "required": True,
            "required_message": "Please select a goal.",
            "options": {"": "-- Select Goal --"},
            "conditional": _when(["update_progress", "complete_goal", "pause_goal"]),
        },
        "goal_category": {
            "label": "Goal Category",
            "type": "select",
            "tier": "silver",
            "conditional": _when("new_goal"),
            "options": {
                "": "-- Select Category --",
                "mental_health": "Mental Health",
                "physical_health": "Physical Health",
                "relationships": "Relationships",
                "career": "Career/Work",
                "personal_growth": "Personal Growth",
                "habits": "Habits & Routines",
                "therapy": "Therapy Goals",
                "recovery": "Recovery",
                "other": "Other",
            },
        },
        "goal_description": {
            "label": "Goal Description",
            "type": "textarea",
            "rows": 3,
            "conditional": _when("new_goal"),
        },
        "goal_type": {
            "label": "Goal Type",
            "type": "radio",
            "tier": "silver",
            "default": "outcome",
            "conditional": _when("new_goal"),
            "options": {
                "outcome": "Outcome Goal (achieve a result)",
                "process": "Process Goal (maintain a practice)",
                "habit": "Habit Goal (build/break a habit)",
            },
        },
        "target_date": {
            "label": "Target Completion Date",
            "type": "date",
            "conditional": _when("new_goal"),
        },
        "motivation": {
            "label": "Why is this goal important to you?",
            "type": "textarea",
            "rows": 3,
            "required": True,
            "required_message": "Please describe why this goal is important to you.",
            "conditional": _when("new_goal"),
        },
        "obstacles": {
            "label": "Potential Obstacles",
            "type": "textarea",
            "tier": "silver",
            "rows": 2,
            "conditional": _when("new_goal"),
        },
        "strategies": {
            "label": "Success Strategies",
            "type": "textarea",
            "tier": "silver",
            "rows": 3,
            "conditional": _when("new_goal"),
        },
        "accountability_partner": {
            "label": "Accountability Partner",
            "type": "text",
            "tier": "gold",
            "conditional": _when("new_goal"),
        },
        "reminder_frequency": {
            "label": "Reminder Frequency",
            "type": "select",
            "tier": "gold",
            "conditional": _when("new_goal"),
            "options": {
                "": "No reminders",
                "daily": "Daily",
                "weekly": "Weekly",
                "biweekly": "Bi-weekly",
                "monthly": "Monthly",
            },
        },
        "progress_update": {
            "label": "Progress Update",
            "type": "range",
            "min": 0,
            "max": 100,
            "default": 0,
            "conditional": _when("update_progress"),
        },
        "progress_notes": {
            "label": "Progress Notes",
            "type": "textarea",
            "rows": 3,
            "conditional": _when("update_progress"),
        },
        "completion_reflection": {
            "label": "Completion Reflection",
            "type": "textarea",
            "rows": 4,
            "conditional": _when("complete_goal"),
        },
        "lessons_learned": {
            "label": "Lessons Learned",
            "type": "textarea",
            "tier": "silver",
            "rows": 3,
            "conditional": _when(["complete_goal", "reflect"]),
        },
        "pause_reason": {
            "label": "Reason for Pausing",
            "type": "textarea",
            "rows": 2,
            "conditional": _when("pause_goal"),
        },
        "resume_date": {
            "label": "Expected Resume Date",
            "type": "date",
            "tier": "silver",
            "conditional": _when("pause_goal"),
        },
        "share_with_therapist": {
            "label": "Share with Therapist?",
            "type": "radio",
            "tier": "platinum",
            "default": "no",
            "options": {"yes": "Yes, share this goal", "no": "No, keep private"},
        },
        "notes": {"label": "Additional Notes", "type": "textarea", "rows": 2},
    }

    def get_active_goals(self, context: WidgetContext) -> Dict[str, Dict[str, Any]]:
        goals = context.user_meta.get(context.user_id, ACTIVE_GOALS_META, {})
        return goals if isinstance(goals, dict) else {}

    def get_completed_goals(self, context: WidgetContext) -> Dict[str, Dict[str, Any]]:
        goals = context.user_meta.get(context.user_id, COMPLETED_GOALS_META, {})
        return goals if isinstance(goals, dict) else {}

    def count_active(self, context: WidgetContext) -> int:
        # Paused goals free up a slot
        return sum(1 for goal in self.get_active_goals(context).values() if goal.get("status") == "active")

    def field_options(self, context):
        options = {"": "-- Select Goal --"}
        for goal_id, goal in self.get_active_goals(context).items():
            label = "%s (%d%%)" % (goal.get("title", goal_id), goal.get("progress", 0))
            if goal.get("status") == "paused":
                label += " [paused]"
            options[goal_id] = label
        return {"existing_goal": options}

    def user_summary(self, context):
        active = self.get_active_goals(context)
        completed = self.get_completed_goals(context)
        total = len(active) + len(completed)
        return {
            "active_goals": self.count_active(context),
            "paused_goals": sum(1 for g in active.values() if g.get("status") == "paused"),
            "completed_goals": len(completed),
            "success_rate": round_half_up(len(completed) / total * 100, 1) if total else 0,
        }

    def check_limits(self, data, context):
        if data.get("action_type") != "new_goal":
            return
        self.enforce_count_limit(
            "max_active_goals",
            self.count_active(context),
            context,
            GOAL_LIMIT_MESSAGE,
            "item_limit_reached",
        )

    def compute_severity(self, validated, context):
        return ACTION_SEVERITY.get(validated["action_type"])

    def calculate(self, validated, context):
        return {
            "action_date": context.now.strftime("%Y-%m-%d"),
            "action_time": context.now.strftime("%H:%M:%S"),
        }

    def apply(self, validated, calculated, context):
        action = validated["action_type"]
        goals = self.get_active_goals(context)
        today = context.now.strftime("%Y-%m-%d")
        user_meta, user_id = context.user_meta, context.user_id

        if action == "new_goal":
            goal_id = "goal_%d_%d" % (int(context.now.timestamp()), random.randint(1000, 9999))
            goals[goal_id] = {
                "title": validated.get("goal_title", ""),
                "description": validated.get("goal_description", ""),
                "category": validated.get("goal_category", "other"),
                "type": validated.get("goal_type", "outcome"),
                "motivation": validated.get("motivation", ""),
                "target_date": validated.get("target_date", ""),
                "created_date": today,
                "status": "active",
                "progress": 0,
                "updates": [],
            }
            user_meta.set(user_id, ACTIVE_GOALS_META, goals)
            calculated["goal_id"] = goal_id
            return

        goal_id = validated.get("existing_goal")
        goal = goals.get(goal_id) if goal_id else None
        if goal is None:
            return
        calculated["goal_id"] = goal_id

        if action == "update_progress" and "progress_update" in validated:
            progress = validated["progress_update"]
            goal["progress"] = progress
            goal["last_update"] = today
            goal.setdefault("updates", []).append(
                {"date": today, "progress": progress, "notes": validated.get("progress_notes", "")}
            )
            user_meta.set(user_id, ACTIVE_GOALS_META, goals)
            calculated["progress"] = progress

        elif action == "complete_goal":
            completed = self.get_completed_goals(context)
            goal.update(
                {
                    "status": "completed",
                    "progress": 100,
                    "completion_date": today,
                    "completion_reflection": validated.get("completion_reflection", ""),
                }
            )
            completed[goal_id] = goal
            del goals[goal_id]
            user_meta.set(user_id, ACTIVE_GOALS_META, goals)
            user_meta.set(user_id, COMPLETED_GOALS_META, completed)
            calculated["completed"] = True

        elif action == "pause_goal":
            goal.update(
                {
                    "status": "paused",
                    "pause_date": today,
                    "pause_reason": validated.get("pause_reason", ""),
                    "resume_date": validated.get("resume_date", ""),
                }
            )
            user_meta.set(user_id, ACTIVE_GOALS_META, goals)
            calculated["paused"] = True
