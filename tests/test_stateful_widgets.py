"""
Tests for the trackers that keep per-user state between entries:
medications and goals.
"""

import pytest

from spiral_app.core.errors import LimitReached, ValidationFailed
from spiral_app.modules.goal_setting import GoalSetting
from spiral_app.modules.medication_tracker import MedicationTracker


def add_medication(widget, context, name="Sertraline"):
    episode = widget.process_data(
        {
            "action_type": "add_medication",
            "medication_name": name,
            "dosage": "50mg",
            "frequency": "once_daily",
        },
        context,
    )
    return episode.data["calculated"]["medication_id"]


class TestMedicationTracker:
    def test_add_medication(self, make_context):
        widget = MedicationTracker()
        context = make_context()
        med_id = add_medication(widget, context)

        assert med_id.startswith("med_")
        meds = widget.get_medications(context)
        assert meds[med_id]["name"] == "Sertraline"
        assert meds[med_id]["status"] == "active"
        assert widget.count_active(context) == 1

    def test_add_requires_dosage_and_frequency(self, make_context):
        with pytest.raises(ValidationFailed) as exc:
            MedicationTracker().process_data(
                {"action_type": "add_medication", "medication_name": "Lithium"}, make_context()
            )
        assert exc.value.errors == {
            "dosage": "Please enter the dosage.",
            "frequency": "Please select the frequency.",
        }

    def test_free_tier_medication_limit(self, make_context):
        widget = MedicationTracker()
        context = make_context()
        add_medication(widget, context, "A")
        add_medication(widget, context, "B")
        with pytest.raises(LimitReached) as exc:
            add_medication(widget, context, "C")
        assert exc.value.code == "item_limit_reached"

    def test_existing_medication_options_are_per_user(self, make_context):
        widget = MedicationTracker()
        context = make_context()
        med_id = add_medication(widget, context)

        schema = {f["name"]: f for f in widget.get_schema("free", context)}
        assert med_id in schema["existing_medication"]["options"]

        other = {f["name"]: f for f in widget.get_schema("free", make_context(user_id=2))}
        assert med_id not in other["existing_medication"]["options"]

    def test_take_and_skip_update_adherence(self, make_context):
        widget = MedicationTracker()
        context = make_context()
        med_id = add_medication(widget, context)

        taken = widget.process_data(
            {"action_type": "take_medication", "existing_medication": med_id}, context
        )
        assert taken.severity == 2
        assert taken.data["calculated"]["adherence"] is True

        skipped = widget.process_data(
            {"action_type": "skip_dose", "existing_medication": med_id, "skip_reason": "forgot"},
            context,
        )
        assert skipped.severity == 7
        assert skipped.data["calculated"]["adherence"] is False

        summary = widget.user_summary(context)
        assert summary["doses_taken"] == 1
        assert summary["doses_skipped"] == 1
        assert summary["adherence_rate"] == 50.0

        med = widget.get_medications(context)[med_id]
        assert len(med["dose_history"]) == 1
        assert med["skip_history"][0]["reason"] == "forgot"

    def test_unknown_medication_rejected(self, make_context):
        with pytest.raises(ValidationFailed) as exc:
            MedicationTracker().process_data(
                {"action_type": "take_medication", "existing_medication": "med_missing"},
                make_context(),
            )
        assert "existing_medication" in exc.value.errors

    def test_side_effect_severity(self, make_context):
        widget = MedicationTracker()
        context = make_context("silver")
        med_id = add_medication(widget, context)
        episode = widget.process_data(
            {
                "action_type": "side_effect",
                "existing_medication": med_id,
                "side_effect_type": ["nausea", "headache"],
                "side_effect_severity": 8,
            },
            context,
        )
        assert episode.severity == 8
        assert episode.data["calculated"]["side_effect_count"] == 2
        assert widget.user_summary(context)["side_effects"] == 1

    def test_efficacy_review(self, make_context):
        widget = MedicationTracker()
        context = make_context("gold")
        med_id = add_medication(widget, context)
        episode = widget.process_data(
            {
                "action_type": "efficacy_review",
                "existing_medication": med_id,
                "efficacy_rating": 3,
                "efficacy_notes": "Barely noticing a difference",
            },
            context,
        )
        assert episode.severity == 8
        reviews = widget.get_medications(context)[med_id]["efficacy_reviews"]
        assert reviews == [
            {"date": "2024-03-14", "rating": 3, "notes": "Barely noticing a difference"}
        ]

    def test_dose_history_keeps_latest_ninety(self, make_context):
        widget = MedicationTracker()
        context = make_context()
        med_id = add_medication(widget, context)
        for n in range(1, 92):
            widget.process_data(
                {"action_type": "take_medication", "existing_medication": med_id, "notes": "dose %d" % n},
                context,
            )
        med = widget.get_medications(context)[med_id]
        assert med["doses_taken"] == 91
        history = med["dose_history"]
        assert len(history) == 90
        assert history[0]["notes"] == "dose 2"
        assert history[-1]["notes"] == "dose 91"

    def test_discontinue_frees_a_slot(self, make_context):
        widget = MedicationTracker()
        context = make_context("silver")
        med_id = add_medication(widget, context)
        episode = widget.process_data(
            {
                "action_type": "update_medication",
                "existing_medication": med_id,
                "discontinue": "yes",
                "discontinue_reason": "Side effects",
            },
            context,
        )
        assert episode.severity == 6
        med = widget.get_medications(context)[med_id]
        assert med["status"] == "discontinued"
        assert med["end_date"] == "2024-03-14"
        assert widget.count_active(context) == 0


class TestGoalSetting:
    @staticmethod
    def new_goal(widget, context, title="Walk daily"):
        episode = widget.process_data(
            {"action_type": "new_goal", "goal_title": title, "motivation": "More energy"},
            context,
        )
        return episode

    def test_new_goal(self, make_context):
        widget = GoalSetting()
        context = make_context()
        episode = self.new_goal(widget, context)
        assert episode.severity == 3
        goal_id = episode.data["calculated"]["goal_id"]
        goal = widget.get_active_goals(context)[goal_id]
        assert goal["status"] == "active"
        assert goal["progress"] == 0
        assert goal["created_date"] == "2024-03-14"

    def test_motivation_required(self, make_context):
        with pytest.raises(ValidationFailed) as exc:
            GoalSetting().process_data({"action_type": "new_goal", "goal_title": "Sleep"}, make_context())
        assert exc.value.errors == {"motivation": "Please describe why this goal is important to you."}

    def test_progress_and_completion(self, make_context):
        widget = GoalSetting()
        context = make_context()
        goal_id = self.new_goal(widget, context).data["calculated"]["goal_id"]

        widget.process_data(
            {"action_type": "update_progress", "existing_goal": goal_id, "progress_update": 40},
            context,
        )
        assert widget.get_active_goals(context)[goal_id]["progress"] == 40

        done = widget.process_data({"action_type": "complete_goal", "existing_goal": goal_id}, context)
        assert done.severity == 2
        assert goal_id not in widget.get_active_goals(context)
        assert widget.get_completed_goals(context)[goal_id]["progress"] == 100
        assert widget.user_summary(context)["success_rate"] == 100.0

    def test_active_goal_limit_counts_only_active(self, make_context):
        widget = GoalSetting()
        context = make_context()
        ids = [self.new_goal(widget, context, "Goal %d" % i).data["calculated"]["goal_id"] for i in range(3)]

        with pytest.raises(LimitReached) as exc:
            self.new_goal(widget, context, "One too many")
        assert "3 active goals" in exc.value.message

        widget.process_data({"action_type": "pause_goal", "existing_goal": ids[0]}, context)
        self.new_goal(widget, context, "Now there is room")

        summary = widget.user_summary(context)
        assert summary["active_goals"] == 3
        assert summary["paused_goals"] == 1
