# spiral_app/core/registry.py

import logging
from typing import Any, Dict, List, Optional

from spiral_app.config.constants import OPTION_ENABLED_WIDGETS, OPTION_WIDGET_SETTINGS
from spiral_app.core.errors import UnknownWidget
from spiral_app.core.widget import Widget
from spiral_app.persistence.repository import OptionRepository

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class WidgetRegistry:
    """Holds widget instances by id, in registration order."""

    def __init__(self):
        self._widgets: Dict[str, Widget] = {}

    def register(self, widget: Widget) -> Widget:
        if not widget.widget_id:
            raise ValueError("Widget %r has no widget_id" % widget)
        if widget.widget_id in self._widgets:
            logger.warning("Replacing registered widget '%s'", widget.widget_id)
        self._widgets[widget.widget_id] = widget
        return widget

    def get(self, widget_id: str) -> Widget:
        try:
            return self._widgets[widget_id]
        except KeyError:
            raise UnknownWidget(widget_id)

    def ids(self) -> List[str]:
        return list(self._widgets)

    def all(self) -> List[Widget]:
        return list(self._widgets.values())

    def __contains__(self, widget_id):
        return widget_id in self._widgets

    def __len__(self):
        return len(self._widgets)


def default_registry() -> WidgetRegistry:
    """Registry with every built-in tracker."""
    from spiral_app.modules.coping_logger import CopingLogger
    from spiral_app.modules.daily_checkin import DailyCheckin
    from spiral_app.modules.goal_setting import GoalSetting
    from spiral_app.modules.medication_tracker import MedicationTracker
    from spiral_app.modules.mood_tracker import MoodTracker
    from spiral_app.modules.overthinking_logger import OverthinkingLogger
    from spiral_app.modules.sleep_tracker import SleepTracker
    from spiral_app.modules.trigger_tracker import TriggerTracker

    registry = WidgetRegistry()
    for widget_cls in (
        MoodTracker,
        SleepTracker,
        MedicationTracker,
        GoalSetting,
        CopingLogger,
        OverthinkingLogger,
        TriggerTracker,
        DailyCheckin,
    ):
        registry.register(widget_cls())
    return registry


class WidgetSettings:
    """
    Site-wide widget switches and per-widget settings, stored as options.

    An empty ``enabled_widgets`` list means every registered widget is on.
    """

    def __init__(self, options: OptionRepository, registry: WidgetRegistry):
        self.options = options
        self.registry = registry

    def enabled_ids(self) -> List[str]:
        enabled = self.options.get(OPTION_ENABLED_WIDGETS, []) or []
        if not enabled:
            return self.registry.ids()
        return [widget_id for widget_id in enabled if widget_id in self.registry]

    def is_enabled(self, widget_id: str) -> bool:
        enabled = self.options.get(OPTION_ENABLED_WIDGETS, []) or []
        return not enabled or widget_id in enabled

    def enable(self, widget_id: str):
        self.registry.get(widget_id)
        enabled = self.options.get(OPTION_ENABLED_WIDGETS, []) or []
        if not enabled:
            # Already on: nothing is switched off yet
            return
        if widget_id not in enabled:
            enabled.append(widget_id)
            self.options.set(OPTION_ENABLED_WIDGETS, enabled)
        logger.info("Enabled widget '%s'", widget_id)

    def disable(self, widget_id: str):
        self.registry.get(widget_id)
        enabled = self.options.get(OPTION_ENABLED_WIDGETS, []) or []
        if not enabled:
            enabled = self.registry.ids()
        if widget_id in enabled:
            enabled.remove(widget_id)
            if not enabled:
                # An empty list would read back as "everything enabled"
                raise ValueError("At least one widget must stay enabled.")
            self.options.set(OPTION_ENABLED_WIDGETS, enabled)
        logger.info("Disabled widget '%s'", widget_id)

    def get_settings(self, widget_id: str, key: Optional[str] = None, default: Any = None) -> Any:
        widget = self.registry.get(widget_id)
        stored = self.options.get(OPTION_WIDGET_SETTINGS % widget_id)
        settings = dict(widget.default_settings)
        if stored:
            settings.update(stored)
        if key is None:
            return settings
        return settings.get(key, default)

    def update_settings(self, widget_id: str, new_settings: Dict[str, Any]) -> Dict[str, Any]:
        self.registry.get(widget_id)
        merged = self.get_settings(widget_id)
        merged.update(new_settings or {})
        self.options.set(OPTION_WIDGET_SETTINGS % widget_id, merged)
        return merged
