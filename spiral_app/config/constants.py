# spiral_app/config/constants.py

"""
Centralized configuration of all quantitative and qualitative parameters
used throughout SpiralEngine.
"""

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━ WIDGET TIERS ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
TIER_HIERARCHY = {
    "free":     0,
    "bronze":   1,
    "silver":   2,
    "gold":     3,
    "platinum": 4,
}
# RATIONALE: Field and widget gates compare levels, never names.

VALID_TIERS = tuple(TIER_HIERARCHY) + ("custom",)
# RATIONALE: "custom" memberships carry their own limits and rank as free for gating.

DEFAULT_TIER = "free"
# RATIONALE: Users without an active membership get the free experience.

UNLIMITED = "unlimited"
# RATIONALE: Sentinel used in limit tables instead of a magic large number.

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━ MEMBERSHIP LEVELS ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
MEMBERSHIP_LEVELS = {
    "discovery": 0,
    "explorer":  1,
    "navigator": 2,
    "voyager":   3,
}
DEFAULT_MEMBERSHIP_LEVEL = "discovery"
# RATIONALE: Content blocks are gated on this ladder, separately from widget tiers.

MEMBERSHIP_STATUS_ACTIVE    = "active"
MEMBERSHIP_STATUS_EXPIRED   = "expired"

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━ USAGE LIMITS ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
DEFAULT_TIER_LIMITS = {
    "episodes_per_month": 50,
    "ai_analyses":        5,
    "widgets":            "all",
    "export_formats":     ["csv"],
}
# RATIONALE: Applied when the tier_limits option holds nothing for a tier.

USAGE_EPISODES = "episodes_per_month"
USAGE_AI_ANALYSES = "ai_analyses"

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━ SEVERITY ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
SEVERITY_MIN     = 1
SEVERITY_MAX     = 10
DEFAULT_SEVERITY = 5
# RATIONALE: Every episode carries a 1–10 severity, midpoint when a widget gives none.

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━ WIDGETS ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
WIDGET_VERSION = "1.0.0"
# RATIONALE: Stored as form_version in episode metadata.

BASE_CAPABILITIES = ("track", "view", "export", "delete")
# RATIONALE: Every widget supports these; widgets append their own.

EPISODE_PAGE_SIZE = 10
# RATIONALE: Default page size for episode history listings.

DOSE_HISTORY_LIMIT = 90
# RATIONALE: Roughly three months of daily doses per medication.

RECURRING_TRIGGER_WINDOW_DAYS = 30
RECURRING_TRIGGER_PREFIX_CHARS = 20
# RATIONALE: A trigger recurs if its description opening was seen within a month.

TREND_WINDOW_DAYS = 7
# RATIONALE: Trends compare the first and last week of the window.

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━ TIME OF DAY ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
TIME_OF_DAY_BUCKETS = (
    ("morning",   5, 12),
    ("afternoon", 12, 17),
    ("evening",   17, 21),
)
TIME_OF_DAY_FALLBACK = "night"
# RATIONALE: Hours outside the listed half-open ranges count as night.

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━ OPTION KEYS ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
OPTION_ENABLED_WIDGETS  = "enabled_widgets"
OPTION_TIER_LIMITS      = "tier_limits"
OPTION_WIDGET_SETTINGS  = "widget_settings:%s"
# RATIONALE: Empty enabled_widgets means every registered widget is enabled.

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━ CONTENT GATES ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
CONTENT_REQUIREMENTS = {
    "dashboard":     "",
    "widget":        "",
    "episode_form":  "",
    "progress":      "",
    "mood_chart":    "",
    "streak":        "",
    "member_only":   "discovery",
    "insights":      "explorer",
    "goal_tracker":  "explorer",
    "ai_insights":   "navigator",
    "predictions":   "voyager",
}
# RATIONALE: Empty requirement means public; any level requires a signed-in user.
