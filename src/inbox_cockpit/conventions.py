"""Inbox Cockpit Conventions - IMMUTABLE

Canonical names, storage keys and fixed limits shared by every view of the
cockpit (task pane, dialog, CLI). These values are NOT configurable:
renaming a storage key orphans every cached record, and the marker
comments must match what earlier insertions left in drafts.

Things that CAN be configured (via cockpit.yaml):
- storage file location
- generator endpoint, mode, tone and reply language
- signature

Things that CANNOT be configured (defined HERE):
- storage keys and their versions
- retention window and history cap
- sentinel comments around inserted AI content
"""

# --- The Root ---
COCKPIT_HOME = "~/.inbox-cockpit"

# --- Configuration ---
CONFIG_FILENAME = "cockpit.yaml"
# Full path: ~/.inbox-cockpit/cockpit.yaml

# --- Local storage ---
STORAGE_FILENAME = "storage.json"
# Full path: ~/.inbox-cockpit/storage.json

# --- Logs ---
LOG_DIR = "logs"  # relative to COCKPIT_HOME
LOG_FILENAME = "cockpit.log"

# --- Storage keys (namespaces) ---
SUMMARY_KEY = "icc.summary.v2"
WORKSPACE_KEY = "icc.workspace.v1"
HISTORY_KEY = "icc.aiHistory.v2"
LEGACY_HISTORY_KEY = "icc.aiHistory.v1"

NAMESPACES = {
    "summaries": SUMMARY_KEY,
    "workspaces": WORKSPACE_KEY,
    "history": HISTORY_KEY,
}

# --- Retention ---
DAY_MS = 24 * 60 * 60 * 1000
RETENTION_MS = 5 * DAY_MS  # same window for all three namespaces
HISTORY_MAX_ENTRIES = 300

# --- Workspace ---
RESULT_SLOT_COUNT = 3
WORKSPACE_FLUSH_DELAY_MS = 250

# --- Auto summary ---
AUTO_SUMMARY_THROTTLE_MS = 30_000
AUTO_SUMMARY_DELAY_MS = 350
SUMMARY_LOCALE = "pt-PT"

# --- Identity ---
FALLBACK_IDENTITY_PREFIX = "nocid::h"
IDENTITY_SEPARATOR = "::"

# --- Draft insertion ---
AI_BLOCK_START = "<!--ICC_AI_START-->"
AI_BLOCK_END = "<!--ICC_AI_END-->"

# --- Events ---
SUMMARY_UPDATED = "icc-summary-updated"

# --- Generator endpoint ---
GENERATE_PATH = "/api/ai/generate"
