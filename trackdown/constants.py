"""
Constants for the trackdown index.

Note: These constants serve as default fallback values.
Actual values are loaded from .trackdown/config.json at runtime via
StorageManager.load_config().
"""

# =============================================================================
# Default Fallback Values
# These are used if config.json doesn't exist or doesn't specify a value.
# =============================================================================

# Directory layout defaults
DEFAULT_CONFIG_DIR_NAME = ".trackdown"
DEFAULT_TASKS_DIRECTORY = "tasks"
DEFAULT_EPICS_DIR = "epics"
DEFAULT_ISSUES_DIR = "issues"
DEFAULT_TASKS_DIR = "tasks"
DEFAULT_PRS_DIR = "prs"
DEFAULT_FILE_EXTENSION = ".md"

# Id prefix defaults
DEFAULT_PROJECT_PREFIX = "PROJ"
DEFAULT_EPIC_PREFIX = "EP"
DEFAULT_ISSUE_PREFIX = "ISS"
DEFAULT_TASK_PREFIX = "TSK"
DEFAULT_PR_PREFIX = "PR"

# Index defaults
DEFAULT_INDEX_FILE_NAME = ".trackdown-index"
INDEX_VERSION = "1.0.0"
DEFAULT_INDEX_CACHE_TTL = 5.0  # seconds
DEFAULT_RELATIONSHIP_CACHE_TTL = 60.0  # seconds
DEFAULT_SLOW_OPERATION_MS = 100

# Overview defaults
DEFAULT_RECENT_ACTIVITY_DAYS = 7
DEFAULT_RECENT_ACTIVITY_LIMIT = 10

# Item field defaults (not configurable)
DEFAULT_STATUS = "planning"
DEFAULT_PRIORITY = "medium"
UNASSIGNED = "unassigned"
COMPLETED_STATUS = "completed"

# Validation error messages (not configurable)
VALIDATION_TITLE_REQUIRED = "Title is required for all items."
VALIDATION_INVALID_STATUS = (
    "Status must be one of: planning, active, completed, archived, "
    "ready_for_engineering, ready_for_qa, ready_for_deployment, done, won_t_do."
)
VALIDATION_REASON_REQUIRED = "A reason is required when transitioning to won_t_do."
VALIDATION_ACTOR_REQUIRED = "An actor is required for every state transition."

# Health check exit codes
EXIT_HEALTHY = 0
EXIT_ISSUES_FOUND = 1
EXIT_REPAIR_FAILED = 2
EXIT_FATAL = 3
