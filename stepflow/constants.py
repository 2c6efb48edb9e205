"""Shared constants for stepflow."""

MEMORY_LOAD_STEP_ID = "__memory_load__"
MEMORY_SAVE_STEP_ID = "__memory_save__"
BOOKEND_STEP_IDS = frozenset({MEMORY_LOAD_STEP_ID, MEMORY_SAVE_STEP_ID})

DEFAULT_MAX_ITERATIONS = 100
DEFAULT_MEMORY_HISTORY_LIMIT = 20

PARALLEL_FAIL_FAST = "fail_fast"
PARALLEL_AWAIT_ALL = "await_all"
PARALLEL_POLICIES = (PARALLEL_FAIL_FAST, PARALLEL_AWAIT_ALL)

CONFIG_ENV_VAR = "STEPFLOW_CONFIG"
DATABASE_URL_ENV_VAR = "STEPFLOW_DATABASE_URL"
MAX_ITERATIONS_ENV_VAR = "STEPFLOW_MAX_ITERATIONS"
