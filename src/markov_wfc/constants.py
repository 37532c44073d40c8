"""Contains global constants and default values used throughout the project."""

# === MODEL CONSTANTS ===

UNCOLLAPSED_TILE_INDEX: int = -1

GRID_SIZE_DEFAULT: int = 10

TILES_COUNT_DEFAULT: int = 5

# The tile whose cells receive spawned objects once the grid has converged.
SPAWN_MARKER_TILE_DEFAULT: int = 4
SPAWN_POOL_SIZE_DEFAULT: int = 3

# Pause between two collapse iterations so a host frame loop is not starved.
WFC_PACING_DELAY_SECONDS: float = 0.001

# === LOGGING CONSTANTS ===

LOG_FORMAT: str = "%(asctime)s | %(levelname)-8s | %(name)-35s | %(message)s"
LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
LOG_FILE_MAX_BYTES: int = 10 * 1024 * 1024
LOG_FILE_BACKUP_COUNT: int = 5
