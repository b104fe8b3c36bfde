"""Constants and default values for lockf.

This module centralizes magic numbers, naming conventions and exit codes
used throughout the package.
"""

import os

# ==================== LOCK FILE NAMING ====================

# Suffix of the meta-lock that serializes lockf_multi scans for one basename
META_LOCK_SUFFIX: str = ".meta"

# Candidate slot files are "<basename>.<index>"
SLOT_NAME_PATTERN: str = r"\.[0-9]+"

# ==================== TIMEOUT HANDLING ====================

# Sleep between non-blocking retries when SIGALRM cannot be used (non-main threads)
TIMEOUT_POLL_INTERVAL: float = 0.05

# Minimum delay when re-arming a caller's timer that expired during our wait
RESTORED_TIMER_MIN_DELAY: float = 0.001

# ==================== LOGGING DEFAULTS ====================

LOG_FILE_MAX_BYTES: int = 10 * 1024 * 1024  # 10MB max per log file
LOG_FILE_BACKUP_COUNT: int = 5  # Number of backup log files to keep
DEFAULT_LOG_LEVEL: str = "WARNING"
VALID_LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS: tuple[str, ...] = ("text", "json")

# ==================== ENVIRONMENT ====================

ENV_LOG_LEVEL: str = "LOCKF_LOG_LEVEL"
ENV_LOG_FORMAT: str = "LOCKF_LOG_FORMAT"

# ==================== CLI EXIT CODES ====================

EXIT_LOCK_ERROR: int = 1  # open/flock/stat failure
EXIT_USAGE: int = 2  # invalid arguments
EXIT_LOCK_BUSY: int = getattr(os, "EX_TEMPFAIL", 75)  # lock held elsewhere
EXIT_TIMEOUT: int = 124  # same code as timeout(1)
EXIT_COMMAND_NOT_RUN: int = 127  # command missing or not executable

# Set in the environment of the command run by the CLI
ENV_LOCK_FILE: str = "LOCKF_LOCK_FILE"
