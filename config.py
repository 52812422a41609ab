"""
Configuration constants for Endurance Loop.

All tunable parameters in one place for easy adjustment and debugging.
Modify these values to fine-tune loop timing, volume defaults and the
web remote.
"""

import sys
import os

# =============================================================================
# PATHS
# =============================================================================

# HELPER: Detect if we are running as a compiled exe or a script
def get_base_path():
    if getattr(sys, 'frozen', False):
        # We are running as an exe - use the folder the exe is sitting in
        return os.path.dirname(sys.executable)
    else:
        # We are running as a script - use the script's folder
        return os.path.dirname(os.path.abspath(__file__))

# ROOT DIR
BASE_DIR = get_base_path()

# Data directory for exported sessions and preferences
DATA_DIR = os.path.join(BASE_DIR, "data")

# Session document written on exit (single export/import document)
SESSION_FILE = os.path.join(DATA_DIR, "session.json")

# Log directory
LOG_DIR = os.path.join(BASE_DIR, "logs")

# =============================================================================
# LOOP CONTROLLER SETTINGS
# =============================================================================

# How often each playing track polls its backend position (seconds)
# The loop trigger may overshoot loop end by up to one interval
# TUNABLE: Lower = tighter loops, more backend queries
LOOP_CHECK_INTERVAL = 0.1

# Statistics tick (seconds). Each tick adds exactly one elapsed second.
STATS_INTERVAL = 1.0

# How long the transient "loop" signal stays raised after a loop event (seconds)
LOOP_SIGNAL_DURATION = 1.0

# Loop end applied on backend ready when the user never set one (seconds)
# The actual value is min(DEFAULT_LOOP_END_CAP, video duration)
DEFAULT_LOOP_END_CAP = 30

# =============================================================================
# VOLUME SETTINGS
# =============================================================================

MIN_VOLUME = 0
MAX_VOLUME = 100

# New tracks start at full volume, unmuted
DEFAULT_TRACK_VOLUME = 100

# Master volume at startup (overridden by saved preference)
DEFAULT_MASTER_VOLUME = 100

# =============================================================================
# SCHEDULER SETTINGS
# =============================================================================

# Sleep between scheduler passes (seconds)
# 0.01 = 100 passes per second, enough for the 100ms position poll
SCHEDULER_TICK = 0.01

# =============================================================================
# SIMULATED PLAYER SETTINGS
# Used when running headless (CLI, tests) instead of an embedded player
# =============================================================================

# Duration reported by simulated videos (seconds)
SIMULATED_VIDEO_DURATION = 300.0

# Delay before a simulated player reports ready (seconds)
SIMULATED_LOAD_DELAY = 0.5

# =============================================================================
# VIDEO REFERENCE SETTINGS
# =============================================================================

# Length of an external video identifier
VIDEO_ID_LENGTH = 11

# Canonical watch URL used when only an id is known
WATCH_URL_TEMPLATE = "https://www.youtube.com/watch?v={video_id}"

# Container element prefix for each track's player
PLAYER_CONTAINER_PREFIX = "player-"

# =============================================================================
# WEB REMOTE SETTINGS
# =============================================================================

WEB_SERVER_HOST = "0.0.0.0"
WEB_SERVER_PORT = 8080

# How long a web request waits for the scheduler thread to run its command
WEB_COMMAND_TIMEOUT = 5.0

# =============================================================================
# EXPORT SETTINGS
# =============================================================================

# Indentation of exported JSON documents
EXPORT_JSON_INDENT = 2
