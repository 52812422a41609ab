import os
import json
import logging

from config import DATA_DIR

logger = logging.getLogger("EnduranceLoop.Preferences")

# Path to the preferences file
PREFS_FILE = os.path.join(DATA_DIR, "user_preferences.json")

def load_preferences(path=None):
    """Load user preferences from JSON."""
    path = path or PREFS_FILE
    if not os.path.exists(path):
        return {}

    try:
        with open(path, 'r') as f:
            return json.load(f)
    except Exception as e:
        logger.warning(f"Error loading preferences: {e}")
        return {}

def save_preferences(prefs, path=None):
    """Save user preferences dictionary to JSON."""
    path = path or PREFS_FILE
    try:
        data_dir = os.path.dirname(path)
        if data_dir and not os.path.exists(data_dir):
            os.makedirs(data_dir, exist_ok=True)

        # Merge with existing
        current = load_preferences(path)
        current.update(prefs)

        with open(path, 'w') as f:
            json.dump(current, f, indent=2)

    except Exception as e:
        logger.error(f"Error saving preferences: {e}")

def get_master_volume_preference(path=None):
    """Get the saved master volume, or None."""
    return load_preferences(path).get("master_volume", None)

def set_master_volume_preference(volume, path=None):
    """Save the master volume."""
    save_preferences({"master_volume": volume}, path)

def get_port_preference(path=None):
    """Get the saved web remote port, or None."""
    return load_preferences(path).get("web_port", None)

def set_port_preference(port, path=None):
    save_preferences({"web_port": port}, path)
