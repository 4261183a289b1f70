"""Local record of the last deployment, kept next to the project."""

import json
import logging
import os

logger = logging.getLogger(__name__)

STATE_FILE = "site_deploy.json"


def state_path(project_dir: str) -> str:
    return os.path.join(project_dir, STATE_FILE)


def load_state(project_dir: str) -> dict:
    path = state_path(project_dir)
    if os.path.exists(path):
        with open(path) as f:
            return json.load(f)
    return {}


def save_state(project_dir: str, state: dict):
    path = state_path(project_dir)
    with open(path, "w") as f:
        json.dump(state, f, indent=2)
    logger.info("State saved to %s", path)


def clear_state(project_dir: str):
    path = state_path(project_dir)
    if os.path.exists(path):
        os.remove(path)
        logger.info("State file removed: %s", path)
