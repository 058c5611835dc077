import os
import yaml

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

def config_path():
    return os.getenv("LIVESCORERX_CONFIG_PATH") or os.path.join(PROJECT_ROOT, "config", "config.yaml")

def load_config():
    path = config_path()
    if not os.path.exists(path):
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}
