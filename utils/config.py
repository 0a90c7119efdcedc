# utils/config.py
import os
from pathlib import Path
import yaml
from dotenv import load_dotenv

from utils.logger import logger

def load_cfg(cfg_path: str | None = None):

    base_dir = Path(__file__).resolve().parents[1]

    cfg_file = Path(cfg_path) if cfg_path else (base_dir / "config.yaml")

    load_dotenv(base_dir / ".env")

    with open(cfg_file, "r", encoding="utf-8") as f:
        raw_cfg = yaml.safe_load(f) or {}

    def resolve_env(obj):
        if isinstance(obj, dict):
            return {k: resolve_env(v) for k, v in obj.items()}
        if isinstance(obj, list):
            return [resolve_env(v) for v in obj]
        if isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
            varname = obj[2:-1]
            return os.getenv(varname, "")
        return obj

    cfg = resolve_env(raw_cfg)

    merchant_cfg = cfg.get("merchant") or {}
    if not (merchant_cfg.get("client_id") and merchant_cfg.get("client_secret")):
        logger.warning("CLIENT_ID or CLIENT_SECRET is not set, check your .env")

    return cfg
