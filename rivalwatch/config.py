import os
from pathlib import Path

import yaml


PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_PATH = PROJECT_ROOT / "config.yaml"

DEFAULT_ANALYSIS_CONTEXT = (
    "Track competing digital card and NFT platforms. Weight new platform "
    "launches, partnerships, technical innovation, user and revenue figures, "
    "regulatory moves and NFT market trends most heavily."
)


def load_config(path: Path = CONFIG_PATH) -> dict:
    """Load config.yaml, with env var overrides and defaults filled in.

    A missing file is treated as an empty config so the entry scripts can
    still run on defaults plus environment variables.
    """
    path = Path(path)
    cfg: dict = {}
    if path.exists():
        with open(path) as f:
            cfg = yaml.safe_load(f) or {}

    # Env vars take precedence for secrets and the database location
    for env_name, key in (
        ("ANTHROPIC_API_KEY", "anthropic_api_key"),
        ("SLACK_BOT_TOKEN", "slack_bot_token"),
        ("RIVALWATCH_DB_PATH", "db_path"),
    ):
        value = os.environ.get(env_name)
        if value:
            cfg[key] = value

    cfg["db_path"] = str(PROJECT_ROOT / cfg.get("db_path", "data/rivalwatch.db"))

    cfg.setdefault("anthropic_api_key", "")
    cfg.setdefault("slack_bot_token", "")
    cfg.setdefault("model", "claude-sonnet-4-5-20250929")
    cfg.setdefault("timezone", "Asia/Tokyo")
    cfg.setdefault("target_language", "Japanese")
    cfg.setdefault("analysis_context", DEFAULT_ANALYSIS_CONTEXT)
    cfg.setdefault("feed_timeout", 15)
    cfg.setdefault("max_items_per_feed", 20)
    cfg.setdefault("max_search_results", 5)
    cfg.setdefault("search_delay", 1.0)
    cfg.setdefault("dedup_threshold", 0.8)
    cfg.setdefault("enrichment_batch_size", 5)
    cfg.setdefault("enrichment_timeout", 60)
    cfg.setdefault("llm_timeout", 60)
    cfg.setdefault("slack_timeout", 10)
    cfg.setdefault("slack_max_attempts", 3)
    cfg.setdefault("slack_default_retry_after", 1)
    cfg.setdefault("slack_max_rate_limit_waits", 5)

    return cfg

