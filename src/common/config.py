"""
Configuration loading for the inquiry engine.

Settings come from a YAML file with ${VAR:-default} environment substitution,
falling back to built-in defaults when the file is missing.
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/inquiry_config.yaml"


@dataclass
class InquiryConfig:
    """Resolved engine settings."""

    storage_backend: str = "local"
    data_dir: str = "data"
    bucket: str = ""
    prefix: str = "inquiry"
    delimiter: str = ","
    pending_label: str = "pending confirmation"
    default_category: str = "electronic components"
    inquiry_prefix: str = "INQ"
    draft_prefix: str = "DRAFT"
    expiry_days: int = 30
    submission_client: str = "fake"
    max_templates: int = 5
    max_favorites: int = 10

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "InquiryConfig":
        """Build a config from the nested YAML layout."""
        raw = raw or {}
        storage = raw.get("storage") or {}
        bom = raw.get("bom") or {}
        submission = raw.get("submission") or {}
        limits = raw.get("limits") or {}

        defaults = cls()
        return cls(
            storage_backend=str(storage.get("backend", defaults.storage_backend)).lower(),
            data_dir=str(storage.get("data_dir", defaults.data_dir)),
            bucket=str(storage.get("bucket", defaults.bucket) or ""),
            prefix=str(storage.get("prefix", defaults.prefix)),
            delimiter=str(bom.get("delimiter", defaults.delimiter)) or ",",
            pending_label=str(bom.get("pending_label", defaults.pending_label)),
            default_category=str(bom.get("default_category", defaults.default_category)),
            inquiry_prefix=str(submission.get("inquiry_prefix", defaults.inquiry_prefix)),
            draft_prefix=str(submission.get("draft_prefix", defaults.draft_prefix)),
            expiry_days=int(submission.get("expiry_days", defaults.expiry_days)),
            submission_client=str(submission.get("client", defaults.submission_client)).lower(),
            max_templates=int(limits.get("templates", defaults.max_templates)),
            max_favorites=int(limits.get("favorites", defaults.max_favorites)),
        )


def _substitute_env(content: str) -> str:
    """Substitute environment variables in format ${VAR:-default}."""

    def env_substitute(match):
        var_spec = match.group(1)
        if ":-" in var_spec:
            var_name, default = var_spec.split(":-", 1)
            return os.getenv(var_name, default)
        else:
            return os.getenv(var_spec, "")

    return re.sub(r"\$\{([^}]+)\}", env_substitute, content)


def load_config(config_path: Optional[str] = None) -> InquiryConfig:
    """Load engine configuration.

    Args:
        config_path: Path to a YAML config file. Defaults to
            ``INQUIRY_CONFIG`` or ``config/inquiry_config.yaml``.

    Returns:
        InquiryConfig with defaults for anything the file leaves out
    """
    config_file = config_path or os.getenv("INQUIRY_CONFIG") or DEFAULT_CONFIG_PATH

    if not os.path.exists(config_file):
        logger.info(f"No config file at {config_file}, using defaults")
        return InquiryConfig()

    with open(config_file, "r") as f:
        content = f.read()

    raw = yaml.safe_load(_substitute_env(content)) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {config_file} must contain a mapping")

    return InquiryConfig.from_dict(raw)
