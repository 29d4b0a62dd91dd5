"""
Configuration
=============
Loads environment variables from .env file using python-dotenv.

Environment Variables:
    JIRA_HOST                — Jira Cloud base URL (e.g. https://company.atlassian.net)
    JIRA_EMAIL               — Account email used for Basic auth
    JIRA_API_TOKEN           — Jira API token used for Basic auth
    ANTHROPIC_API_KEY        — Key for the analysis LLM
    ANALYSIS_MODEL           — Model identifier (default: claude-sonnet-4-20250514)
    ANALYSIS_MAX_TOKENS      — Max output tokens for one analysis (default: 8192)
    HYDRATION_CONCURRENCY    — Max parallel per-issue fetches (default: 5)
    DEFAULT_MAX_RESULTS      — Bugs fetched when the caller gives no limit (default: 100)
    HTTP_TIMEOUT_SECONDS     — Transport timeout for tracker calls (default: 30)
    ANALYSIS_TIMEOUT_SECONDS — Ceiling for one analysis round-trip (default: 300)
    BUG_ANALYZER_OUTPUT_DIR  — Root for every file path taken from an API request (default: output)

Credential Resolution:
    Environment variables win. Anything missing is read from the saved
    credentials file (~/.jira-bug-analyzer/config.json, camelCase keys).
    The core classes never read this module's globals on their own; the
    API layer resolves credentials and passes them in.

Custom Field Mapping:
    Jira instances number their custom fields differently, so the five
    analysis-relevant ids are overridable via CUSTOM_FIELD_* variables.
"""
import json
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

load_dotenv()

logger = logging.getLogger(__name__)

JIRA_HOST = os.getenv("JIRA_HOST")
JIRA_EMAIL = os.getenv("JIRA_EMAIL")
JIRA_API_TOKEN = os.getenv("JIRA_API_TOKEN")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")

ANALYSIS_MODEL = os.getenv("ANALYSIS_MODEL", "claude-sonnet-4-20250514")
ANALYSIS_MAX_TOKENS = int(os.getenv("ANALYSIS_MAX_TOKENS", 8192))
ANTHROPIC_BASE_URL = os.getenv("ANTHROPIC_BASE_URL", "https://api.anthropic.com/v1")

HYDRATION_CONCURRENCY = int(os.getenv("HYDRATION_CONCURRENCY", 5))
DEFAULT_MAX_RESULTS = int(os.getenv("DEFAULT_MAX_RESULTS", 100))
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", 30))
ANALYSIS_TIMEOUT_SECONDS = float(os.getenv("ANALYSIS_TIMEOUT_SECONDS", 300))

OUTPUT_DIR = os.getenv("BUG_ANALYZER_OUTPUT_DIR", "output")

# customfield id → BugRecord attribute
CUSTOM_FIELD_MAP: dict[str, str] = {
    os.getenv("CUSTOM_FIELD_FAILURE_TYPE", "customfield_10100"): "failure_type",
    os.getenv("CUSTOM_FIELD_ESCAPE_BUG", "customfield_10101"): "is_escape_bug",
    os.getenv("CUSTOM_FIELD_CUSTOMER_IMPACT", "customfield_10102"): "customer_impact",
    os.getenv("CUSTOM_FIELD_CUSTOMER", "customfield_10103"): "customer",
    os.getenv("CUSTOM_FIELD_SEVERITY", "customfield_10104"): "severity",
}

CONFIG_DIR = Path(os.getenv("BUG_ANALYZER_CONFIG_DIR", "~/.jira-bug-analyzer")).expanduser()
CONFIG_FILE = CONFIG_DIR / "config.json"


class Credentials(BaseModel):
    """Resolved credentials for the tracker and the analysis LLM."""
    jira_host: str
    jira_email: str
    jira_api_token: str
    anthropic_api_key: str

    @field_validator("jira_host")
    @classmethod
    def _host_is_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("jira_host must be an http(s) URL")
        return value.rstrip("/")

    @field_validator("jira_email")
    @classmethod
    def _email_shape(cls, value: str) -> str:
        if "@" not in value:
            raise ValueError("jira_email must be an email address")
        return value

    @field_validator("jira_api_token", "anthropic_api_key")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value


def _read_config_file(path: Path) -> dict:
    """Read the saved credentials file. Missing or unreadable file → {}."""
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable config file %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def _merged_values(path: Optional[Path] = None) -> dict[str, str]:
    file_values = _read_config_file(path or CONFIG_FILE)
    return {
        "jira_host": os.getenv("JIRA_HOST") or file_values.get("jiraHost") or "",
        "jira_email": os.getenv("JIRA_EMAIL") or file_values.get("jiraEmail") or "",
        "jira_api_token": os.getenv("JIRA_API_TOKEN") or file_values.get("jiraApiToken") or "",
        "anthropic_api_key": os.getenv("ANTHROPIC_API_KEY") or file_values.get("anthropicApiKey") or "",
    }


def missing_credentials(path: Optional[Path] = None) -> list[str]:
    """
    List the credential fields that are missing or invalid.

    Returns
    -------
    list[str]
        Human-readable "field: reason" strings (empty if complete).
    """
    try:
        Credentials(**_merged_values(path))
    except ValidationError as e:
        return [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
    return []


def load_credentials(path: Optional[Path] = None) -> Credentials:
    """
    Resolve credentials from the environment, then the saved config file.

    Raises
    ------
    pydantic.ValidationError
        If any field is missing or malformed.
    """
    return Credentials(**_merged_values(path))
