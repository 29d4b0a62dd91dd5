"""
Configuration Tests
===================
Credential resolution: environment first, saved config file second.
"""
import json

import pytest
from pydantic import ValidationError

from bug_analyzer.core.config import Credentials, load_credentials, missing_credentials

ENV_VARS = ("JIRA_HOST", "JIRA_EMAIL", "JIRA_API_TOKEN", "ANTHROPIC_API_KEY")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "jiraHost": "https://file.atlassian.net/",
        "jiraEmail": "file@acme.io",
        "jiraApiToken": "file-token",
        "anthropicApiKey": "file-key",
    }), encoding="utf-8")
    return path


def test_file_values_used_when_env_empty(config_file):
    creds = load_credentials(config_file)

    assert creds.jira_host == "https://file.atlassian.net"
    assert creds.jira_email == "file@acme.io"
    assert creds.anthropic_api_key == "file-key"


def test_environment_wins_over_file(config_file, monkeypatch):
    monkeypatch.setenv("JIRA_HOST", "https://env.atlassian.net")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "env-key")
    creds = load_credentials(config_file)

    assert creds.jira_host == "https://env.atlassian.net"
    assert creds.anthropic_api_key == "env-key"
    assert creds.jira_api_token == "file-token"


def test_missing_file_and_env(tmp_path):
    missing = missing_credentials(tmp_path / "absent.json")

    assert len(missing) == 4
    assert any(m.startswith("jira_host") for m in missing)
    with pytest.raises(ValidationError):
        load_credentials(tmp_path / "absent.json")


def test_unreadable_file_ignored(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    assert len(missing_credentials(path)) == 4


def test_complete_config_has_nothing_missing(config_file):
    assert missing_credentials(config_file) == []


@pytest.mark.parametrize("field, value", [
    ("jira_host", "acme.atlassian.net"),
    ("jira_email", "not-an-email"),
    ("jira_api_token", "   "),
])
def test_credentials_validation(field, value):
    values = {
        "jira_host": "https://acme.atlassian.net",
        "jira_email": "qa@acme.io",
        "jira_api_token": "tok",
        "anthropic_api_key": "key",
    }
    values[field] = value
    with pytest.raises(ValidationError):
        Credentials(**values)
