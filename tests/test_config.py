import pytest
from inline_snapshot import snapshot

from code_push_mcp.config import (
    ConfigurationError,
    PublisherSettings,
    environment_config_source,
    first_present,
    request_config_source,
    resolve_repository_config,
)
from code_push_mcp.models.changes import ConfigSource, RepositoryConfig


def test_first_present():
    assert first_present(None, "", "b", "c") == "b"
    assert first_present(None, None) is None
    assert first_present() is None


class TestRequestConfigSource:
    def test_bearer_token(self):
        config_source = request_config_source(headers={"Authorization": "Bearer ghp_abc"}, query={"owner": "octo-org", "repo": "web-app"})

        assert config_source == ConfigSource(token="ghp_abc", owner="octo-org", name="web-app")

    def test_token_scheme(self):
        assert request_config_source(headers={"authorization": "token ghp_abc"}).token == "ghp_abc"

    def test_token_headers(self):
        assert request_config_source(headers={"X-GitHub-Token": "ghp_x"}).token == "ghp_x"
        assert request_config_source(headers={"github-token": "ghp_y"}).token == "ghp_y"

    def test_authorization_wins_over_token_headers(self):
        config_source = request_config_source(headers={"x-github-token": "ghp_x", "authorization": "Bearer ghp_auth"})

        assert config_source.token == "ghp_auth"

    def test_unsupported_authorization_scheme(self):
        config_source = request_config_source(headers={"authorization": "Basic dXNlcjpwYXNz", "github-token": "ghp_y"})

        assert config_source.token == "ghp_y"

    def test_empty(self):
        assert request_config_source() == ConfigSource()


def test_environment_config_source(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("GITHUB_PERSONAL_ACCESS_TOKEN", "ghp_env")
    monkeypatch.setenv("GITHUB_OWNER", "env-org")
    monkeypatch.setenv("GITHUB_REPO", "env-repo")

    assert environment_config_source() == ConfigSource(token="ghp_env", owner="env-org", name="env-repo")

    monkeypatch.setenv("GITHUB_TOKEN", "ghp_preferred")

    assert environment_config_source().token == "ghp_preferred"


class TestResolveRepositoryConfig:
    def test_precedence_per_field(self):
        config = resolve_repository_config(
            explicit=ConfigSource(owner="explicit-org"),
            request=ConfigSource(token="ghp_request", owner="request-org"),
            environment=ConfigSource(token="ghp_env", owner="env-org", name="env-repo"),
        )

        assert config == RepositoryConfig(token="ghp_request", owner="explicit-org", name="env-repo")

    def test_environment_fallback(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_env")
        monkeypatch.setenv("GITHUB_OWNER", "env-org")
        monkeypatch.setenv("GITHUB_REPO", "env-repo")

        config = resolve_repository_config()

        assert config.full_name == "env-org/env-repo"
        assert config.token == "ghp_env"

    def test_missing_token(self):
        with pytest.raises(ConfigurationError, match="Missing GitHub token") as exc_info:
            resolve_repository_config(explicit=ConfigSource(owner="octo-org", name="web-app"), environment=ConfigSource())

        assert exc_info.value.status == 401

    def test_missing_repository(self):
        with pytest.raises(ConfigurationError, match="Missing GitHub repository information") as exc_info:
            resolve_repository_config(request=ConfigSource(token="ghp_abc", owner="octo-org"), environment=ConfigSource())

        assert exc_info.value.status == 400

    def test_token_is_not_in_repr(self):
        config = RepositoryConfig(token="ghp_secret", owner="octo-org", name="web-app")

        assert "ghp_secret" not in repr(config)


class TestPublisherSettings:
    def test_defaults(self):
        assert PublisherSettings.from_env().model_dump() == snapshot(
            {"trunk_branch": "main", "auto_create_pull_request": True, "railway_project_id": None}
        )

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("GITHUB_BASE_BRANCH", "develop")
        monkeypatch.setenv("AUTO_CREATE_PR", "false")
        monkeypatch.setenv("RAILWAY_PROJECT_ID", "proj_123")

        assert PublisherSettings.from_env().model_dump() == snapshot(
            {"trunk_branch": "develop", "auto_create_pull_request": False, "railway_project_id": "proj_123"}
        )
