"""Test configuration and fixtures."""

from pathlib import Path

import pytest
from fakes import FakeBoardClient

from gh_board.config import Config, FieldAlias, ProjectConfig

STATUS_ALIASES = {
    "backlog": "Backlog",
    "ready": "Ready",
    "in_progress": "In progress",
    "in_review": "In review",
    "done": "Done",
}

CONFIG_YAML = """\
project:
  owner: acme
  number: 1
repositories:
  - acme/api
framework: IDPF
fields:
  status:
    field: Status
    values:
      backlog: Backlog
      ready: Ready
      in_progress: In progress
      in_review: In review
      done: Done
  priority:
    field: Priority
    values:
      p0: P0
      p1: P1
      p2: P2
"""


@pytest.fixture
def board_config() -> Config:
    """Workflow-enabled config for acme/api on project 1."""
    return Config(
        project=ProjectConfig(owner="acme", number=1),
        repositories=["acme/api"],
        framework="IDPF",
        fields={
            "status": FieldAlias(field="Status", values=dict(STATUS_ALIASES)),
            "priority": FieldAlias(
                field="Priority", values={"p0": "P0", "p1": "P1", "p2": "P2"}
            ),
        },
    )


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write the standard config to a temporary .gh-board.yml."""
    path = tmp_path / ".gh-board.yml"
    path.write_text(CONFIG_YAML)
    return path


@pytest.fixture
def fake_client() -> FakeBoardClient:
    return FakeBoardClient()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep real credentials and overrides out of tests."""
    for name in (
        "GITHUB_TOKEN",
        "GH_TOKEN",
        "GH_BOARD_PROJECT_OWNER",
        "GH_BOARD_PROJECT_NUMBER",
        "GH_BOARD_GRAPHQL_URL",
        "GH_BOARD_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
