"""
Pytest configuration and fixtures for chatdeck tests.
"""

import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
from typer.testing import CliRunner

from chatdeck.chat import clear_chat_manager
from chatdeck.config import clear_config_cache


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def mock_chatdeck_home(
    temp_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[Path, None, None]:
    """Point CHATDECK_HOME at an empty temp directory and reset singletons."""
    chatdeck_home = temp_dir / ".chatdeck"
    chatdeck_home.mkdir()
    (chatdeck_home / "profiles").mkdir()

    monkeypatch.setenv("CHATDECK_HOME", str(chatdeck_home))
    monkeypatch.delenv("CHATDECK_PROFILE", raising=False)
    monkeypatch.chdir(temp_dir)

    clear_config_cache()
    clear_chat_manager()
    yield chatdeck_home
    clear_config_cache()
    clear_chat_manager()


@pytest.fixture
def school_records() -> list[dict]:
    """Conversation records for a school messaging account."""
    return [
        {
            "id": "101",
            "subject": "Field trip",
            "creator": "Ms. Martin",
            "date": "2024-03-01T08:00:00Z",
            "created_by_account": False,
            "messages": [
                {
                    "id": "1",
                    "author": "Ms. Martin",
                    "content": "<p>Bring a packed lunch &amp; a coat.</p>",
                    "date": "2024-03-01T08:00:00Z",
                    "attachments": [
                        {"name": "permission.pdf", "url": "https://example.org/permission.pdf"}
                    ],
                },
                {
                    "id": "2",
                    "author": "Alex Parent",
                    "content": "Noted, thanks!",
                    "date": "2024-03-01T09:30:00Z",
                },
            ],
        },
        {
            "id": "102",
            "recipient": "Mr. Dupont",
            "creator": "Alex Parent",
            "date": "2024-03-03T10:00:00Z",
            "created_by_account": True,
            "messages": [
                {
                    "id": "1",
                    "author": "Alex Parent",
                    "content": "Hello, is the exam on&nbsp;Friday?",
                    "date": "2024-03-03T10:00:00Z",
                },
            ],
        },
    ]


@pytest.fixture
def sample_fixture_yaml() -> str:
    """Provide a memory adapter fixture file."""
    return """
conversations:
  - id: "7"
    subject: "Welcome"
    creator: "Office"
    date: "2024-03-02T07:00:00Z"
    messages:
      - id: "1"
        author: "Office"
        content: "Welcome to the <b>new</b> term"
        date: "2024-03-02T07:00:00Z"
"""


@pytest.fixture
def sample_config(temp_dir: Path, sample_fixture_yaml: str) -> dict:
    """Provide a sample configuration dictionary with one memory account."""
    fixture_path = temp_dir / "office.yaml"
    fixture_path.write_text(sample_fixture_yaml, encoding="utf-8")
    return {
        "accounts": [
            {
                "id": "office",
                "type": "memory",
                "display_name": "Alex Parent",
                "fixture": str(fixture_path),
            },
        ],
        "chat": {
            "preview_length": 40,
            "local_display_name": "Alex",
        },
    }
