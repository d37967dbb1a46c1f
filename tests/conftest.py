"""Shared fixtures for delivery machine tests."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from src.sdm.config import DeliverySettings
from src.sdm.events.emitter import EventEmitter, EventSinkType
from src.sdm.events.models import DeliveryEvent, EventType
from src.sdm.goals.models import ExecuteGoalResult, Goal, GoalInvocation
from src.sdm.messaging import MessageClient
from src.sdm.project import LocalProject
from src.sdm.push.models import PushEvent
from src.sdm.repo import RepoRef


class RecordingMessageClient(MessageClient):
    """Message client that keeps every message it is asked to send."""

    def __init__(self):
        self.sent: List[Tuple[str, Optional[str]]] = []

    async def send(self, text: str, channel: Optional[str] = None) -> None:
        self.sent.append((text, channel))

    @property
    def texts(self) -> List[str]:
        return [text for text, _ in self.sent]


class RecordingEventEmitter(EventEmitter):
    """Event emitter that keeps every emitted event."""

    def __init__(self):
        self.events: List[DeliveryEvent] = []

    async def emit(self, event: DeliveryEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> List[DeliveryEvent]:
        return [e for e in self.events if e.event_type == event_type]


def make_settings(base: Path, **overrides) -> DeliverySettings:
    values = dict(
        github_token="ghp_test_token_value",
        workspace_base_path=str(base / "workspaces"),
        deploy_base_path=str(base / "deployments"),
        team_id="T0ZEUS",
        event_sinks=[EventSinkType.LOGGING],
    )
    values.update(overrides)
    return DeliverySettings(**values)


def make_push(**overrides) -> PushEvent:
    values = dict(
        owner="zeus-org",
        repository="orders",
        branch="main",
        sha="a1b2c3d4e5f6a7b8c9d0a1b2c3d4e5f6a7b8c9d0",
        pusher="octocat",
    )
    values.update(overrides)
    return PushEvent(**values)


def write_files(root: Path, files: Dict[str, str]) -> None:
    for path, content in files.items():
        target = root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")


def fixed_project_loader(project: LocalProject):
    """Project loader that yields an existing project instead of checking out."""

    @asynccontextmanager
    async def loader(ref: RepoRef, base_path: Path, token: Optional[str]):
        yield project

    return loader


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def message_client():
    return RecordingMessageClient()


@pytest.fixture
def event_emitter():
    return RecordingEventEmitter()


@pytest.fixture
def push():
    return make_push()


@pytest.fixture
def project(tmp_path):
    base = tmp_path / "project"
    base.mkdir()
    return LocalProject(base, id=RepoRef(owner="zeus-org", repo="orders", branch="main"))


class StubGoal(Goal):
    """Goal returning a fixed result and recording its invocations."""

    def __init__(self, unique_name: str, result: Optional[ExecuteGoalResult] = None, error=None):
        super().__init__(unique_name)
        self.result = result or ExecuteGoalResult(code=0, message=f"{unique_name} done")
        self.error = error
        self.invocations: List[GoalInvocation] = []

    async def execute(self, invocation: GoalInvocation) -> ExecuteGoalResult:
        self.invocations.append(invocation)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def goal_invocation(push, project, settings, message_client, event_emitter):
    return GoalInvocation(
        push=push,
        project=project,
        configuration=settings,
        message_client=message_client,
        event_emitter=event_emitter,
    )
