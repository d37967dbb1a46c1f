"""The software delivery machine.

A SoftwareDeliveryMachine holds everything registered at startup (goal
contributions, extension packs, commands, listeners) and reacts to:

- pushes: check out the commit, plan goals from the contribution rules,
  execute them and report the outcome to goals-set listeners
- channel links: notify channel-link listeners
- command invocations: validate parameters and run the command

Example:
    >>> sdm = create_software_delivery_machine("My machine", get_settings())
    >>> sdm.add_goal_contributions(goal_contributors(on_any_push().set_goals(checks)))
    >>> await sdm.handle_push(push_event)
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import (
    Any,
    AsyncContextManager,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Union,
)

from pydantic import BaseModel

from src.sdm import git
from src.sdm.commands import (
    CommandNotFoundError,
    CommandRegistration,
    DuplicateCommandError,
)
from src.sdm.config import DeliverySettings
from src.sdm.events.emitter import EventEmitter, create_event_emitter
from src.sdm.events.models import DeliveryEvent, EventType
from src.sdm.generators.models import GeneratorRegistration
from src.sdm.generators.runner import GeneratorRunner
from src.sdm.github.client import GitHubClient
from src.sdm.goals.common import PushImpactListener
from src.sdm.goals.contribution import GoalContributor
from src.sdm.goals.executor import GoalExecutor, GoalSetResult, GoalsSetListener
from src.sdm.goals.models import Goal, GoalInvocation, GoalSet
from src.sdm.goals.planner import GoalPlan, plan_goals
from src.sdm.invocation import (
    ChannelLinkInvocation,
    CommandInvocation,
    PushListenerInvocation,
)
from src.sdm.messaging import MessageClient, create_message_client
from src.sdm.project import LocalProject
from src.sdm.push.models import ChannelLinkEvent, PushEvent
from src.sdm.repo import RepoRef

logger = logging.getLogger(__name__)

ChannelLinkListener = Callable[[ChannelLinkInvocation], Awaitable[Any]]
ProjectLoader = Callable[[RepoRef, Path, Optional[str]], AsyncContextManager[LocalProject]]


@dataclass(frozen=True)
class ExtensionPack:
    """A bundle of registrations installed into a machine.

    Attributes:
        name: Pack name, used in logs.
        configure: Called once with the machine to install the pack.
        description: What the pack adds.
    """

    name: str
    configure: Callable[["SoftwareDeliveryMachine"], None]
    description: str = ""


def slugify(name: str) -> str:
    """Lowercase name with runs of non-alphanumerics replaced by dashes."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


class SoftwareDeliveryMachine:
    """Reacts to pushes, channel links and commands.

    Attributes:
        name: Human-readable machine name.
        configuration: Machine settings.
        event_emitter: Sink for delivery events.
        message_client: Channel for user-facing messages.
        goal_contributors: Registered goal contributors, in order.
        extension_packs: Names of installed extension packs.
    """

    def __init__(
        self,
        name: str,
        configuration: DeliverySettings,
        event_emitter: Optional[EventEmitter] = None,
        message_client: Optional[MessageClient] = None,
        project_loader: Optional[ProjectLoader] = None,
        github_client: Optional[GitHubClient] = None,
    ):
        self.name = name
        self.configuration = configuration
        self.event_emitter = event_emitter or create_event_emitter(configuration.event_sinks)
        self.message_client = message_client or create_message_client(
            configuration.slack_webhook_url
        )
        self.project_loader: ProjectLoader = project_loader or git.checkout_push
        self._github_client = github_client

        self.goal_contributors: List[GoalContributor] = []
        self.extension_packs: List[str] = []
        self.goals_set_listeners: List[GoalsSetListener] = []
        self.push_impact_listeners: List[PushImpactListener] = []
        self.channel_link_listeners: List[ChannelLinkListener] = []
        self._commands: Dict[str, CommandRegistration] = {}

        self.executor = GoalExecutor(event_emitter=self.event_emitter)
        self.generator_runner = GeneratorRunner(configuration, lambda: self.github_client)

    @property
    def slug(self) -> str:
        return slugify(self.name)

    @property
    def github_client(self) -> GitHubClient:
        if self._github_client is None:
            self._github_client = GitHubClient(
                token=self.configuration.github_token,
                base_url=self.configuration.github_base_url,
            )
        return self._github_client

    @property
    def commands(self) -> List[CommandRegistration]:
        return list(self._commands.values())

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def add_goal_contributions(self, contributor: GoalContributor) -> "SoftwareDeliveryMachine":
        self.goal_contributors.append(contributor)
        return self

    def add_extension_packs(self, *packs: ExtensionPack) -> "SoftwareDeliveryMachine":
        for pack in packs:
            pack.configure(self)
            self.extension_packs.append(pack.name)
            logger.info("Installed extension pack", extra={"pack": pack.name})
        return self

    def add_command(self, registration: CommandRegistration) -> "SoftwareDeliveryMachine":
        """Register a command.

        Raises:
            DuplicateCommandError: If the name or intent is already taken.
        """
        for key in (registration.name, registration.intent):
            if key and self.find_command(key) is not None:
                raise DuplicateCommandError(key)
        self._commands[registration.name] = registration
        return self

    def add_generator_command(
        self, registration: GeneratorRegistration
    ) -> "SoftwareDeliveryMachine":
        async def generate(invocation: CommandInvocation) -> RepoRef:
            return await self.generator_runner.generate(registration, invocation)

        return self.add_command(
            CommandRegistration(
                name=registration.name,
                intent=registration.intent,
                description=registration.description,
                parameters=registration.parameters,
                listener=generate,
            )
        )

    def add_channel_link_listener(self, listener: ChannelLinkListener) -> "SoftwareDeliveryMachine":
        self.channel_link_listeners.append(listener)
        return self

    def add_goals_set_listener(self, listener: GoalsSetListener) -> "SoftwareDeliveryMachine":
        self.goals_set_listeners.append(listener)
        return self

    def add_push_impact_listener(self, listener: PushImpactListener) -> "SoftwareDeliveryMachine":
        self.push_impact_listeners.append(listener)
        return self

    # -------------------------------------------------------------------------
    # Pushes
    # -------------------------------------------------------------------------

    async def plan(self, invocation: PushListenerInvocation) -> GoalPlan:
        """Plan the goals for a push from every registered contributor."""
        goal_sets: List[GoalSet] = []
        for contributor in self.goal_contributors:
            goal_sets.extend(await contributor.contributed_goal_sets(invocation))
        return plan_goals(goal_sets)

    async def handle_push(self, push: PushEvent) -> Optional[GoalSetResult]:
        """Plan and execute the goals for a push.

        Failures outside goal execution are logged and emitted as ERROR
        events rather than raised.

        Returns:
            The execution result, or None if the push could not be handled.
        """
        await self._emit(
            push,
            EventType.PUSH_RECEIVED,
            branch=push.branch,
            pusher=push.pusher,
        )

        stage = "checkout"
        try:
            async with self.project_loader(
                push.repo_ref,
                Path(self.configuration.workspace_base_path),
                self.configuration.github_token,
            ) as project:
                invocation = PushListenerInvocation(
                    push=push,
                    project=project,
                    configuration=self.configuration,
                    message_client=self.message_client,
                )

                stage = "planning"
                plan = await self.plan(invocation)
                await self._emit(
                    push,
                    EventType.GOALS_PLANNED,
                    goal_sets=plan.goal_set_labels,
                    goals=[goal.unique_name for goal in plan.goals],
                )
                for listener in self.goals_set_listeners:
                    await self._notify(listener.on_goals_planned(push, plan), push)

                stage = "execution"
                result = await self.executor.execute(
                    push, plan, lambda goal: self._goal_invocation(invocation, goal)
                )
                for listener in self.goals_set_listeners:
                    await self._notify(listener.on_goals_completed(push, result), push)

                return result
        except Exception as exc:
            logger.exception(
                "Failed to handle push",
                extra={"push_id": push.push_id, "stage": stage},
            )
            await self._emit(
                push,
                EventType.ERROR,
                stage=stage,
                error_message=f"{type(exc).__name__}: {exc}",
            )
            return None

    def _goal_invocation(self, invocation: PushListenerInvocation, goal: Goal) -> GoalInvocation:
        return GoalInvocation(
            push=invocation.push,
            project=invocation.project,
            configuration=invocation.configuration,
            message_client=invocation.message_client,
            goal=goal,
            event_emitter=self.event_emitter,
            push_impact_listeners=list(self.push_impact_listeners),
        )

    async def _notify(self, notification: Awaitable[None], push: PushEvent) -> None:
        """Await a listener notification; listener failures do not stop the push."""
        try:
            await notification
        except Exception:
            logger.exception("Goals set listener failed", extra={"push_id": push.push_id})

    async def _emit(self, push: PushEvent, event_type: EventType, **details: Any) -> None:
        event = DeliveryEvent(
            event_type=event_type,
            push_id=push.push_id,
            repository=push.full_repository,
            details=details,
        )
        try:
            await self.event_emitter.emit(event)
        except Exception:
            logger.exception(
                "Failed to emit delivery event",
                extra={"event_type": event_type.value, "push_id": push.push_id},
            )

    # -------------------------------------------------------------------------
    # Channel links and commands
    # -------------------------------------------------------------------------

    async def handle_channel_link(self, event: ChannelLinkEvent) -> None:
        """Run every channel-link listener; one failing does not stop the others."""
        invocation = ChannelLinkInvocation(
            event=event,
            configuration=self.configuration,
            message_client=self.message_client,
        )
        for listener in self.channel_link_listeners:
            try:
                await listener(invocation)
            except Exception:
                logger.exception(
                    "Channel link listener failed",
                    extra={"repository": event.full_repository, "channel": event.channel},
                )

    def find_command(self, name_or_intent: str) -> Optional[CommandRegistration]:
        """Find a command by name or intent, ignoring case for intents."""
        registration = self._commands.get(name_or_intent)
        if registration is not None:
            return registration
        wanted = name_or_intent.strip().lower()
        for registration in self._commands.values():
            if registration.intent and registration.intent.lower() == wanted:
                return registration
        return None

    async def run_command(
        self,
        name_or_intent: str,
        parameters: Union[BaseModel, Mapping[str, Any], None] = None,
    ) -> Any:
        """Validate parameters and run a command.

        Raises:
            CommandNotFoundError: If no command matches.
            pydantic.ValidationError: If the parameters are invalid.
        """
        registration = self.find_command(name_or_intent)
        if registration is None:
            raise CommandNotFoundError(name_or_intent)

        invocation = CommandInvocation(
            parameters=registration.parse_parameters(parameters),
            configuration=self.configuration,
            message_client=self.message_client,
        )
        logger.info("Running command", extra={"command": registration.name})
        return await registration.listener(invocation)

    async def close(self) -> None:
        if self._github_client is not None:
            await self._github_client.close()
        await self.message_client.close()
        await self.event_emitter.close()


def create_software_delivery_machine(
    name: str,
    configuration: DeliverySettings,
    **options: Any,
) -> SoftwareDeliveryMachine:
    """Create a machine with emitters and messaging built from configuration.

    Args:
        name: Machine name.
        configuration: Machine settings.
        **options: Overrides passed to SoftwareDeliveryMachine, such as
                   event_emitter, message_client or project_loader.
    """
    sdm = SoftwareDeliveryMachine(name=name, configuration=configuration, **options)
    logger.info(
        "Created software delivery machine",
        extra={"machine": sdm.name, "event_sinks": [s.value for s in configuration.event_sinks]},
    )
    return sdm
