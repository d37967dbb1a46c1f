"""Zeus software delivery machine.

Wires goals, push rules, extension packs, generators and listeners into a
SoftwareDeliveryMachine:

- every push runs the checks: code inspection, push impact and autofix
- Maven projects are built once autofix has completed
- Spring Boot applications built with Maven are deployed per branch once
  the build has completed
"""

from typing import Any, Sequence

import structlog

from src.sdm.config import DeliverySettings
from src.sdm.generators.models import GeneratorRegistration
from src.sdm.github.status import summarize_goals_in_github_status
from src.sdm.goals.common import AutoCodeInspection, Autofix, Build, PushImpact
from src.sdm.goals.contribution import goal_contributors, on_any_push, when_push_satisfies
from src.sdm.goals.models import goals
from src.sdm.invocation import ChannelLinkInvocation, CommandInvocation
from src.sdm.machine import SoftwareDeliveryMachine, create_software_delivery_machine
from src.sdm.project import CodeTransform, LocalProject
from src.sdm.repo import GitHubRepoRef, RepoRef
from src.sdm.sloc import code_metrics
from src.sdm.spring.deployment import ListBranchDeploys, MavenPerBranchDeployment
from src.sdm.spring.generate import SPRING_GENERATOR_TRANSFORMS, SpringProjectCreationParameters
from src.sdm.spring.maven import MavenBuilder
from src.sdm.spring.pack import SpringAutofixOptions, SpringReviewOptions, spring_support
from src.sdm.spring.predicates import HasSpringBootApplicationClass, HasSpringBootPom, IsMaven

logger = structlog.get_logger()

MACHINE_NAME = "Zeus software delivery machine"
NEW_REPO_GREETING = "I see a new repo :wave:"
MANIFEST_PATH = "manifest.yml"
MANIFEST_APP_PLACEHOLDER = "funky-spring"


def machine(configuration: DeliverySettings, **options: Any) -> SoftwareDeliveryMachine:
    """Assemble the Zeus machine.

    Args:
        configuration: Machine settings.
        **options: Passed to create_software_delivery_machine, e.g. a
                   message client or project loader for tests.
    """
    sdm = create_software_delivery_machine(
        name=MACHINE_NAME,
        configuration=configuration,
        **options,
    )

    autofix = Autofix()
    inspect = AutoCodeInspection()
    push_impact = PushImpact()

    check_goals = goals("checks").plan(inspect).plan(push_impact).plan(autofix)

    build_goals = (
        goals("build")
        .plan(Build().with_builder("Maven", MavenBuilder(sdm)))
        .after(autofix)
    )

    deploy_goals = goals("deploy").plan(MavenPerBranchDeployment()).after(build_goals)

    sdm.add_goal_contributions(
        goal_contributors(
            on_any_push().set_goals(check_goals),
            when_push_satisfies(IsMaven).set_goals(build_goals),
            when_push_satisfies(HasSpringBootPom, HasSpringBootApplicationClass, IsMaven).set_goals(
                deploy_goals
            ),
        )
    )

    sdm.add_extension_packs(
        spring_support(
            inspect_goal=inspect,
            autofix_goal=autofix,
            review=SpringReviewOptions(cloud_native=True, spring_style=True),
            autofix=SpringAutofixOptions(),
            review_listeners=[],
        ),
        code_metrics(),
    )

    sdm.add_generator_command(
        spring_generator(
            name="create-spring",
            intent="create spring",
            description="Create a new Java Spring Boot REST service",
            starting_point=spring_seed(configuration, configuration.spring_seed_owner),
        )
    )

    sdm.add_generator_command(
        spring_generator(
            name="funky-create-spring",
            intent="funky create spring",
            description="Create a new Java Spring Boot REST service, with funkiness",
            starting_point=spring_seed(configuration, configuration.funky_spring_seed_owner),
            extra_transforms=[customize_manifest],
        )
    )

    sdm.add_channel_link_listener(greet_new_repo)

    sdm.add_command(ListBranchDeploys)

    summarize_goals_in_github_status(sdm)

    logger.info(
        "Assembled delivery machine",
        machine=sdm.name,
        commands=[c.name for c in sdm.commands],
        extension_packs=sdm.extension_packs,
    )
    return sdm


def spring_seed(configuration: DeliverySettings, owner: str) -> RepoRef:
    return GitHubRepoRef(
        owner=owner,
        repo=configuration.spring_seed_repo,
        branch=configuration.spring_seed_branch,
        web_url=configuration.github_web_url,
    )


def spring_generator(
    name: str,
    intent: str,
    description: str,
    starting_point: RepoRef,
    extra_transforms: Sequence[CodeTransform] = (),
) -> GeneratorRegistration:
    """A Spring Boot generator: the standard Spring transforms, then any extras."""
    return GeneratorRegistration(
        name=name,
        intent=intent,
        description=description,
        parameters=SpringProjectCreationParameters,
        starting_point=starting_point,
        transforms=(*SPRING_GENERATOR_TRANSFORMS, *extra_transforms),
    )


async def customize_manifest(project: LocalProject, invocation: CommandInvocation) -> None:
    """Give the Cloud Foundry manifest the new repository's name as app name.

    A seed without manifest.yml is reported to the channel and left as is.
    """
    manifest = await project.get_file(MANIFEST_PATH)
    if manifest is None:
        await invocation.address_channels(
            f"This project has no Cloud Foundry manifest. The seed at {project.id.url} is invalid"
        )
        return

    await manifest.replace_all(MANIFEST_APP_PLACEHOLDER, invocation.parameters.target.repo)
    await invocation.address_channels("Updating your manifest.yml")


async def greet_new_repo(invocation: ChannelLinkInvocation) -> None:
    await invocation.address_channels(NEW_REPO_GREETING)
