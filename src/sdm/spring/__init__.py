"""Spring Boot support: push tests, Maven build, local deployment, generation and review."""

from src.sdm.spring.deployment import (
    BranchDeployment,
    DeploymentError,
    ListBranchDeploys,
    MavenPerBranchDeployment,
    PerBranchDeployer,
    get_deployer,
    stop_deployer,
)
from src.sdm.spring.generate import (
    SPRING_GENERATOR_TRANSFORMS,
    SpringProjectCreationParameters,
    replace_readme_title,
    set_team_in_application_yml,
    transform_seed_to_custom_project,
)
from src.sdm.spring.maven import MavenBuilder
from src.sdm.spring.pack import SpringAutofixOptions, SpringReviewOptions, spring_support
from src.sdm.spring.predicates import HasSpringBootApplicationClass, HasSpringBootPom, IsMaven

__all__ = [
    "BranchDeployment",
    "DeploymentError",
    "HasSpringBootApplicationClass",
    "HasSpringBootPom",
    "IsMaven",
    "ListBranchDeploys",
    "MavenBuilder",
    "MavenPerBranchDeployment",
    "PerBranchDeployer",
    "SPRING_GENERATOR_TRANSFORMS",
    "SpringAutofixOptions",
    "SpringProjectCreationParameters",
    "SpringReviewOptions",
    "get_deployer",
    "replace_readme_title",
    "set_team_in_application_yml",
    "spring_support",
    "stop_deployer",
    "transform_seed_to_custom_project",
]
