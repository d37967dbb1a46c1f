"""Spring support extension pack."""

from dataclasses import dataclass
from typing import Optional, Sequence

from src.sdm.goals.common import AutoCodeInspection, Autofix, ReviewListenerRegistration
from src.sdm.machine import ExtensionPack, SoftwareDeliveryMachine
from src.sdm.spring.review import (
    CLOUD_NATIVE_REVIEWERS,
    SPRING_STYLE_REVIEWERS,
    RemoveUnnecessaryComponentScan,
)


@dataclass(frozen=True)
class SpringReviewOptions:
    cloud_native: bool = False
    spring_style: bool = False


@dataclass(frozen=True)
class SpringAutofixOptions:
    remove_unnecessary_component_scan: bool = True


def spring_support(
    inspect_goal: Optional[AutoCodeInspection] = None,
    autofix_goal: Optional[Autofix] = None,
    review: Optional[SpringReviewOptions] = None,
    autofix: Optional[SpringAutofixOptions] = None,
    review_listeners: Sequence[ReviewListenerRegistration] = (),
) -> ExtensionPack:
    """Spring reviewers and autofixes, attached to the given goals.

    Args:
        inspect_goal: Goal that receives the enabled reviewers and the
                      review listeners.
        autofix_goal: Goal that receives the enabled autofixes.
        review: Which reviewer groups to enable; none by default.
        autofix: Which autofixes to enable.
        review_listeners: Listeners called with each review.
    """
    review = review or SpringReviewOptions()
    autofix = autofix or SpringAutofixOptions()

    def configure(sdm: SoftwareDeliveryMachine) -> None:
        if inspect_goal is not None:
            if review.spring_style:
                for registration in SPRING_STYLE_REVIEWERS:
                    inspect_goal.with_reviewer(registration)
            if review.cloud_native:
                for registration in CLOUD_NATIVE_REVIEWERS:
                    inspect_goal.with_reviewer(registration)
            for listener in review_listeners:
                inspect_goal.with_listener(listener)

        if autofix_goal is not None and autofix.remove_unnecessary_component_scan:
            autofix_goal.with_autofix(RemoveUnnecessaryComponentScan)

    return ExtensionPack(
        name="spring",
        configure=configure,
        description="Spring Boot reviewers and autofixes",
    )
