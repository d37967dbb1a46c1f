"""Push tests: named predicates over a pushed commit.

A push test looks at the checked-out project (and the push metadata) and
answers whether a goal contribution rule applies to the push.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable

if TYPE_CHECKING:
    from src.sdm.invocation import PushListenerInvocation

logger = logging.getLogger(__name__)

PushPredicate = Callable[["PushListenerInvocation"], Awaitable[bool]]


class PushTestError(Exception):
    """Raised when a push test cannot be evaluated.

    Attributes:
        test_name: Name of the failing push test.
    """

    def __init__(self, test_name: str, cause: Exception):
        self.test_name = test_name
        super().__init__(f"Push test {test_name} failed: {cause}")


@dataclass(frozen=True)
class PushTest:
    """A named async predicate over a push.

    Attributes:
        name: Name used in logs and error messages.
        predicate: Async callable returning True when the push matches.
    """

    name: str
    predicate: PushPredicate

    async def test(self, invocation: "PushListenerInvocation") -> bool:
        """Evaluate the predicate.

        Raises:
            PushTestError: If the predicate raises.
        """
        try:
            result = bool(await self.predicate(invocation))
        except Exception as exc:
            raise PushTestError(self.name, exc) from exc

        logger.debug(
            "Evaluated push test",
            extra={"push_test": self.name, "result": result, "push_id": invocation.push.push_id},
        )
        return result


def push_test(name: str) -> Callable[[PushPredicate], PushTest]:
    """Decorator turning an async predicate into a PushTest.

    Example:
        >>> @push_test("IsMaven")
        ... async def is_maven(inv):
        ...     return await inv.project.has_file("pom.xml")
    """

    def decorator(predicate: PushPredicate) -> PushTest:
        return PushTest(name=name, predicate=predicate)

    return decorator


@push_test("AnyPush")
async def AnyPush(invocation: "PushListenerInvocation") -> bool:
    return True
