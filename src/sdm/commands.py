"""Command registrations.

A command is a named action users invoke from chat or the HTTP API, with an
optional pydantic model describing its parameters.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Type, Union

from pydantic import BaseModel

from src.sdm.invocation import CommandInvocation

CommandListener = Callable[[CommandInvocation], Awaitable[Any]]


class DuplicateCommandError(ValueError):
    """Raised when a command name or intent is registered twice.

    Attributes:
        name: The clashing command name or intent.
    """

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"A command named or invoked by {name!r} is already registered")


class CommandNotFoundError(LookupError):
    """Raised when no command matches a name or intent.

    Attributes:
        name: The requested command name or intent.
    """

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"No command registered for {name!r}")


@dataclass(frozen=True)
class CommandRegistration:
    """A named command.

    Attributes:
        name: Unique command name.
        intent: Phrase users type to invoke the command.
        description: What the command does.
        listener: Async callable run on invocation.
        parameters: Model used to validate raw parameters, None when the
                    command takes none.
    """

    name: str
    listener: CommandListener
    intent: Optional[str] = None
    description: str = ""
    parameters: Optional[Type[BaseModel]] = None

    def parse_parameters(
        self, raw: Union[BaseModel, Mapping[str, Any], None]
    ) -> Optional[BaseModel]:
        """Validate raw parameters against the command's model.

        Raises:
            pydantic.ValidationError: If the parameters are invalid.
        """
        if self.parameters is None:
            return None
        if isinstance(raw, self.parameters):
            return raw
        return self.parameters.model_validate(dict(raw or {}))
