"""Command dispatch: command tokens to stack lifecycle calls.

Top-level commands:
- login [URL] [--local]
- up
- destroy
- stack <init|rm|ls>

Unknown commands and wrong argument counts are soft failures: the caller
gets a skipped result with a usage message, never an exception.
"""

import logging
from typing import Callable

from common import ActionResult
from errors import UnsupportedCommandError
from inputs import ResolvedRequest
from stack import StackManager

logger = logging.getLogger(__name__)

TOP_LEVEL_COMMANDS = {
    'login': 'Log in to a pulumi backend (local file backend by default)',
    'up': 'Create or update the stack resources',
    'destroy': 'Destroy the stack resources',
    'stack': 'Stack management (init/rm/ls)',
}

STACK_COMMANDS = {
    'init': 'Create the stack and write provider config',
    'rm': 'Remove the stack record',
    'ls': 'Show the stack summary',
}


# StackManager method per stack sub-command
STACK_HANDLERS = {
    'init': 'init',
    'rm': 'remove',
    'ls': 'list_stack',
}


class OperationDispatcher:
    """Maps command tokens to StackManager operations.

    The manager is obtained from manager_provider only once a command has
    passed validation, so rejected commands never touch the engine.
    """

    def __init__(self, manager_provider: Callable[[], StackManager]):
        self._manager = manager_provider

    def dispatch(self, command: str, request: ResolvedRequest) -> ActionResult:
        """Run command against request; soft-fail on unsupported input."""
        try:
            return self._dispatch(command, request)
        except UnsupportedCommandError as e:
            logger.warning(e.message)
            return ActionResult.skip(e.message)

    def _dispatch(self, command: str, request: ResolvedRequest) -> ActionResult:
        positional = request.args.positional

        if command == 'login':
            if len(positional) > 1:
                raise UnsupportedCommandError(
                    f"login takes at most one backend URL, got {len(positional)}: {' '.join(positional)}"
                )
            url = None if request.args.local or not positional else positional[0]
            return self._manager().login(request, url)

        if command == 'up':
            _expect_no_args(command, positional)
            return self._manager().up(request)

        if command == 'destroy':
            _expect_no_args(command, positional)
            return self._manager().destroy(request)

        if command == 'stack':
            return self._dispatch_stack(request)

        raise UnsupportedCommandError(
            f"Sorry, {command} is not supported for pulumi component. "
            f"Available commands: {', '.join(TOP_LEVEL_COMMANDS)}"
        )

    def _dispatch_stack(self, request: ResolvedRequest) -> ActionResult:
        positional = request.args.positional
        if not positional:
            raise UnsupportedCommandError(
                f"Usage: stack <{'|'.join(STACK_COMMANDS)}>"
            )
        sub = positional[0]
        method_name = STACK_HANDLERS.get(sub)
        if method_name is None:
            raise UnsupportedCommandError(
                f"Sorry, stack {sub} is not supported for pulumi component"
            )
        if len(positional) > 1:
            raise UnsupportedCommandError(
                f"stack {sub} takes no further arguments, got: {' '.join(positional[1:])}"
            )
        handler: Callable[[ResolvedRequest], ActionResult] = getattr(self._manager(), method_name)
        return handler(request)


def _expect_no_args(command: str, positional: list[str]) -> None:
    if positional:
        raise UnsupportedCommandError(
            f"{command} takes no positional arguments, got: {' '.join(positional)}"
        )
