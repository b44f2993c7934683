from .commands import BOT_COMMANDS, COMMAND_HANDLERS, parse_command
from .runtime_deps import BotRuntimeDeps, UserLockRegistry
from .turn_runtime import TurnResult, run_conversation_turn
from .update_runtime import handle_update_runtime

__all__ = [
    "BOT_COMMANDS",
    "COMMAND_HANDLERS",
    "parse_command",
    "BotRuntimeDeps",
    "UserLockRegistry",
    "TurnResult",
    "run_conversation_turn",
    "handle_update_runtime",
]
