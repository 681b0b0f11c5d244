"""Composable commands with declared contracts, chains and compensating rollback.

This package has no dependency on application code; commands live in the
consuming application and are wired to a notifier via `configure_notifier`
or `configure_from_settings`.
"""

from commandkit.chain import UNCHAINED_MESSAGE, Chain
from commandkit.command import RESERVED_NAMES, Command
from commandkit.config import CommandkitSettings, configure_from_settings, load_config
from commandkit.config_namespace import ConfigNamespace
from commandkit.context import ChainContext, Context
from commandkit.contract import Contract
from commandkit.errors import (
    ArgumentTypeError,
    ChainNotRunError,
    ChainReturnError,
    CommandArgumentError,
    CommandkitError,
    CommandNoNotifyError,
    ContractDefinitionError,
    StopAndFail,
    ValidationFailed,
)
from commandkit.logging_utils import setup_command_logger
from commandkit.notifier import (
    LoggingNotifier,
    Notifier,
    NullNotifier,
    WebhookNotifier,
    configure_notifier,
    get_notifier,
)
from commandkit.recorder import (
    CommandRecorder,
    DefaultCommandRecorder,
    NullCommandRecorder,
    configure_recorder,
    get_recorder,
)
from commandkit.validation import FieldError, FieldErrors, inclusion, matches, numericality, presence, satisfies

__all__ = [
    "ArgumentTypeError",
    "Chain",
    "ChainContext",
    "ChainNotRunError",
    "ChainReturnError",
    "Command",
    "CommandArgumentError",
    "CommandNoNotifyError",
    "CommandRecorder",
    "CommandkitError",
    "CommandkitSettings",
    "ConfigNamespace",
    "Context",
    "Contract",
    "ContractDefinitionError",
    "DefaultCommandRecorder",
    "FieldError",
    "FieldErrors",
    "LoggingNotifier",
    "Notifier",
    "NullCommandRecorder",
    "NullNotifier",
    "RESERVED_NAMES",
    "StopAndFail",
    "UNCHAINED_MESSAGE",
    "ValidationFailed",
    "WebhookNotifier",
    "configure_from_settings",
    "configure_notifier",
    "configure_recorder",
    "get_notifier",
    "get_recorder",
    "inclusion",
    "load_config",
    "matches",
    "numericality",
    "presence",
    "satisfies",
    "setup_command_logger",
]
