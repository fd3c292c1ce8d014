"""simple-rest: a settings-driven, chainable REST client.

Handles are resolved from a settings file per client name and environment,
cached per query type in a ClientRegistry, and used through RestClient's
chainable DELETE/GET/POST/PUT interface.
"""

from simple_rest.client import RestClient
from simple_rest.config_loader import SettingsResolver, load_settings
from simple_rest.datastore import DataStore
from simple_rest.errors import (
    ConfigError,
    NotConfiguredError,
    NotPermittedError,
    SimpleRestError,
    TransferError,
    UnsupportedModeError,
)
from simple_rest.hooks import HookPoint
from simple_rest.log import setup_logging
from simple_rest.models import (
    AcceptFormat,
    ClientIdentity,
    ParameterSet,
    QueryType,
    ResponseRecord,
)
from simple_rest.registry import ClientRegistry
from simple_rest.transfer import TransferHandle

__version__ = "0.1.0"

__all__ = [
    "AcceptFormat",
    "ClientIdentity",
    "ClientRegistry",
    "ConfigError",
    "DataStore",
    "HookPoint",
    "NotConfiguredError",
    "NotPermittedError",
    "ParameterSet",
    "QueryType",
    "ResponseRecord",
    "RestClient",
    "SettingsResolver",
    "SimpleRestError",
    "TransferError",
    "TransferHandle",
    "UnsupportedModeError",
    "load_settings",
    "setup_logging",
    "__version__",
]
