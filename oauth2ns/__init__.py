"""OAuth2 authorization code flow through a loopback redirect, for CLI and native programs."""

__version__ = "1.0.0"
__author__ = "Maxime Lamothe-Brassard ( Refraction Point, Inc )"
__author_email__ = "maxime@refractionpoint.com"
__license__ = "Apache v2"
__copyright__ = "Copyright (c) 2020 Refraction Point, Inc"

from .constants import PORT, CALLBACK_PATH
from .client import AuthorizedClient
from .config import OAuthConfig, load_oauth_config
from .oauth import authenticate_user
from .utils import set_default_print_debug_fn
from .utils import OAuth2NSException
from .utils import ConfigurationError
from .utils import ListenerError
from .utils import StateMismatchError
from .utils import ExchangeError
from .utils import ShutdownTimeoutError
from .utils import CancelledError
from .utils import TimedOutError
