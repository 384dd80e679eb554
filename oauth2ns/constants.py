import os

# Port the temporary callback server listens on. The redirect URI built from it
# must be registered with the OAuth provider as-is.
PORT = 14565
CALLBACK_HOST = '127.0.0.1'
CALLBACK_PATH = '/oauth/callback'

# How long an authorization attempt waits for the callback before giving up.
OAUTH_CALLBACK_TIMEOUT = 300  # 5 minutes

# Grace period given to in-flight callback requests when the server stops.
SHUTDOWN_GRACE_PERIOD = 5

# Pauses around the browser launch, in seconds.
BROWSER_PAUSES = ( 1.0, 0.6 )

# Length of the generated anti-forgery state token.
STATE_TOKEN_LENGTH = 16

# Path to the configuration file. Can be overriden for tests.
CONFIG_FILE_PATH = os.path.expanduser( '~/.oauth2ns' )

CONFIG_FILE_ENV_VAR = 'OAUTH2NS_CONFIG_FILE'
CURRENT_ENV_ENV_VAR = 'OAUTH2NS_CURRENT_ENV'
CLIENT_ID_ENV_VAR = 'OAUTH2NS_CLIENT_ID'
CLIENT_SECRET_ENV_VAR = 'OAUTH2NS_CLIENT_SECRET'
