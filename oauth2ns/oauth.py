"""
Loopback redirect authentication.

authenticate_user() runs the OAuth2 authorization code flow for programs
without a public endpoint: the provider redirects the browser to a short-lived
server listening on 127.0.0.1, which exchanges the received code for a token.

Each call is one authorization attempt with its own state token and its own
server. The port is fixed because the redirect URI registered with the
provider must match exactly, so two attempts on the same port can't overlap:
the second one fails with ListenerError.
"""

import threading
import time
import urllib.parse
import webbrowser
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple, Union

from termcolor import colored

from .client import AuthorizedClient
from .config import OAuthConfig
from .constants import PORT, OAUTH_CALLBACK_TIMEOUT, SHUTDOWN_GRACE_PERIOD, BROWSER_PAUSES
from .oauth_server import OAuthCallbackServer
from .utils import OneShot, generate_state_token, makeDebugPrinter, printWarning
from .utils import ConfigurationError, CancelledError, TimedOutError, ShutdownTimeoutError

# How often the caller's cancel_event is checked while waiting.
CANCEL_POLL_INTERVAL = 0.25


def authenticate_user( oauth_config: Union[OAuthConfig, Dict[str, Any]],
                       auth_call_http_params: Optional[Mapping[str, Union[str, Iterable[str]]]] = None,
                       timeout: float = OAUTH_CALLBACK_TIMEOUT,
                       open_browser: bool = True,
                       port: int = PORT,
                       url_handler: Optional[Callable[[str], None]] = None,
                       cancel_event: Optional[threading.Event] = None,
                       insecure_skip_verify: bool = True,
                       browser_pauses: Tuple[float, float] = BROWSER_PAUSES,
                       shutdown_grace: float = SHUTDOWN_GRACE_PERIOD,
                       on_token_refresh: Optional[Callable[[Dict[str, Any]], None]] = None,
                       print_debug_fn: Optional[Callable[[str], None]] = None ) -> AuthorizedClient:
    """
    Authenticate the user through the browser and get an authorized HTTP client.

    Args:
        oauth_config: OAuthConfig, or a dict accepted by OAuthConfig.from_dict().
        auth_call_http_params: extra query parameters of the authorization URL, overwriting same-named ones.
        timeout: seconds to wait for a successful callback.
        open_browser: open the authorization URL in the default browser, it is printed either way.
        port: port of the local callback server, must match the registered redirect URI.
        url_handler: called with the authorization URL once the server is listening.
        cancel_event: setting this event aborts the attempt with CancelledError.
        insecure_skip_verify: don't verify TLS certificates of the token endpoint and of the returned client.
        browser_pauses: seconds to sleep before and after launching the browser.
        shutdown_grace: seconds given to the callback server to shut down.
        on_token_refresh: called with the new token each time the returned client refreshes it.
        print_debug_fn: function receiving debug messages.

    Returns:
        the AuthorizedClient.

    Raises:
        ConfigurationError: the configuration is missing or incomplete, nothing was started.
        ListenerError: the callback server could not listen on the port, or failed.
        CancelledError: the attempt was cancelled through cancel_event or the server stopped on its own.
        TimedOutError: no successful callback was received within timeout.
        ShutdownTimeoutError: the callback server did not stop within its grace period, the port was force-closed.
    """
    # validate params
    if oauth_config is None:
        raise ConfigurationError( "oauth config can't be None" )
    if isinstance( oauth_config, dict ):
        oauth_config = OAuthConfig.from_dict( oauth_config )
    if not isinstance( oauth_config, OAuthConfig ):
        raise ConfigurationError( "unsupported oauth config type: %s" % ( type( oauth_config ).__name__, ) )
    oauth_config.validate()
    if timeout is None or timeout <= 0:
        raise ConfigurationError( "timeout must be positive" )

    printDebug = makeDebugPrinter( print_debug_fn )

    # Some random string, random for each attempt
    state = generate_state_token()

    wakeup = threading.Event()
    result = OneShot( on_set = wakeup.set )
    server = OAuthCallbackServer( oauth_config,
                                  state,
                                  result,
                                  port = port,
                                  verify = not insecure_skip_verify,
                                  shutdown_grace = shutdown_grace,
                                  on_token_refresh = on_token_refresh,
                                  on_done = wakeup.set,
                                  print_debug_fn = print_debug_fn )
    server.start()

    client = None
    pending = None
    try:
        authUrl = server.oauth_config.auth_code_url( state, offline = True )
        if auth_call_http_params:
            authUrl = _applyAuthCallParams( authUrl, auth_call_http_params )
        printDebug( "authorization url: %s" % ( authUrl, ) )

        _emitAuthUrl( authUrl, open_browser, url_handler, browser_pauses, printDebug )

        print( colored( "Authentication will be cancelled in %s seconds" % ( timeout, ), 'yellow' ) )
        client = _waitForClient( result, server, wakeup, cancel_event, timeout )
    except Exception as e:
        pending = e
        raise
    finally:
        # Late callbacks must not block on a channel nobody reads.
        result.abandon()
        server.stop()
        isStopped = server.wait( timeout = shutdown_grace + 1 )

        # A force-closed port takes precedence over how the attempt ended.
        if not isStopped or server.shutdown_error is not None:
            raise ShutdownTimeoutError( "callback server did not shutdown gracefully, port %s was force-closed" % ( server.port, ), client = client ) from pending
    return client


def _waitForClient( result: OneShot, server: OAuthCallbackServer, wakeup: threading.Event, cancel_event: Optional[threading.Event], timeout: float ) -> AuthorizedClient:
    deadline = time.monotonic() + timeout
    while True:
        if result.done:
            return result.result()
        if server.done:
            if server.error is not None:
                raise server.error
            raise CancelledError( "authentication was cancelled" )
        if cancel_event is not None and cancel_event.is_set():
            raise CancelledError( "authentication was cancelled by the caller" )
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TimedOutError( "server timeout was hit after %s seconds" % ( timeout, ) )
        wakeup.wait( timeout = min( remaining, CANCEL_POLL_INTERVAL ) )
        wakeup.clear()


def _emitAuthUrl( url: str, open_browser: bool, url_handler: Optional[Callable[[str], None]], pauses: Tuple[float, float], printDebug: Callable[[str], None] ) -> None:
    beforeLaunch, afterLaunch = pauses
    if open_browser:
        print( colored( "You will now be taken to your browser for authentication", 'cyan' ) )
    time.sleep( beforeLaunch )
    if open_browser:
        try:
            isOpened = webbrowser.open( url )
        except webbrowser.Error as e:
            printDebug( "browser launch failed: %s" % ( e, ) )
            isOpened = False
        if not isOpened:
            printWarning( "failed opening browser window" )
    print( "Open your browser to: %s" % ( url, ) )
    if url_handler is not None:
        url_handler( url )
    time.sleep( afterLaunch )


def _applyAuthCallParams( url: str, params: Mapping[str, Union[str, Iterable[str]]] ) -> str:
    '''Set query parameters on url, replacing the existing values of the same name.'''
    parsed = urllib.parse.urlsplit( url )
    query = urllib.parse.parse_qs( parsed.query, keep_blank_values = True )
    for key, value in params.items():
        if isinstance( value, str ):
            query[ key ] = [ value ]
        else:
            query[ key ] = list( value )
    return urllib.parse.urlunsplit( parsed._replace( query = urllib.parse.urlencode( query, doseq = True ) ) )
