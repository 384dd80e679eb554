import hmac
import http.server
import threading
import time
import urllib.parse
from typing import Any, Callable, Dict, Optional

from .client import AuthorizedClient
from .constants import PORT, CALLBACK_HOST, CALLBACK_PATH, SHUTDOWN_GRACE_PERIOD
from .utils import ExchangeError, ListenerError, OneShot, ShutdownTimeoutError, StateMismatchError
from .utils import makeDebugPrinter, printWarning


SUCCESS_HTML = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>Authentication Successful</title>
    <style>
        body {
            font-family: -apple-system, BlinkMacSystemFont, sans-serif;
            margin: 0;
        }

        .banner {
            height: 100px;
            width: 100%;
            display: flex;
            flex-direction: column;
            justify-content: center;
            align-items: center;
            background-color: #2ecc71;
            color: #ffffff;
            font-size: 22px;
        }

        .message {
            margin-top: 20px;
            font-size: 18px;
            text-align: center;
        }
    </style>
</head>
<body>
    <div class="banner"><div>Success!</div></div>
    <p class="message">You are authenticated, you can now return to the program. This will auto-close.</p>
    <script>window.onload = function() { setTimeout(window.close, 4000); };</script>
</body>
</html>
"""


class OAuthCallbackHandler( http.server.BaseHTTPRequestHandler ):
    """Handler for OAuth callback requests, dispatching on the routes of its server."""

    def do_GET( self ):
        self._dispatch()

    def do_POST( self ):
        self._dispatch()

    def _dispatch( self ):
        parsed = urllib.parse.urlparse( self.path )
        route = self.server.routes.get( parsed.path, None )
        if route is not None:
            params = self.read_params( parsed )
            if params is None:
                self.send_error( 400, "invalid Content-Length" )
                return
            route( self, params )
        elif parsed.path == '/favicon.ico':
            self.send_response( 204 )  # No Content
            self.end_headers()
        else:
            self.send_response( 404 )
            self.send_header( 'Content-type', 'text/plain' )
            self.end_headers()
            self.wfile.write( b"Not found" )

    def read_params( self, parsed ) -> Optional[Dict[str, str]]:
        """Get the request parameters, values from a form body win over the query string.

        Returns None when the request body can't be read.
        """
        params = { k: v[ 0 ] for k, v in urllib.parse.parse_qs( parsed.query ).items() }
        if self.command == 'POST':
            try:
                length = int( self.headers.get( 'Content-Length', 0 ) or 0 )
            except ValueError:
                return None
            contentType = self.headers.get( 'Content-Type', '' ) or ''
            body = self.rfile.read( length ) if length > 0 else b''
            if contentType.split( ';' )[ 0 ].strip() == 'application/x-www-form-urlencoded':
                form = urllib.parse.parse_qs( body.decode( 'utf-8', errors = 'replace' ) )
                params.update( { k: v[ 0 ] for k, v in form.items() } )
        return params

    def redirect( self, location: str = '/' ):
        self.send_response( 307 )
        self.send_header( 'Location', location )
        self.send_header( 'Content-Length', '0' )
        self.end_headers()

    def send_html( self, html: str ):
        body = html.encode( 'utf-8' )
        self.send_response( 200 )
        self.send_header( 'Content-type', 'text/html; charset=utf-8' )
        self.send_header( 'Content-Length', str( len( body ) ) )
        self.end_headers()
        self.wfile.write( body )
        self.wfile.flush()

    def log_message( self, format, *args ):
        self.server.print_debug( "%s - %s" % ( self.address_string(), format % args ) )


class _CallbackHTTPServer( http.server.ThreadingHTTPServer ):
    '''HTTP server owning its own route table and tracking in-flight requests.'''

    # The port must stay exclusive to one attempt at a time.
    allow_reuse_port = False
    block_on_close = False
    daemon_threads = True

    def __init__( self, server_address, routes: Dict[str, Callable], print_debug: Callable[[str], None] ):
        self.routes = routes
        self.print_debug = print_debug
        self._nActive = 0
        self._idle = threading.Condition()
        super().__init__( server_address, OAuthCallbackHandler )

    def process_request( self, request, client_address ):
        with self._idle:
            self._nActive += 1
        try:
            super().process_request( request, client_address )
        except Exception:
            self._requestDone()
            raise

    def process_request_thread( self, request, client_address ):
        try:
            super().process_request_thread( request, client_address )
        finally:
            self._requestDone()

    def _requestDone( self ):
        with self._idle:
            self._nActive -= 1
            self._idle.notify_all()

    def wait_idle( self, timeout: float ) -> bool:
        with self._idle:
            return self._idle.wait_for( lambda: self._nActive == 0, timeout = max( timeout, 0 ) )


class OAuthCallbackServer( object ):
    """Local HTTP server receiving the OAuth redirect of a single authorization attempt."""

    def __init__( self, oauth_config, expected_state: str, result: OneShot, port: int = PORT, host: str = CALLBACK_HOST, verify: bool = True, shutdown_grace: float = SHUTDOWN_GRACE_PERIOD, on_token_refresh: Optional[Callable[[Dict[str, Any]], None]] = None, on_done: Optional[Callable[[], None]] = None, print_debug_fn: Optional[Callable[[str], None]] = None ):
        """
        Initialize the OAuth callback server.

        Args:
            oauth_config: OAuthConfig used to exchange the received code.
            expected_state: state token of the attempt, callbacks with another state are rejected.
            result: channel the AuthorizedClient is delivered on.
            port: port to listen on, 0 for an ephemeral one.
            host: address to listen on.
            verify: verify TLS certificates during the code exchange.
            shutdown_grace: seconds given to in-flight requests when stopping.
            on_token_refresh: forwarded to the delivered AuthorizedClient.
            on_done: called once after the server shut down.
            print_debug_fn: function receiving debug messages.
        """
        self.oauth_config = oauth_config
        self.expected_state = expected_state
        self.result = result
        self.host = host
        self.port = port
        self.verify = verify
        self.shutdown_grace = shutdown_grace
        self.on_token_refresh = on_token_refresh
        self._onDone = on_done
        self._printDebug = makeDebugPrinter( print_debug_fn )

        self.server = None
        self.error: Optional[ListenerError] = None
        self.shutdown_error: Optional[ShutdownTimeoutError] = None
        self._stopEvent = threading.Event()
        self._doneEvent = threading.Event()
        self._serverThread = None
        self._supervisorThread = None

    def start( self ) -> int:
        """
        Start the OAuth callback server.

        Returns:
            The port number the server is listening on

        Raises:
            ListenerError: if the port can't be bound.
        """
        if self.server is not None:
            raise ListenerError( "callback server already started" )

        try:
            self.server = _CallbackHTTPServer( ( self.host, self.port ),
                                               { CALLBACK_PATH: self._handleCallback },
                                               self._printDebug )
        except OSError as e:
            raise ListenerError( "could not listen on %s:%s: %s" % ( self.host, self.port, e ) )
        self.port = self.server.server_address[ 1 ]
        self.oauth_config = self.oauth_config.with_redirect_url( self.redirect_uri )

        self._supervisorThread = threading.Thread( target = self._supervise, daemon = True )
        self._supervisorThread.start()

        # Start server in separate thread
        self._serverThread = threading.Thread( target = self._runServer, daemon = True )
        self._serverThread.start()

        self._printDebug( "callback server listening on %s:%s" % ( self.host, self.port ) )
        return self.port

    @property
    def redirect_uri( self ) -> str:
        return "http://%s:%s%s" % ( self.host, self.port, CALLBACK_PATH )

    @property
    def done( self ) -> bool:
        return self._doneEvent.is_set()

    def stop( self ) -> None:
        """Ask the server to shut down, can be called any number of times."""
        self._stopEvent.set()

    def wait( self, timeout: Optional[float] = None ) -> bool:
        """Wait for the shutdown to complete, returns False on timeout."""
        return self._doneEvent.wait( timeout = timeout )

    def _runServer( self ):
        try:
            self.server.serve_forever( poll_interval = 0.1 )
        except Exception as e:
            if not self._stopEvent.is_set():
                self.error = ListenerError( "callback server failed: %s" % ( e, ) )
        else:
            if not self._stopEvent.is_set():
                self.error = ListenerError( "callback server stopped unexpectedly" )
        if self.error is not None:
            printWarning( str( self.error ) )
            self.stop()

    def _supervise( self ):
        self._stopEvent.wait()
        self._printDebug( "Shutting down server..." )
        deadline = time.monotonic() + self.shutdown_grace

        # Stops the accept loop, must be called from a different thread.
        stopper = threading.Thread( target = self.server.shutdown, daemon = True )
        stopper.start()
        stopper.join( timeout = self.shutdown_grace )
        isStopped = not stopper.is_alive()

        # Releases the port, in-flight requests keep their own socket.
        self.server.server_close()

        if not isStopped or not self.server.wait_idle( deadline - time.monotonic() ):
            self.shutdown_error = ShutdownTimeoutError( "could not shutdown gracefully within %s seconds" % ( self.shutdown_grace, ) )
            printWarning( str( self.shutdown_error ) )
        else:
            self._printDebug( "Server gracefully stopped" )

        self._doneEvent.set()
        if self._onDone is not None:
            self._onDone()

    def _handleCallback( self, handler: OAuthCallbackHandler, params: Dict[str, str] ):
        receivedState = params.get( 'state', '' )
        if not hmac.compare_digest( receivedState.encode( 'utf-8' ), self.expected_state.encode( 'utf-8' ) ):
            printWarning( str( StateMismatchError( "invalid oauth state, got '%s'" % ( receivedState, ) ) ) )
            handler.redirect( '/' )
            return

        code = params.get( 'code', '' )
        if not code:
            # Provider side rejections (access_denied...) only surface as a timeout.
            printWarning( str( ExchangeError( "oauth callback without code: %s %s" % ( params.get( 'error', 'unknown error' ), params.get( 'error_description', '' ) ) ) ) )
            handler.redirect( '/' )
            return

        try:
            token = self.oauth_config.exchange( code, verify = self.verify )
            # The HTTP client returned will refresh the token as necessary
            client = AuthorizedClient.from_token( self.oauth_config, token, verify = self.verify, on_token_refresh = self.on_token_refresh )
        except Exception as e:
            printWarning( str( ExchangeError( "oauth code exchange failed with '%s'" % ( e, ) ) ) )
            handler.redirect( '/' )
            return

        handler.send_html( SUCCESS_HTML )

        if not self.result.set_result( client ):
            self._printDebug( "authorization attempt is over, discarding authorized client" )
