import secrets
import sys
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from .constants import STATE_TOKEN_LENGTH


class OAuth2NSException( Exception ):
    '''Exception type used for the errors raised during an authorization attempt.'''

    def __init__( self, message, code = None ):
        """
        Initialize the exception with a message and an optional status code.

        Args:
            message (str): The error message.
            code (int, optional): An optional HTTP status code involved in the error. Defaults to None.
        """
        super().__init__( message )
        self.code = code


class ConfigurationError( OAuth2NSException ):
    '''The OAuth client configuration is missing or incomplete.'''


class ListenerError( OAuth2NSException ):
    '''The local callback listener could not be started or stopped serving.'''


class StateMismatchError( OAuth2NSException ):
    '''A callback carried a state token that does not belong to the attempt.'''


class ExchangeError( OAuth2NSException ):
    '''The authorization code could not be exchanged for a token.'''


class ShutdownTimeoutError( OAuth2NSException ):
    '''The callback server did not shut down within its grace period.'''

    def __init__( self, message, code = None, client = None ):
        super().__init__( message, code = code )
        # Client delivered before the failed shutdown, if any.
        self.client = client


class CancelledError( OAuth2NSException ):
    '''The authorization attempt was cancelled before a client was delivered.'''


class TimedOutError( OAuth2NSException ):
    '''No successful callback was received before the attempt timed out.'''


# Default function to call with debug messages.
DEFAULT_PRINT_DEBUG_FN: Optional[Callable[[str], None]] = None

def set_default_print_debug_fn( fn: Optional[Callable[[str], None]] = None ):
    """
    Set a default function to call with debug messages.

    Args:
        fn (function): the function to call with debug messages.
    """
    global DEFAULT_PRINT_DEBUG_FN
    DEFAULT_PRINT_DEBUG_FN = fn

def makeDebugPrinter( fn: Optional[Callable[[str], None]] = None ) -> Callable[[str], None]:
    '''Build a printer forwarding timestamped messages to fn, or to the default debug function.'''
    fn = fn or DEFAULT_PRINT_DEBUG_FN

    def _printDebug( msg ):
        if fn is not None:
            time_string = datetime.now( timezone.utc ).strftime( "%Y-%m-%d %H:%M:%SZ" )
            fn( f"{time_string}: {msg}" )
    return _printDebug

def printWarning( msg: str ) -> None:
    print( f"Warning: {msg}", file = sys.stderr )


def generate_state_token( length: int = STATE_TOKEN_LENGTH ) -> str:
    """
    Generate a fresh anti-forgery state token.

    Args:
        length (int): number of random bytes, the returned string is longer.

    Returns:
        a URL-safe random string only meant for equality comparison.
    """
    return secrets.token_urlsafe( max( length, 8 ) )


class OneShot( object ):
    '''Single-use hand-off of one value from a producer thread to one consumer.

    The producer never blocks: a value delivered after the consumer abandoned
    the channel, or after a first value, is refused.
    '''

    def __init__( self, on_set: Optional[Callable[[], None]] = None ):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._value = None
        self._isAbandoned = False
        self._onSet = on_set

    def set_result( self, value: Any ) -> bool:
        '''Deliver the value.

        Args:
            value: the value to hand off.

        Returns:
            True if the value was accepted, False if the channel is already filled or abandoned.
        '''
        with self._lock:
            if self._event.is_set() or self._isAbandoned:
                return False
            self._value = value
            self._event.set()
        if self._onSet is not None:
            self._onSet()
        return True

    def abandon( self ) -> None:
        '''Signal that nobody will read the channel anymore.'''
        with self._lock:
            self._isAbandoned = True

    @property
    def done( self ) -> bool:
        return self._event.is_set()

    @property
    def abandoned( self ) -> bool:
        return self._isAbandoned

    def wait( self, timeout: Optional[float] = None ) -> bool:
        return self._event.wait( timeout = timeout )

    def result( self, timeout: Optional[float] = None ) -> Any:
        '''Get the delivered value, blocking for up to timeout seconds.

        Returns:
            the value, or None if nothing was delivered in time.
        '''
        if not self._event.wait( timeout = timeout ):
            return None
        with self._lock:
            return self._value
