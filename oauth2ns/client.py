from typing import Any, Callable, Dict, Optional

from requests_oauthlib import OAuth2Session


class AuthorizedClient( object ):
    '''An HTTP client authenticated by an OAuth2 token, along with the token itself.

    The HTTP client is a requests Session refreshing its token before it
    expires, anything not defined here is looked up on it, so
    `client.get( url )` works as on a regular Session.
    '''

    def __init__( self, http_client: OAuth2Session, token: Optional[Dict[str, Any]] = None ):
        self.http_client = http_client
        if token is not None:
            self.http_client.token = token

    @classmethod
    def from_token( cls, oauth_config, token: Dict[str, Any], verify: bool = True, on_token_refresh: Optional[Callable[[Dict[str, Any]], None]] = None ) -> 'AuthorizedClient':
        '''Wrap a token in an auto-refreshing client.

        Args:
            oauth_config (OAuthConfig): configuration the token was issued for.
            token (dict): the token record.
            verify (bool): verify TLS certificates of the token endpoint and API calls.
            on_token_refresh (function(token)): called with each refreshed token.

        Returns:
            the AuthorizedClient.
        '''
        def _onRefresh( newToken ):
            if on_token_refresh is not None:
                on_token_refresh( newToken )

        return cls( oauth_config.client( token, verify = verify, token_updater = _onRefresh ) )

    @property
    def token( self ) -> Dict[str, Any]:
        '''The current token, including any refresh that happened since the client was created.'''
        return self.http_client.token

    def __getattr__( self, name ):
        if name == 'http_client':
            raise AttributeError( name )
        return getattr( self.http_client, name )

    def __repr__( self ):
        return "AuthorizedClient(token_type=%r, expires_at=%r)" % ( self.token.get( 'token_type', None ), self.token.get( 'expires_at', None ) )
