"""
OAuth2 client configuration.

OAuthConfig holds what the provider issued for the application (client id and
secret, scopes, endpoints) and is the only place talking OAuth2 protocol: it
builds the authorization URL, exchanges codes for tokens and produces sessions
refreshing their own token, all through requests-oauthlib.
"""

import copy
import os
from typing import Any, Callable, Dict, List, Optional

import yaml
from requests_oauthlib import OAuth2Session

from .constants import CONFIG_FILE_PATH, CONFIG_FILE_ENV_VAR, CURRENT_ENV_ENV_VAR
from .constants import CLIENT_ID_ENV_VAR, CLIENT_SECRET_ENV_VAR
from .utils import ConfigurationError


class OAuthConfig( object ):
    '''Client side configuration of an OAuth2 provider application.'''

    def __init__( self, client_id: str, client_secret: Optional[str] = None, auth_url: Optional[str] = None, token_url: Optional[str] = None, scopes: Optional[List[str]] = None, redirect_url: Optional[str] = None ):
        '''Create a configuration.

        Args:
            client_id (str): client identifier issued by the provider.
            client_secret (str): client secret issued by the provider, if any.
            auth_url (str): the provider's authorization endpoint.
            token_url (str): the provider's token endpoint.
            scopes (list of str): scopes to request.
            redirect_url (str): redirect URI registered with the provider.
        '''
        self.client_id = client_id
        self.client_secret = client_secret
        self.auth_url = auth_url
        self.token_url = token_url
        self.scopes = list( scopes or [] )
        self.redirect_url = redirect_url

    @classmethod
    def from_dict( cls, data: Dict[str, Any] ) -> 'OAuthConfig':
        if not data:
            raise ConfigurationError( "oauth config can't be empty" )
        scopes = data.get( 'scopes', None )
        if isinstance( scopes, str ):
            scopes = scopes.split()
        return cls( client_id = data.get( 'client_id', None ),
                    client_secret = data.get( 'client_secret', None ),
                    auth_url = data.get( 'auth_url', None ),
                    token_url = data.get( 'token_url', None ),
                    scopes = scopes,
                    redirect_url = data.get( 'redirect_url', None ) )

    def __repr__( self ):
        return "OAuthConfig(client_id=%r, auth_url=%r, token_url=%r, scopes=%r)" % ( self.client_id, self.auth_url, self.token_url, self.scopes )

    def validate( self ) -> None:
        '''Make sure every field needed for the authorization code flow is set.'''
        missing = [ name for name in ( 'client_id', 'auth_url', 'token_url' ) if not getattr( self, name ) ]
        if missing:
            raise ConfigurationError( "oauth config is missing: %s" % ( ', '.join( missing ), ) )

    def with_redirect_url( self, redirect_url: str ) -> 'OAuthConfig':
        '''Get a copy of this configuration bound to a redirect URI.'''
        conf = copy.copy( self )
        conf.scopes = list( self.scopes )
        conf.redirect_url = redirect_url
        return conf

    def session( self, state: Optional[str] = None, token: Optional[Dict[str, Any]] = None, verify: bool = True, token_updater: Optional[Callable[[Dict[str, Any]], None]] = None ) -> OAuth2Session:
        '''Create an OAuth2 session for this configuration.

        When a token is provided the session refreshes it against the token
        endpoint whenever it expired.
        '''
        autoRefresh = {}
        if token is not None:
            refreshKwargs = { 'client_id': self.client_id }
            if self.client_secret:
                refreshKwargs[ 'client_secret' ] = self.client_secret
            autoRefresh = {
                'auto_refresh_url': self.token_url,
                'auto_refresh_kwargs': refreshKwargs,
                'token_updater': token_updater or ( lambda newToken: None ),
            }
        s = OAuth2Session( self.client_id,
                           scope = self.scopes or None,
                           redirect_uri = self.redirect_url,
                           state = state,
                           token = token,
                           **autoRefresh )
        s.verify = verify
        return s

    def auth_code_url( self, state: str, offline: bool = True ) -> str:
        '''Build the URL of the provider's consent page.

        Args:
            state (str): anti-forgery token round-tripped by the provider.
            offline (bool): request a refresh token along the access token.

        Returns:
            the authorization URL.
        '''
        params = {}
        if offline:
            params[ 'access_type' ] = 'offline'
        url, _ = self.session( state = state ).authorization_url( self.auth_url, state = state, **params )
        return url

    def exchange( self, code: str, verify: bool = True ) -> Dict[str, Any]:
        '''Exchange an authorization code for a token.

        Returns:
            the token record (access_token, refresh_token, expires_at, scope...).
        '''
        return dict( self.session( verify = verify ).fetch_token( self.token_url,
                                                                 code = code,
                                                                 client_secret = self.client_secret,
                                                                 verify = verify ) )

    def client( self, token: Dict[str, Any], verify: bool = True, token_updater: Optional[Callable[[Dict[str, Any]], None]] = None ) -> OAuth2Session:
        '''Get an HTTP session authenticated with token, refreshing it as necessary.'''
        return self.session( token = token, verify = verify, token_updater = token_updater )


def _getEnvironmentConfig( conf: Dict[str, Any], name: str ) -> Optional[Dict[str, Any]]:
    if name == 'default':
        # Default provider settings are at the top of the config file.
        return { k: v for k, v in conf.items() if k != 'env' }

    if name not in ( conf.get( 'env', None ) or {} ):
        return None
    return conf[ 'env' ][ name ]

def load_oauth_config( path: Optional[str] = None, environment: Optional[str] = None ) -> OAuthConfig:
    '''Load an OAuth configuration from a YAML file.

    The file is looked for, in order, at path, at the location in the
    OAUTH2NS_CONFIG_FILE environment variable and at "~/.oauth2ns". The
    OAUTH2NS_CLIENT_ID and OAUTH2NS_CLIENT_SECRET environment variables take
    precedence over the file.

    Args:
        path (str): path to the config file.
        environment (str): named environment in the file, defaults to OAUTH2NS_CURRENT_ENV or "default".

    Returns:
        the OAuthConfig, validated.
    '''
    if path is None:
        path = os.environ.get( CONFIG_FILE_ENV_VAR, None ) or CONFIG_FILE_PATH
    if not environment:
        environment = os.environ.get( CURRENT_ENV_ENV_VAR, None ) or 'default'

    try:
        with open( path, 'rb' ) as f:
            conf = yaml.safe_load( f.read() )
    except FileNotFoundError:
        raise ConfigurationError( "config file not found: %s" % ( path, ) )
    except yaml.YAMLError as e:
        raise ConfigurationError( "invalid config file %s: %s" % ( path, e ) )

    # Handle scenario where a file is empty
    conf = conf or {}
    if not isinstance( conf, dict ):
        raise ConfigurationError( "invalid config file %s: expected a mapping" % ( path, ) )

    envData = _getEnvironmentConfig( conf, environment )
    if envData is None:
        raise ConfigurationError( "environment %s not found in %s" % ( environment, path ) )
    envData = dict( envData )

    clientId = os.environ.get( CLIENT_ID_ENV_VAR, None )
    if clientId:
        envData[ 'client_id' ] = clientId
    clientSecret = os.environ.get( CLIENT_SECRET_ENV_VAR, None )
    if clientSecret:
        envData[ 'client_secret' ] = clientSecret

    oauthConfig = OAuthConfig.from_dict( envData )
    oauthConfig.validate()
    return oauthConfig
