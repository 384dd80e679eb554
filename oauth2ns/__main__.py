import sys
import traceback

# Token fields only displayed truncated.
SECRET_TOKEN_FIELDS = ( 'access_token', 'refresh_token', 'id_token' )


def _parseParams( rawParams ):
    params = {}
    for raw in rawParams or []:
        if '=' not in raw:
            raise ValueError( "invalid --param %r, expected KEY=VALUE" % ( raw, ) )
        key, value = raw.split( '=', 1 )
        # Repeating a key sends it multiple times.
        params.setdefault( key, [] ).append( value )
    return params

def formatToken( token ):
    '''Render a token record as a table, secret values truncated.'''
    import time
    from tabulate import tabulate

    rows = []
    for key, value in token.items():
        if key in SECRET_TOKEN_FIELDS and value:
            value = "%s..." % ( str( value )[ : 8 ], )
        elif key == 'expires_at' and value:
            value = "%s (in %d seconds)" % ( time.strftime( '%Y-%m-%d %H:%M:%SZ', time.gmtime( value ) ), int( value - time.time() ) )
        elif isinstance( value, ( list, tuple ) ):
            value = ' '.join( str( v ) for v in value )
        rows.append( ( key, value ) )
    return tabulate( rows, headers = [ 'field', 'value' ], tablefmt = 'grid' )

def cli( args ):
    """
    Command line interface for oauth2ns.

    Args:
        args (list): list of CLI arguments to parse.
    """
    import argparse
    import json

    parser = argparse.ArgumentParser( prog = 'oauth2ns' )
    parser.add_argument( 'action',
                         type = str,
                         help = 'action, currently supported "login" (authenticate through the browser and print the token), "version"' )

    # Everything after the action name is passed to the action argument parser.
    rootArgs = args[ 1: 2 ]
    actionArgs = args[ 2: ]
    args = parser.parse_args( rootArgs )

    if args.action.lower() == 'version':
        from . import __version__
        print( "oauth2ns Version %s" % ( __version__, ) )
    elif args.action.lower() == 'login':
        from . import constants
        from .config import load_oauth_config
        from .oauth import authenticate_user

        parser = argparse.ArgumentParser( prog = 'oauth2ns login' )
        parser.add_argument( '--config',
                             type = str,
                             default = None,
                             help = 'path to the YAML config file (default: $OAUTH2NS_CONFIG_FILE or ~/.oauth2ns)' )
        parser.add_argument( '--environment', '--env',
                             type = str,
                             default = None,
                             help = 'named environment within the config file (default: $OAUTH2NS_CURRENT_ENV or "default")' )
        parser.add_argument( '--timeout',
                             type = float,
                             default = constants.OAUTH_CALLBACK_TIMEOUT,
                             help = 'seconds to wait for the browser callback' )
        parser.add_argument( '--port',
                             type = int,
                             default = constants.PORT,
                             help = 'port of the local callback server, must match the registered redirect URI' )
        parser.add_argument( '--no-browser',
                             action = 'store_true',
                             help = 'print URL instead of opening browser' )
        parser.add_argument( '--param',
                             action = 'append',
                             default = [],
                             help = 'extra KEY=VALUE query parameter of the authorization URL, can be repeated' )
        parser.add_argument( '--strict-tls',
                             action = 'store_true',
                             help = 'verify TLS certificates of the token endpoint' )
        parser.add_argument( '--json',
                             action = 'store_true',
                             help = 'print the raw token as JSON' )
        loginArgs = parser.parse_args( actionArgs )

        oauthConfig = load_oauth_config( loginArgs.config, loginArgs.environment )
        client = authenticate_user( oauthConfig,
                                    auth_call_http_params = _parseParams( loginArgs.param ),
                                    timeout = loginArgs.timeout,
                                    port = loginArgs.port,
                                    open_browser = not loginArgs.no_browser,
                                    insecure_skip_verify = not loginArgs.strict_tls )

        if loginArgs.json:
            print( json.dumps( client.token, indent = 2 ) )
        else:
            print( formatToken( client.token ) )
    else:
        raise Exception( 'invalid action: %s' % ( args.action.lower(), ) )

def main():
    args = sys.argv

    # Hack since we don't have access to parsed args here and parsing itself may fail
    debug_mode = False
    if "--debug" in args:
        debug_mode = True
        args.remove( "--debug" )
        from .utils import set_default_print_debug_fn
        set_default_print_debug_fn( lambda x: print( x, file = sys.stderr ) )

    try:
        cli( args )
    except Exception as e:
        print( "Error:", e, file = sys.stderr )

        if debug_mode:
            print( traceback.format_exc(), file = sys.stderr )

        return 1
    return 0

if __name__ == "__main__":
    sys.exit( main() )
