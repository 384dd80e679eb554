from setuptools import setup

__version__ = "1.0.0"
__author__ = "Maxime Lamothe-Brassard ( Refraction Point, Inc )"
__author_email__ = "maxime@refractionpoint.com"
__license__ = "Apache v2"
__copyright__ = "Copyright (c) 2020 Refraction Point, Inc"

setup( name = 'oauth2ns',
       version = __version__,
       description = 'OAuth2 authorization code flow through a loopback redirect, for CLI and native programs.',
       author = __author__,
       author_email = __author_email__,
       license = __license__,
       packages = [ 'oauth2ns' ],
       zip_safe = True,
       python_requires = '>=3.8',
       install_requires = [ 'requests', 'requests-oauthlib', 'pyyaml', 'tabulate', 'termcolor' ],
       extras_require = {
           'test': [ 'pytest' ],
       },
       long_description = 'Authenticate users of a CLI or native program with OAuth2: a temporary local server receives the provider redirect and the code is exchanged for an auto-refreshing HTTP client.',
       entry_points = {
           'console_scripts': [
               'oauth2ns=oauth2ns.__main__:main',
           ],
       },
)
