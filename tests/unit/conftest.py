import os
import socket
import sys
import time

import pytest

# Get the directory of the current conftest.py file
current_dir = os.path.dirname(os.path.abspath(__file__))

# Calculate the project root (adjust the number of ".." if needed)
project_root = os.path.abspath(os.path.join(current_dir, '../../'))

# Insert the project root at the beginning of sys.path
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from oauth2ns.config import OAuthConfig


class FakeOAuthConfig(OAuthConfig):
    """OAuthConfig exchanging codes locally instead of calling a provider."""

    def __init__(self, valid_codes=('good-code',), exchange_hook=None):
        super().__init__(client_id='test-client',
                         client_secret='test-secret',
                         auth_url='https://provider.example.com/oauth/authorize',
                         token_url='https://provider.example.com/oauth/token',
                         scopes=['read', 'write'])
        self.valid_codes = set(valid_codes)
        self.exchange_hook = exchange_hook
        self.exchanged = []

    def exchange(self, code, verify=True):
        self.exchanged.append((code, verify))
        if self.exchange_hook is not None:
            self.exchange_hook(code)
        if code not in self.valid_codes:
            raise ValueError('invalid_grant')
        return {
            'access_token': 'access-%s' % code,
            'refresh_token': 'refresh-%s' % code,
            'token_type': 'Bearer',
            'expires_in': 3600,
            'expires_at': time.time() + 3600,
            'scope': ['read', 'write'],
        }


def port_is_free(port):
    """Check nothing listens on the port, TIME_WAIT connections are ignored."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            s.bind(('127.0.0.1', port))
        except OSError:
            return False
        return True


@pytest.fixture
def free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def fake_config():
    return FakeOAuthConfig()


@pytest.fixture
def make_config():
    return FakeOAuthConfig


@pytest.fixture(name='port_is_free')
def port_is_free_fixture():
    return port_is_free
