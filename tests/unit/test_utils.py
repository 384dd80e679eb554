import threading
import time

from oauth2ns.utils import OneShot, generate_state_token, makeDebugPrinter, set_default_print_debug_fn
from oauth2ns.utils import OAuth2NSException, ShutdownTimeoutError, TimedOutError


class TestStateToken:
    """Test the anti-forgery state token generator."""

    def test_state_token_minimum_length(self):
        assert len(generate_state_token()) >= 8
        assert len(generate_state_token(1)) >= 8

    def test_state_token_is_url_safe(self):
        token = generate_state_token()
        assert all(c.isalnum() or c in '-_' for c in token)

    def test_state_tokens_are_unique(self):
        tokens = [generate_state_token() for _ in range(1000)]
        assert len(set(tokens)) == len(tokens)


class TestOneShot:
    """Test the single-use result channel."""

    def test_first_value_wins(self):
        channel = OneShot()
        assert channel.set_result('first') is True
        assert channel.set_result('second') is False
        assert channel.done
        assert channel.result() == 'first'

    def test_abandoned_channel_refuses_values(self):
        channel = OneShot()
        channel.abandon()
        assert channel.abandoned
        assert channel.set_result('late') is False
        assert not channel.done
        assert channel.result(timeout=0.05) is None

    def test_set_result_does_not_block_without_reader(self):
        channel = OneShot()
        start = time.monotonic()
        channel.set_result('value')
        assert time.monotonic() - start < 1

    def test_wait_wakes_up_on_delivery(self):
        channel = OneShot()
        threading.Timer(0.1, channel.set_result, args=('value',)).start()
        assert channel.wait(timeout=5)
        assert channel.result() == 'value'

    def test_wait_times_out(self):
        channel = OneShot()
        assert channel.wait(timeout=0.05) is False

    def test_on_set_called_once(self):
        calls = []
        channel = OneShot(on_set=lambda: calls.append(1))
        channel.set_result('a')
        channel.set_result('b')
        assert calls == [1]


class TestDebugPrinter:

    def test_printer_prefixes_timestamp(self):
        messages = []
        printDebug = makeDebugPrinter(messages.append)
        printDebug('hello')
        assert len(messages) == 1
        assert messages[0].endswith(': hello')
        assert messages[0][:4].isdigit()

    def test_printer_uses_default_function(self):
        messages = []
        set_default_print_debug_fn(messages.append)
        try:
            makeDebugPrinter()('from default')
        finally:
            set_default_print_debug_fn(None)
        assert messages and messages[0].endswith('from default')

    def test_printer_without_function_is_silent(self):
        makeDebugPrinter()('nobody listens')


def test_exceptions_share_base_class():
    assert issubclass(TimedOutError, OAuth2NSException)
    err = ShutdownTimeoutError('stuck', client='client')
    assert isinstance(err, OAuth2NSException)
    assert err.client == 'client'
    assert str(err) == 'stuck'
    assert OAuth2NSException('boom', code=500).code == 500
