"""Tests for the Assuan client session."""

from __future__ import annotations

import io
import socket
import subprocess
import sys
import textwrap

import pytest

from gpgagent_mcp.client import AssuanClient, SessionState
from gpgagent_mcp.protocol.errors import AssuanError, ErrorKind
from gpgagent_mcp.protocol.parser import CallResult
from gpgagent_mcp.transport.channel import Channel


class _Recorder(io.BytesIO):
    """BytesIO that remembers its contents when closed."""

    final = b""

    def close(self) -> None:
        if not self.closed:
            self.final = self.getvalue()
        super().close()


def _client(server_output: bytes) -> tuple[AssuanClient, _Recorder]:
    writer = _Recorder()
    channel = Channel.from_streams(io.BytesIO(server_output), writer)
    return AssuanClient(channel), writer


# ─── HANDSHAKE ────────────────────────────────────────────────────────

def test_handshake_ok():
    client, writer = _client(b"OK Pleased to meet you\n")
    assert client.state is SessionState.READY
    assert client.greeting == b" Pleased to meet you"
    assert writer.getvalue() == b""


@pytest.mark.parametrize(
    "greeting, cause",
    [
        (b"ERR 1 not now\n", ErrorKind.REMOTE),
        (b"INQUIRE SOMETHING\n", ErrorKind.PROTOCOL),
        (b"HELLO\n", ErrorKind.PROTOCOL),
        (b"", ErrorKind.TRANSPORT),
    ],
)
def test_handshake_failure(greeting, cause):
    """Anything but a bare OK greeting fails construction, nothing is sent."""
    writer = _Recorder()
    channel = Channel.from_streams(io.BytesIO(greeting), writer)
    with pytest.raises(AssuanError) as excinfo:
        AssuanClient(channel)
    assert excinfo.value.kind is ErrorKind.HANDSHAKE
    assert excinfo.value.__cause__.kind is cause
    assert writer.final == b""
    assert channel.closed


def test_handshake_with_data_fails():
    writer = _Recorder()
    channel = Channel.from_streams(io.BytesIO(b"D junk\nOK\n"), writer)
    with pytest.raises(AssuanError) as excinfo:
        AssuanClient(channel)
    assert excinfo.value.kind is ErrorKind.HANDSHAKE
    assert writer.final == b""


def test_handshake_skips_comments():
    client, _ = _client(b"# starting\nS PROGRESS\nOK\n")
    assert client.state is SessionState.READY


# ─── CALLS ────────────────────────────────────────────────────────────

def test_exec_option_wire_line():
    client, writer = _client(b"OK\nOK\n")
    result = client.exec("OPTION", ["ttyname", "/dev/pts/4"])
    assert writer.getvalue() == b"OPTION ttyname /dev/pts/4\n"
    assert result == CallResult(message=b"", data=b"")


def test_option_discards_result():
    client, writer = _client(b"OK\nOK something\n")
    assert client.option("ttyname", "/dev/pts/4") is None
    assert writer.getvalue() == b"OPTION ttyname /dev/pts/4\n"


def test_exec_collects_data():
    client, _ = _client(b"OK\nD 68656c6c6f\nOK\n")
    result = client.exec("GETINFO", ["secret"])
    assert result.data == b"68656c6c6f"
    assert bytes.fromhex(result.data.decode()) == b"hello"


def test_exec_escapes_arguments():
    client, writer = _client(b"OK\nOK\n")
    client.exec("CMD", [b"a b%\n"])
    assert writer.getvalue() == b"CMD a%20b%25%0A\n"


def test_remote_error_keeps_session_usable():
    client, writer = _client(b"OK\nERR 67108922 Invalid passphrase\nOK\n")
    with pytest.raises(AssuanError) as excinfo:
        client.exec("GET_PASSPHRASE", ["id"])
    assert excinfo.value.kind is ErrorKind.REMOTE
    assert excinfo.value.message == "67108922 Invalid passphrase"
    assert client.state is SessionState.READY

    assert client.exec("NOP") == CallResult()
    assert writer.getvalue() == b"GET_PASSPHRASE id\nNOP\n"


def test_invalid_command_sends_nothing():
    client, writer = _client(b"OK\n")
    with pytest.raises(AssuanError) as excinfo:
        client.exec("BAD NAME")
    assert excinfo.value.kind is ErrorKind.INVALID_COMMAND
    assert writer.getvalue() == b""
    assert client.state is SessionState.READY


def test_inquire_fails_session():
    """After a protocol violation the session refuses further calls."""
    client, writer = _client(b"OK\nINQUIRE CIPHERTEXT\nOK\n")
    with pytest.raises(AssuanError) as excinfo:
        client.exec("PKDECRYPT")
    assert excinfo.value.kind is ErrorKind.PROTOCOL
    assert client.state is SessionState.FAILED

    with pytest.raises(AssuanError) as excinfo:
        client.exec("NOP")
    assert excinfo.value.kind is ErrorKind.PROTOCOL
    assert writer.getvalue() == b"PKDECRYPT\n"


def test_eof_fails_session():
    client, _ = _client(b"OK\nD partial\n")
    with pytest.raises(AssuanError) as excinfo:
        client.exec("GETINFO", ["version"])
    assert excinfo.value.kind is ErrorKind.TRANSPORT
    assert client.state is SessionState.FAILED


# ─── TEARDOWN ─────────────────────────────────────────────────────────

def test_close_sends_bye():
    client, writer = _client(b"OK\nOK closing connection\n")
    client.close()
    assert writer.final == b"BYE\n"
    assert client.state is SessionState.CLOSED


def test_close_is_idempotent():
    client, writer = _client(b"OK\nOK\n")
    client.close()
    client.close()
    assert writer.final == b"BYE\n"


def test_close_swallows_errors():
    """A peer that vanished before BYE does not make close() raise."""
    client, writer = _client(b"OK\n")
    client.close()
    assert writer.final == b"BYE\n"
    assert client.state is SessionState.CLOSED


def test_close_after_failure_skips_bye():
    client, writer = _client(b"OK\nbogus\n")
    with pytest.raises(AssuanError):
        client.exec("NOP")
    client.close()
    assert writer.final == b"NOP\n"


def test_exec_after_close():
    client, _ = _client(b"OK\nOK\n")
    client.close()
    with pytest.raises(AssuanError) as excinfo:
        client.exec("NOP")
    assert excinfo.value.kind is ErrorKind.TRANSPORT


def test_context_manager_closes():
    writer = _Recorder()
    channel = Channel.from_streams(io.BytesIO(b"OK\nOK\nOK\n"), writer)
    with AssuanClient(channel) as client:
        client.exec("NOP")
    assert client.state is SessionState.CLOSED
    assert writer.final == b"NOP\nBYE\n"


# ─── REAL CHANNELS ────────────────────────────────────────────────────

@pytest.mark.skipif(not hasattr(socket, "AF_UNIX"), reason="needs Unix sockets")
def test_socket_channel_end_to_end():
    """One socket split into read and write halves carries a whole session."""
    client_sock, server_sock = socket.socketpair()
    server_sock.sendall(b"OK ready\nD 68656c6c6f\nOK\nOK bye\n")

    client = AssuanClient(Channel.from_socket(client_sock))
    result = client.exec("GETINFO", ["version"])
    client.close()

    assert result == CallResult(message=b"", data=b"68656c6c6f")
    with server_sock.makefile("rb") as requests:
        assert requests.read() == b"GETINFO version\nBYE\n"
    server_sock.close()


FAKE_SERVER = textwrap.dedent(
    """
    import sys
    out = sys.stdout.buffer
    out.write(b"OK fake server\\n")
    out.flush()
    for line in sys.stdin.buffer:
        if line.startswith(b"BYE"):
            out.write(b"OK closing connection\\n")
            out.flush()
            break
        out.write(b"# echo\\nD " + line.rstrip(b"\\n") + b"\\nOK\\n")
        out.flush()
    """
)


def test_process_channel_end_to_end():
    """A child process with piped stdin/stdout serves as the channel."""
    proc = subprocess.Popen(
        [sys.executable, "-c", FAKE_SERVER],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.DEVNULL,
    )
    try:
        with AssuanClient.from_process(proc) as client:
            assert client.greeting == b" fake server"
            result = client.exec("ECHO", ["a b"])
            assert result.data == b"ECHO a%20b"
        assert proc.wait(timeout=10) == 0
    finally:
        if proc.poll() is None:
            proc.kill()
            proc.wait()


def test_process_without_pipes():
    proc = subprocess.Popen([sys.executable, "-c", "pass"])
    try:
        with pytest.raises(AssuanError) as excinfo:
            AssuanClient.from_process(proc)
        assert excinfo.value.kind is ErrorKind.TRANSPORT
    finally:
        proc.wait()


def test_exec_rejects_string_args():
    client, writer = _client(b"OK\n")
    with pytest.raises(TypeError):
        client.exec("GETINFO", "version")
    assert writer.getvalue() == b""
    assert client.state is SessionState.READY
