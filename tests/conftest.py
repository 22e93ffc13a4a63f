"""テスト共通のフィクスチャ。"""

import sys
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest

CLEAN_XML = (
    '<?xml version="1.0"?>\n<valgrindoutput>'
    "<protocolversion>4</protocolversion><protocoltool>memcheck</protocoltool>"
    "</valgrindoutput>"
)

# valgrindと同じ引数を受け取り、コマンドに応じてXMLをソケットへ送るスクリプト
FAKE_VALGRIND = """#!{python}
import os
import signal
import socket
import sys

options = [a for a in sys.argv[1:] if a.startswith("--")]
command = [a for a in sys.argv[1:] if not a.startswith("--")]
settings = dict(o[2:].split("=", 1) for o in options if "=" in o)


def send(path, limit=None):
    host, port = settings["xml-socket"].rsplit(":", 1)
    with open(path, "rb") as f:
        data = f.read()
    if limit is not None:
        data = data[:limit]
    with socket.create_connection((host, int(port))) as conn:
        conn.sendall(data)


mode = command[0]
if mode == "send":
    send(command[1])
elif mode == "usage-error":
    sys.stderr.write("valgrind: Bad option: --bogus\\n")
    sys.exit(1)
elif mode == "send-then-fail":
    send(command[1])
    sys.stderr.write("program failed\\n")
    sys.exit(3)
elif mode == "send-then-signal":
    send(command[1], int(command[3]) if len(command) > 3 else None)
    os.kill(os.getpid(), int(command[2]))
elif mode == "signal":
    os.kill(os.getpid(), int(command[1]))
elif mode == "exit":
    sys.exit(0)
elif mode == "check-suppressions":
    with open(settings["suppressions"]) as f:
        if "rule" not in f.read():
            sys.exit(4)
    send(command[1])
elif mode == "sleep":
    import time
    time.sleep(60)
"""


@pytest.fixture
def workdir():
    """偽のvalgrind（fake-valgrind）と空のレポート（clean.xml）を置いたディレクトリ。"""
    with TemporaryDirectory() as tmpdir:
        path = Path(tmpdir)
        script = path / "fake-valgrind"
        script.write_text(FAKE_VALGRIND.format(python=sys.executable))
        script.chmod(0o755)
        (path / "clean.xml").write_text(CLEAN_XML)
        yield path
