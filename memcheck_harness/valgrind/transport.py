"""valgrindからXMLレポートを受け取るためのローカルTCPソケット。"""

from typing import Optional, Tuple
import logging
import socket
import threading

from .errors import SocketConnectionError

logger = logging.getLogger(__name__)

LOOPBACK_HOST = "127.0.0.1"
_RECV_SIZE = 65536


def open_listener() -> Tuple[socket.socket, str]:
    """ループバック上のOS割り当てポートで待ち受けソケットを開く。

    Returns:
        (待ち受けソケット, "host:port"形式のアドレス) のタプル

    Raises:
        SocketConnectionError: バインドに失敗した場合
    """
    try:
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    except OSError as e:
        raise SocketConnectionError(f"cannot create socket: {e}") from e

    try:
        listener.bind((LOOPBACK_HOST, 0))
        listener.listen(1)
        host, port = listener.getsockname()
    except OSError as e:
        listener.close()
        raise SocketConnectionError(f"cannot bind to {LOOPBACK_HOST}: {e}") from e

    address = f"{host}:{port}"
    logger.debug(f"Listening for the XML report on {address}")
    return listener, address


def accept_and_drain(
    listener: socket.socket,
    cancelled: Optional[threading.Event] = None,
    poll_interval: float = 0.1
) -> bytes:
    """接続を1つだけ受け付け、相手が閉じるまで読み込む。

    長さによるフレーミングは無く、接続のクローズで完了とみなす。
    cancelledが与えられた場合、accept待ちの間poll_interval毎に確認し、
    セット済みでかつ保留中の接続が無ければ中断する。
    待ち受けソケットは呼び出し終了時に閉じる。

    Args:
        listener: open_listener()で開いたソケット
        cancelled: 中断要求を表すイベント（省略可）
        poll_interval: 中断確認の間隔（秒）

    Returns:
        受信したすべてのバイト列

    Raises:
        SocketConnectionError: accept/readで入出力エラーが発生した場合、
            または接続前に中断された場合
    """
    with listener:
        connection = _accept(listener, cancelled, poll_interval)

    chunks = []
    with connection:
        connection.settimeout(None)
        try:
            while True:
                chunk = connection.recv(_RECV_SIZE)
                if not chunk:
                    break
                chunks.append(chunk)
        except OSError as e:
            raise SocketConnectionError(f"cannot read XML report: {e}") from e

    data = b"".join(chunks)
    logger.debug(f"Received {len(data)} bytes of XML report")
    return data


def _accept(
    listener: socket.socket,
    cancelled: Optional[threading.Event],
    poll_interval: float
) -> socket.socket:
    if cancelled is not None:
        listener.settimeout(poll_interval)

    while True:
        try:
            connection, peer = listener.accept()
        except socket.timeout:
            # 保留中の接続がある場合、acceptはタイムアウトせずに返る
            if cancelled is not None and cancelled.is_set():
                raise SocketConnectionError("no connection from valgrind") from None
            continue
        except OSError as e:
            raise SocketConnectionError(f"cannot accept connection: {e}") from e

        logger.debug(f"Accepted connection from {peer[0]}:{peer[1]}")
        return connection
