"""memcheckのXML出力プロトコル（バージョン4〜6）のデコーダー。

プロトコルの詳細は valgrind の docs/internals/xml-output-protocol4.txt
（およびprotocol5/6）を参照。すべての要素を扱うわけではない。
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union
import logging
import string
import xml.etree.ElementTree as ET

from ..models.report import (
    ErrorEntry,
    Frame,
    Kind,
    ProtocolVersion,
    Report,
    Resources,
    Stack,
    Tool,
)
from .errors import DecodeError

logger = logging.getLogger(__name__)

ROOT_TAG = "valgrindoutput"

_HEX_DIGITS = frozenset(string.hexdigits)
_MAX_HEX64 = 2 ** 64 - 1


def parse_hex64(text: str) -> int:
    """'0xDEADBEEF'形式の16進文字列を64ビット符号なし整数に変換する。

    プレフィックスと16進数字の大文字・小文字は区別しない。

    Args:
        text: 変換する文字列

    Returns:
        変換後の整数値

    Raises:
        DecodeError: プレフィックスが無い、16進以外の文字を含む、
            または64ビットに収まらない場合
    """
    if text[:2].lower() != "0x":
        raise DecodeError(f"'0x' prefix missing in '{text}'")

    digits = text[2:]
    if not digits or any(c not in _HEX_DIGITS for c in digits):
        raise DecodeError(f"invalid hex number '{text}'")

    value = int(digits, 16)
    if value > _MAX_HEX64:
        raise DecodeError(f"hex number '{text}' does not fit into 64 bits")
    return value


@dataclass
class _XWhat:
    text: str
    leaked_bytes: Optional[int] = None
    leaked_blocks: Optional[int] = None


@dataclass
class _AuxText:
    text: str


@dataclass
class _RawError:
    """<error>要素をそのまま写した一時的な形。"""
    unique: int
    kind: Kind
    whats: List[str] = field(default_factory=list)
    xwhats: List[_XWhat] = field(default_factory=list)
    # 文書順のスタックと補助説明
    extras: List[Union[Stack, _AuxText]] = field(default_factory=list)


def decode(data: bytes) -> Report:
    """XMLレポート全体をデコードする。

    Args:
        data: ソケットから受信した生のバイト列

    Returns:
        デコード済みのReport

    Raises:
        DecodeError: XMLが不正、または想定外の内容の場合
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise DecodeError(f"invalid XML: {e}") from e

    if root.tag != ROOT_TAG:
        raise DecodeError(f"unexpected root element <{root.tag}>")

    version = _decode_version(_required_text(root, "protocolversion"))
    tool = _decode_tool(_required_text(root, "protocoltool"))
    errors = tuple(decode_error(element) for element in root.findall("error"))

    logger.debug(f"Decoded report (protocol {version.value}): {len(errors)} errors")
    return Report(protocol_version=version, tool=tool, errors=errors)


def decode_partial(data: bytes) -> Optional[Report]:
    """途中で途切れたXMLから、完全な<error>要素だけを取り出す。

    対象プログラムがシグナルで終了した場合にのみ使用する。
    ヘッダーが読めない場合はNoneを返す。

    Args:
        data: 受信済みのバイト列（途中で切れていてもよい）

    Returns:
        部分的なReport、またはNone
    """
    parser = ET.XMLPullParser(events=("start", "end"))
    version: Optional[ProtocolVersion] = None
    tool: Optional[Tool] = None
    errors: List[ErrorEntry] = []
    depth = 0

    try:
        parser.feed(data)
        for event, element in parser.read_events():
            if event == "start":
                if depth == 0 and element.tag != ROOT_TAG:
                    return None
                depth += 1
                continue

            depth -= 1
            if depth != 1:
                continue

            if element.tag == "protocolversion":
                version = _decode_version(_element_text(element))
            elif element.tag == "protocoltool":
                tool = _decode_tool(_element_text(element))
            elif element.tag == "error":
                try:
                    errors.append(decode_error(element))
                except DecodeError as e:
                    logger.warning(f"Skipping undecodable error entry: {e}")
    except ET.ParseError as e:
        logger.debug(f"Partial report ends with a parse error: {e}")
    except DecodeError as e:
        logger.debug(f"Partial report header is invalid: {e}")
        return None

    if version is None or tool is None:
        return None
    return Report(protocol_version=version, tool=tool, errors=tuple(errors))


def decode_error(element: ET.Element) -> ErrorEntry:
    """単一の<error>要素をデコードする。

    Args:
        element: <error>要素

    Returns:
        ErrorEntry

    Raises:
        DecodeError: 必須要素の欠落や不正な値がある場合
    """
    raw = _read_raw_error(element)
    return _normalize(raw)


def _read_raw_error(element: ET.Element) -> _RawError:
    unique = parse_hex64(_required_text(element, "unique"))
    kind_text = _required_text(element, "kind")
    try:
        kind = Kind(kind_text)
    except ValueError:
        raise DecodeError(f"unknown error kind '{kind_text}'") from None

    raw = _RawError(unique=unique, kind=kind)
    for child in element:
        if child.tag == "what":
            raw.whats.append(_element_text(child))
        elif child.tag == "xwhat":
            raw.xwhats.append(_decode_xwhat(child))
        elif child.tag == "stack":
            raw.extras.append(_decode_stack(child))
        elif child.tag == "auxwhat":
            raw.extras.append(_AuxText(_element_text(child)))
        elif child.tag == "xauxwhat":
            raw.extras.append(_AuxText(_required_text(child, "text")))
    return raw


def _normalize(raw: _RawError) -> ErrorEntry:
    if len(raw.whats) + len(raw.xwhats) != 1:
        raise DecodeError(
            f"error 0x{raw.unique:x}: expected exactly one <what> or <xwhat>"
        )

    stacks = tuple(extra for extra in raw.extras if isinstance(extra, Stack))
    if not stacks:
        raise DecodeError(f"error 0x{raw.unique:x}: no stack trace")
    auxiliary_info = tuple(
        extra.text for extra in raw.extras if isinstance(extra, _AuxText)
    )

    xwhat = raw.xwhats[0] if raw.xwhats else None
    if raw.kind.is_leak():
        if xwhat is None or xwhat.leaked_bytes is None or xwhat.leaked_blocks is None:
            raise DecodeError(
                f"error 0x{raw.unique:x}: leak without <xwhat> byte/block counts"
            )

    if xwhat is not None:
        description = xwhat.text
        resources = Resources(
            bytes=xwhat.leaked_bytes or 0,
            blocks=xwhat.leaked_blocks or 0,
        )
    else:
        description = raw.whats[0]
        resources = Resources()

    return ErrorEntry(
        unique=raw.unique,
        kind=raw.kind,
        stack_traces=stacks,
        resources=resources,
        description=description,
        auxiliary_info=auxiliary_info,
    )


def _decode_xwhat(element: ET.Element) -> _XWhat:
    leaked_bytes = _optional_text(element, "leakedbytes")
    leaked_blocks = _optional_text(element, "leakedblocks")
    return _XWhat(
        text=_required_text(element, "text"),
        leaked_bytes=_parse_count(leaked_bytes, "leakedbytes") if leaked_bytes is not None else None,
        leaked_blocks=_parse_count(leaked_blocks, "leakedblocks") if leaked_blocks is not None else None,
    )


def _decode_stack(element: ET.Element) -> Stack:
    return Stack(frames=tuple(_decode_frame(f) for f in element.findall("frame")))


def _decode_frame(element: ET.Element) -> Frame:
    line = _optional_text(element, "line")
    return Frame(
        instruction_pointer=parse_hex64(_required_text(element, "ip")),
        object=_optional_text(element, "obj"),
        directory=_optional_text(element, "dir"),
        function=_optional_text(element, "fn"),
        file=_optional_text(element, "file"),
        line=_parse_count(line, "line") if line is not None else None,
    )


def _decode_version(text: str) -> ProtocolVersion:
    try:
        return ProtocolVersion(text)
    except ValueError:
        raise DecodeError(f"unsupported protocol version '{text}'") from None


def _decode_tool(text: str) -> Tool:
    try:
        return Tool(text)
    except ValueError:
        raise DecodeError(f"unsupported valgrind tool '{text}'") from None


def _parse_count(text: str, name: str) -> int:
    if not (text.isascii() and text.isdigit()):
        raise DecodeError(f"<{name}> is not a non-negative integer: '{text}'")
    return int(text)


def _element_text(element: ET.Element) -> str:
    return (element.text or "").strip()


def _optional_text(element: ET.Element, tag: str) -> Optional[str]:
    child = element.find(tag)
    if child is None:
        return None
    return _element_text(child)


def _required_text(element: ET.Element, tag: str) -> str:
    text = _optional_text(element, tag)
    if text is None:
        raise DecodeError(f"missing <{tag}> in <{element.tag}>")
    return text
