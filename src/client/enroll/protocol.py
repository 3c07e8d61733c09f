"""
与 CA 之间的长度前缀二进制协议。

每个报文帧由 2 字节无符号小端长度头和紧随其后的负载组成：
    客户端 -> CA: [len][CSR DER]
    CA -> 客户端: [len][客户端证书 DER]
    CA -> 客户端: [len][CA 证书 DER]
单帧负载最多 65535 字节。读取必须凑满声明的长度，连接提前关闭视为协议错误。
"""

from __future__ import annotations

import socket
import struct
import time

from loguru import logger

from .errors import EnrollmentTimeoutError, FramingError, TransportError

MAX_FRAME_SIZE = 0xFFFF
_HEADER = struct.Struct("<H")


class Deadline:
    """单次注册尝试的截止时间，贯穿连接、发送与两次接收。timeout 为 None 时不限时。"""

    def __init__(self, timeout: float | None):
        self.timeout = timeout
        self._expires_at = None if timeout is None else time.monotonic() + timeout

    def remaining(self) -> float | None:
        if self._expires_at is None:
            return None
        left = self._expires_at - time.monotonic()
        if left <= 0:
            raise EnrollmentTimeoutError(f"与 CA 的交互超过了 {self.timeout} 秒的截止时间")
        return left

    def apply(self, sock: socket.socket) -> None:
        sock.settimeout(self.remaining())


def parse_address(address: str) -> tuple[str, int]:
    """
    解析 "host:port" 形式的 CA 地址，IPv6 需写作 "[::1]:port"。
    :raises TransportError: 地址格式无效。
    """
    host, sep, port = address.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise TransportError(f"无效的 CA 地址: {address!r}，应为 host:port")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise TransportError(f"无效的 CA 地址: {address!r}，IPv6 地址需写作 [host]:port")
    port_number = int(port)
    if not 0 < port_number <= 0xFFFF:
        raise TransportError(f"无效的 CA 端口: {port_number}")
    return host, port_number


def encode_frame(payload: bytes) -> bytes:
    """
    为负载加上 2 字节小端长度头。
    :raises FramingError: 负载超过 65535 字节，无法用长度头表示。
    """
    if len(payload) > MAX_FRAME_SIZE:
        raise FramingError(f"负载长度 {len(payload)} 超过协议上限 {MAX_FRAME_SIZE} 字节")
    return _HEADER.pack(len(payload)) + payload


def read_exact(sock: socket.socket, size: int, deadline: Deadline) -> bytes:
    """
    从连接中读取恰好 size 个字节。
    :raises FramingError: 对端在凑满 size 字节前关闭连接。
    """
    buf = bytearray()
    while len(buf) < size:
        deadline.apply(sock)
        chunk = sock.recv(size - len(buf))
        if not chunk:
            raise FramingError(f"连接在读取完声明的 {size} 字节前关闭（仅收到 {len(buf)} 字节）")
        buf.extend(chunk)
    return bytes(buf)


def send_frame(sock: socket.socket, payload: bytes, deadline: Deadline) -> None:
    frame = encode_frame(payload)
    deadline.apply(sock)
    sock.sendall(frame)
    logger.debug(f"已发送报文帧: {len(payload)} 字节")


def recv_frame(sock: socket.socket, deadline: Deadline) -> bytes:
    (size,) = _HEADER.unpack(read_exact(sock, _HEADER.size, deadline))
    payload = read_exact(sock, size, deadline)
    logger.debug(f"已接收报文帧: {size} 字节")
    return payload


def exchange(address: str, csr_der: bytes, timeout: float | None = None) -> tuple[bytes, bytes]:
    """
    与 CA 完成一次 连接 -> 发送 CSR -> 接收客户端证书 -> 接收 CA 证书 -> 关闭 的交互。
    连接在任何退出路径上都会被关闭，不重试、不复用。
    :param address: CA 地址（host:port）。
    :param csr_der: DER 编码的 CSR。
    :param timeout: 整个交互的截止时间（秒），None 表示不限时。
    :return: (客户端证书 DER, CA 证书 DER)
    :raises TransportError / EnrollmentTimeoutError / FramingError
    """
    host, port = parse_address(address)
    deadline = Deadline(timeout)
    try:
        with socket.create_connection((host, port), timeout=deadline.remaining()) as sock:
            logger.info(f"已连接到 CA: {address}")

            send_frame(sock, csr_der, deadline)
            logger.info("已向 CA 发送证书签名请求")

            cert_der = recv_frame(sock, deadline)
            logger.info("已从 CA 收到新签发的证书")

            ca_der = recv_frame(sock, deadline)
            logger.info("已从 CA 收到 CA 根证书")
            return cert_der, ca_der
    except TimeoutError as e:
        raise EnrollmentTimeoutError(f"与 CA {address} 通信超时 (timeout={timeout}s)") from e
    except OSError as e:
        raise TransportError(f"与 CA {address} 通信失败: {e}") from e
