"""
证书注册流程的异常定义。

fatal 为 True 的异常表示在当前环境下重试也不可能成功（随机源不可用、无法写入私钥文件），
调用方应当终止进程；其余异常只中止本次注册尝试，且不会留下任何输出文件。
"""


class EnrollmentError(RuntimeError):
    """注册流程失败的基类。"""

    fatal = False


class KeyGenerationError(EnrollmentError):
    """私钥生成失败（安全随机源不可用等）。"""

    fatal = True


class RequestEncodingError(EnrollmentError):
    """CSR 编码或签名失败。"""


class TransportError(EnrollmentError):
    """与 CA 之间的网络错误：地址无效、连接、发送或接收失败。"""


class EnrollmentTimeoutError(TransportError):
    """在截止时间前未完成连接或收发。"""


class FramingError(EnrollmentError):
    """报文帧违反协议：声明长度与实际收到的字节数不符，或负载超过 65535 字节。"""


class CertificateParseError(EnrollmentError):
    """CA 返回的数据无法解析为 X.509 证书。"""


class TrustValidationError(EnrollmentError):
    """签发的证书无法链到 CA 返回的根证书，或不允许用于客户端认证。"""


class PersistenceError(EnrollmentError):
    """私钥或证书文件写入失败。"""

    fatal = True
