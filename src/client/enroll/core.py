"""
证书注册客户端的核心逻辑实现。
包括构造 CSR 模板、生成 P-256 私钥、编码 CSR、私钥与证书的 PEM 编码以及证书解析等。
"""

import ipaddress
import ssl
from typing import Iterable

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PrivateFormat,
    NoEncryption,
)
from cryptography.x509.oid import NameOID
from loguru import logger

from .errors import CertificateParseError, KeyGenerationError, RequestEncodingError
from .schemas import CertificateRequestTemplate


def new_certificate_request(
    common_name: str,
    addresses: Iterable[str],
    organization: str = "ezBastion",
    validity_days: int = 365,
) -> CertificateRequestTemplate:
    """
    根据通用名和网络标识构造未签名的 CSR 模板。
    可解析为 IPv4/IPv6 字面量的标识放入 IP 列表，其余原样放入 DNS 列表；保持输入顺序，不去重。
    :param common_name: 证书主体的 Common Name（不做校验）。
    :param addresses: IP 地址或主机名列表。
    :param organization: 主体的 Organization。
    :param validity_days: 期望有效期，仅作提示。
    :return: CertificateRequestTemplate
    """
    ip_addresses = []
    dns_names = []
    for address in addresses:
        try:
            ip_addresses.append(ipaddress.ip_address(address))
        except ValueError:
            dns_names.append(address)

    return CertificateRequestTemplate(
        organization=organization,
        common_name=common_name,
        ip_addresses=ip_addresses,
        dns_names=dns_names,
        validity_days=validity_days,
    )


def generate_private_key() -> ec.EllipticCurvePrivateKey:
    """
    使用系统安全随机源生成新的 P-256 私钥。
    :raises KeyGenerationError: 随机源或底层库失败，属于致命错误。
    """
    try:
        return ec.generate_private_key(ec.SECP256R1())
    except Exception as e:
        raise KeyGenerationError(f"生成私钥失败: {e}") from e


def _subject_name(template: CertificateRequestTemplate) -> x509.Name:
    attributes = [x509.NameAttribute(NameOID.ORGANIZATION_NAME, template.organization)]
    # 空 CN 不写入主体
    if template.common_name:
        attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, template.common_name))
    return x509.Name(attributes)


def encode_certificate_request(
    template: CertificateRequestTemplate, private_key: ec.EllipticCurvePrivateKey
) -> bytes:
    """
    使用私钥对 CSR 模板自签名并返回 DER 编码。
    :raises RequestEncodingError: 模板内容无法编码（如 CN 过长、非法 DNS 名称）。
    """
    try:
        builder = x509.CertificateSigningRequestBuilder().subject_name(_subject_name(template))

        general_names: list[x509.GeneralName] = [x509.DNSName(name) for name in template.dns_names]
        general_names.extend(x509.IPAddress(ip) for ip in template.ip_addresses)
        if general_names:
            builder = builder.add_extension(x509.SubjectAlternativeName(general_names), critical=False)

        csr = builder.sign(private_key, hashes.SHA256())
    except (ValueError, TypeError) as e:
        raise RequestEncodingError(f"CSR 编码失败: {e}") from e

    logger.debug(
        f"CSR 主体: {csr.subject.rfc4514_string()}, "
        f"DNS: {template.dns_names}, IP: {[str(ip) for ip in template.ip_addresses]}"
    )
    return csr.public_bytes(Encoding.DER)


def encode_private_key(private_key: ec.EllipticCurvePrivateKey) -> bytes:
    """将私钥编码为 "EC PRIVATE KEY" PEM（SEC1 格式，不加密）。"""
    return private_key.private_bytes(
        encoding=Encoding.PEM,
        format=PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=NoEncryption(),
    )


def load_certificate(der_bytes: bytes, label: str = "证书") -> x509.Certificate:
    """
    解析 CA 返回的 DER 证书。
    :param der_bytes: DER 编码的证书。
    :param label: 用于错误信息的证书名称。
    :raises CertificateParseError: 数据不是合法的 X.509 证书。
    """
    try:
        return x509.load_der_x509_certificate(der_bytes)
    except ValueError as e:
        raise CertificateParseError(f"无法解析{label} ({len(der_bytes)} 字节): {e}") from e


def encode_certificate(der_bytes: bytes) -> bytes:
    """将收到的 DER 原样包装为 "CERTIFICATE" PEM，不经过解析后重新编码。"""
    return ssl.DER_cert_to_PEM_cert(der_bytes).encode("ascii")


def describe_certificate(certificate: x509.Certificate) -> str:
    serial = format(certificate.serial_number, "x")
    fp = certificate.fingerprint(hashes.SHA256()).hex()
    return (
        f"subject={certificate.subject.rfc4514_string()}, "
        f"issuer={certificate.issuer.rfc4514_string()}, serial=0x{serial}, "
        f"not_after={certificate.not_valid_after_utc}, sha256={fp}"
    )
