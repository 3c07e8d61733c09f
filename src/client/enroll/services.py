"""
证书注册服务的业务逻辑层。
此模块组合 CSR 构造、与 CA 的交互、信任链校验与凭据落盘，提供注册入口供调用方使用。
"""

from __future__ import annotations

import os
from typing import Iterable

from loguru import logger

from src.client.config import Config

from . import core, protocol, storage, trust
from .schemas import CertificateRequestTemplate, EnrollmentResult


def enroll_with_template(
    template: CertificateRequestTemplate,
    ca_address: str,
    key_file: str | os.PathLike,
    cert_file: str | os.PathLike,
    ca_file: str | os.PathLike,
    timeout: float | None = None,
) -> EnrollmentResult:
    """
    使用给定的 CSR 模板完成一次注册尝试。
    :return: 注册结果。
    :raises KeyGenerationError / PersistenceError: 致命错误。
    :raises TransportError / FramingError / RequestEncodingError / CertificateParseError:
        本次尝试失败，未写入任何文件。
    :raises TrustValidationError: 返回的证书无法链到 CA 证书，未写入任何文件。
    """
    private_key = core.generate_private_key()

    csr_der = core.encode_certificate_request(template, private_key)
    logger.info(f"已为 {template.common_name!r} 创建证书签名请求")

    cert_der, ca_der = protocol.exchange(ca_address, csr_der, timeout=timeout)

    certificate = core.load_certificate(cert_der, "客户端证书")
    root_certificate = core.load_certificate(ca_der, "CA 证书")
    logger.debug(f"客户端证书: {core.describe_certificate(certificate)}")
    logger.debug(f"CA 证书: {core.describe_certificate(root_certificate)}")

    trust.validate_certificate(certificate, root_certificate)

    storage.write_credentials(
        core.encode_private_key(private_key),
        core.encode_certificate(cert_der),
        core.encode_certificate(ca_der),
        key_file,
        cert_file,
        ca_file,
    )
    logger.info(f"已保存私钥 {key_file}、证书 {cert_file} 与 CA 证书 {ca_file}")

    return EnrollmentResult(
        common_name=template.common_name,
        key_file=str(key_file),
        cert_file=str(cert_file),
        ca_file=str(ca_file),
        subject=certificate.subject.rfc4514_string(),
        issuer=certificate.issuer.rfc4514_string(),
        serial_number=format(certificate.serial_number, "x"),
        not_valid_after=certificate.not_valid_after_utc,
    )


def enroll(
    common_name: str,
    duration: int,
    addresses: Iterable[str],
    ca_address: str,
    key_file: str | os.PathLike,
    cert_file: str | os.PathLike,
    ca_file: str | os.PathLike,
    organization: str = "ezBastion",
    timeout: float | None = 30.0,
) -> EnrollmentResult:
    """
    注册入口：构造 CSR 模板，向 CA 申请证书，校验后保存私钥与证书。
    :param common_name: 证书的 Common Name。
    :param duration: 期望有效期（天），仅作提示。
    :param addresses: IP 地址或 DNS 名称。
    :param ca_address: CA 地址（host:port）。
    :param key_file: 私钥输出路径。
    :param cert_file: 证书输出路径。
    :param ca_file: CA 证书输出路径。
    :param organization: 主体的 Organization。
    :param timeout: 与 CA 交互的截止时间（秒），None 表示不限时。
    """
    template = core.new_certificate_request(
        common_name, addresses, organization=organization, validity_days=duration
    )
    return enroll_with_template(template, ca_address, key_file, cert_file, ca_file, timeout=timeout)


def enroll_from_config(cfg: Config) -> EnrollmentResult:
    """按配置执行一次注册。"""
    return enroll(
        cfg.common_name,
        cfg.validity_days,
        cfg.addresses,
        cfg.ca_address,
        cfg.key_file,
        cfg.cert_file,
        cfg.ca_file,
        organization=cfg.organization,
        timeout=cfg.timeout_seconds,
    )
