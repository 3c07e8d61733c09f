"""
信任链校验：仅信任 CA 返回的根证书，并要求客户端证书可用于客户端认证（clientAuth）。
终端证书的 SAN、AKI 以及根证书的 SKI 可有可无：未指定地址时 CA 签发的证书本就没有 SAN，
结果只由路径、签名、有效期与用途决定。
"""

from __future__ import annotations

from datetime import datetime

from cryptography import x509
from cryptography.x509.verification import (
    Criticality,
    ExtensionPolicy,
    PolicyBuilder,
    Store,
    VerificationError,
)
from loguru import logger

from .errors import TrustValidationError


def _ee_policy() -> ExtensionPolicy:
    return (
        ExtensionPolicy.webpki_defaults_ee()
        .may_be_present(x509.SubjectAlternativeName, Criticality.AGNOSTIC, None)
        .may_be_present(x509.AuthorityKeyIdentifier, Criticality.AGNOSTIC, None)
    )


def _ca_policy() -> ExtensionPolicy:
    return (
        ExtensionPolicy.webpki_defaults_ca()
        .may_be_present(x509.SubjectKeyIdentifier, Criticality.AGNOSTIC, None)
        .may_be_present(x509.AuthorityKeyIdentifier, Criticality.AGNOSTIC, None)
    )


def validate_certificate(
    certificate: x509.Certificate,
    root_certificate: x509.Certificate,
    validation_time: datetime | None = None,
) -> None:
    """
    校验证书能否以 root_certificate 作为唯一信任锚链到根，并且允许用于客户端认证。
    不查询系统信任库。
    :param certificate: CA 签发的客户端证书。
    :param root_certificate: CA 返回的自身证书，作为唯一信任锚。
    :param validation_time: 校验时间，默认为当前时间。
    :raises TrustValidationError: 签名不匹配、路径不存在、已过期/未生效或用途不符。
    """
    builder = (
        PolicyBuilder()
        .store(Store([root_certificate]))
        .extension_policies(ca_policy=_ca_policy(), ee_policy=_ee_policy())
    )
    if validation_time is not None:
        builder = builder.time(validation_time)
    verifier = builder.build_client_verifier()

    try:
        verifier.verify(certificate, [])
    except VerificationError as e:
        logger.error(f"信任链校验失败: {e}")
        raise TrustValidationError(f"信任链校验失败: {e}") from e

    logger.info("信任链校验成功")
