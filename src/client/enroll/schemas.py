"""
文件功能：
    定义证书注册流程的公开数据模型（Pydantic）。

公开接口：
    - IdentityDescriptor: 调用方提供的身份描述（CN 与网络标识）
    - CertificateRequestTemplate: 未签名的 CSR 模板
    - EnrollmentResult: 注册成功后的结果

内部方法：
    无
"""

from __future__ import annotations

from datetime import datetime
from ipaddress import IPv4Address, IPv6Address
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SIGNATURE_ALGORITHM = "ecdsa-with-SHA256"


class IdentityDescriptor(BaseModel):
    """注册输入：通用名与网络标识（IP 字面量或主机名）。"""

    common_name: str = Field(description="证书主体的 Common Name，原样使用")
    addresses: list[str] = Field(default_factory=list, description="IP 地址或 DNS 名称，按输入顺序")


class CertificateRequestTemplate(BaseModel):
    """未签名的证书签名请求模板，构造后不可修改。"""

    model_config = ConfigDict(frozen=True)

    organization: str = Field(description="主体的 Organization")
    common_name: str = Field(description="主体的 Common Name")
    signature_algorithm: Literal["ecdsa-with-SHA256"] = Field(
        default=SIGNATURE_ALGORITHM, description="签名算法，固定为 ECDSA + SHA-256"
    )
    ip_addresses: list[IPv4Address | IPv6Address] = Field(default_factory=list, description="SAN 中的 IP 地址")
    dns_names: list[str] = Field(default_factory=list, description="SAN 中的 DNS 名称")
    validity_days: int = Field(default=365, description="期望有效期（天），仅作提示，由 CA 决定实际有效期")


class EnrollmentResult(BaseModel):
    """注册成功的结果。"""

    common_name: str = Field(description="请求时使用的 Common Name")
    key_file: str = Field(description="私钥文件路径")
    cert_file: str = Field(description="客户端证书文件路径")
    ca_file: str = Field(description="CA 证书文件路径")
    subject: str = Field(description="签发证书的主体（RFC 4514）")
    issuer: str = Field(description="签发证书的签发者（RFC 4514）")
    serial_number: str = Field(description="签发证书的序列号（十六进制）")
    not_valid_after: datetime = Field(description="签发证书的失效时间（UTC）")
