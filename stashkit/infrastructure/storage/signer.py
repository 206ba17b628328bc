"""AWS Signature Version 4 请求签名。

纯函数实现，兼容 AWS S3、MinIO、Backblaze B2、Cloudflare R2 等 S3 协议存储。

签名流程：
1. 计算请求体 SHA-256
2. 构建规范请求（Canonical Request）
3. 构建待签字符串（String to Sign）
4. 派生签名密钥（四次链式 HMAC）
5. 计算签名并生成 Authorization 头
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
import hashlib
import hmac
from urllib.parse import parse_qsl, quote, unquote, urlsplit

from pydantic import BaseModel, ConfigDict, SecretStr

from stashkit.toolkit.http import HttpRequest, RequestInterceptor

ALGORITHM = "AWS4-HMAC-SHA256"
TERMINATOR = "aws4_request"
EMPTY_PAYLOAD_HASH = hashlib.sha256(b"").hexdigest()

_DEFAULT_PORTS = {"http": 80, "https": 443}


class SigningCredentials(BaseModel):
    """签名凭证。"""

    access_key_id: str
    secret_access_key: SecretStr
    region: str = "us-east-1"
    service: str = "s3"

    model_config = ConfigDict(frozen=True)


def _to_bytes(data: bytes | bytearray | memoryview | str) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def sha256_hex(data: bytes | str) -> str:
    return hashlib.sha256(_to_bytes(data)).hexdigest()


def hmac_sha256(key: bytes | str, data: bytes | str) -> bytes:
    return hmac.new(_to_bytes(key), _to_bytes(data), hashlib.sha256).digest()


def uri_encode(value: str, *, encode_slash: bool = True) -> str:
    """RFC 3986 编码，仅保留非保留字符 A-Z a-z 0-9 - _ . ~。"""
    safe = "-_.~" if encode_slash else "-_.~/"
    return quote(value, safe=safe)


def format_amz_date(now: datetime) -> tuple[str, str]:
    """返回 (YYYYMMDD, YYYYMMDDTHHMMSSZ)。"""
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y%m%d"), now.strftime("%Y%m%dT%H%M%SZ")


def canonical_uri(path: str) -> str:
    """规范 URI：先解码再编码，保留斜杠，避免二次编码。"""
    return uri_encode(unquote(path or "/"), encode_slash=False)


def canonical_query_string(query: str) -> str:
    """规范查询串：键值均编码后按键、值排序。"""
    pairs = sorted(
        (uri_encode(key), uri_encode(value))
        for key, value in parse_qsl(query, keep_blank_values=True)
    )
    return "&".join(f"{key}={value}" for key, value in pairs)


def host_header(url: str) -> str:
    """Host 头：主机名，非默认端口时附带端口。"""
    parts = urlsplit(url)
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    port = parts.port
    if port is not None and port != _DEFAULT_PORTS.get(parts.scheme):
        host = f"{host}:{port}"
    return host


def canonical_headers(headers: Mapping[str, str]) -> tuple[str, str]:
    """返回 (规范头字符串, 签名头列表)。"""
    normalized = sorted(
        (str(name).strip().lower(), str(value).strip())
        for name, value in headers.items()
    )
    block = "".join(f"{name}:{value}\n" for name, value in normalized)
    signed = ";".join(name for name, _ in normalized)
    return block, signed


def build_canonical_request(
    method: str,
    url: str,
    headers: Mapping[str, str],
    payload_hash: str,
) -> tuple[str, str]:
    """构建规范请求。

    Returns:
        tuple[str, str]: (规范请求, 签名头列表)
    """
    parts = urlsplit(url)
    header_block, signed_headers = canonical_headers(headers)
    canonical = "\n".join([
        method.upper(),
        canonical_uri(parts.path),
        canonical_query_string(parts.query),
        header_block,
        signed_headers,
        payload_hash,
    ])
    return canonical, signed_headers


def derive_signing_key(secret_access_key: str, date_stamp: str, region: str, service: str) -> bytes:
    """派生签名密钥：kDate -> kRegion -> kService -> kSigning。"""
    k_date = hmac_sha256(f"AWS4{secret_access_key}", date_stamp)
    k_region = hmac_sha256(k_date, region)
    k_service = hmac_sha256(k_region, service)
    return hmac_sha256(k_service, TERMINATOR)


def sign_request(
    method: str,
    url: str,
    headers: Mapping[str, str] | None,
    body: bytes | str | None,
    credentials: SigningCredentials,
    *,
    now: datetime | None = None,
) -> dict[str, str]:
    """为请求生成签名头。

    输入的 headers 不会被修改；返回值包含原有头以及
    x-amz-date、x-amz-content-sha256、host 和 Authorization。

    Args:
        method: HTTP 方法
        url: 完整 URL（路径需已按 RFC 3986 编码）
        headers: 需要参与签名的请求头
        body: 请求体，None 视为空
        credentials: 签名凭证
        now: 签名时间（默认当前 UTC 时间），签名精确到秒

    Returns:
        dict[str, str]: 可直接发送的请求头
    """
    date_stamp, amz_date = format_amz_date(now or datetime.now(timezone.utc))
    payload_hash = sha256_hex(body) if body else EMPTY_PAYLOAD_HASH

    signed = {str(name).lower(): str(value) for name, value in (headers or {}).items()}
    signed.pop("authorization", None)
    signed["x-amz-date"] = amz_date
    signed["x-amz-content-sha256"] = payload_hash
    signed["host"] = host_header(url)

    canonical, signed_headers = build_canonical_request(method, url, signed, payload_hash)

    scope = f"{date_stamp}/{credentials.region}/{credentials.service}/{TERMINATOR}"
    string_to_sign = "\n".join([ALGORITHM, amz_date, scope, sha256_hex(canonical)])

    signing_key = derive_signing_key(
        credentials.secret_access_key.get_secret_value(),
        date_stamp,
        credentials.region,
        credentials.service,
    )
    signature = hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

    signed["Authorization"] = (
        f"{ALGORITHM} Credential={credentials.access_key_id}/{scope}, "
        f"SignedHeaders={signed_headers}, Signature={signature}"
    )
    return signed


class SigV4Interceptor(RequestInterceptor):
    """签名拦截器。

    HttpClient 在每次尝试前调用，重试时自动使用新的时间戳重新签名。
    """

    def __init__(self, credentials: SigningCredentials) -> None:
        self._credentials = credentials

    async def before_request(self, request: HttpRequest) -> HttpRequest:
        body = request.data if isinstance(request.data, (bytes, bytearray, memoryview, str)) else None
        request.headers = sign_request(
            request.method,
            request.url,
            request.headers,
            body,
            self._credentials,
        )
        return request


__all__ = [
    "ALGORITHM",
    "EMPTY_PAYLOAD_HASH",
    "SigV4Interceptor",
    "SigningCredentials",
    "build_canonical_request",
    "canonical_query_string",
    "canonical_uri",
    "derive_signing_key",
    "sign_request",
    "uri_encode",
]
