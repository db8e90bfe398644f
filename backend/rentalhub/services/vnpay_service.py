"""VNPay gateway adapter: signed redirect URLs and callback verification"""
import hashlib
import hmac
import secrets
from dataclasses import dataclass, fields
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional
from urllib.parse import quote_plus
from zoneinfo import ZoneInfo

from rentalhub.core.config import settings
from rentalhub.core.logging import get_logger

logger = get_logger(__name__)

ORDER_TYPE_SUBSCRIPTION = "SUBSCRIPTION"
ORDER_TYPE_RENEWAL = "RENEW_SUBSCRIPTION"
RESPONSE_CODE_SUCCESS = "00"
DATE_FORMAT = "%Y%m%d%H%M%S"
SIGNATURE_FIELDS = ("vnp_SecureHash", "vnp_SecureHashType")


@dataclass(frozen=True)
class GatewayConfig:
    tmn_code: str
    hash_secret: str
    pay_url: str
    return_url: str
    version: str = "2.1.0"
    locale: str = "vn"
    curr_code: str = "VND"
    expire_minutes: int = 15
    timezone: str = "Asia/Ho_Chi_Minh"

    @classmethod
    def from_settings(cls) -> "GatewayConfig":
        return cls(
            tmn_code=settings.VNP_TMNCODE,
            hash_secret=settings.VNP_HASHSECRET,
            pay_url=settings.VNP_URL,
            return_url=settings.VNP_RETURNURL,
            version=settings.VNP_VERSION,
            locale=settings.VNP_LOCALE,
            curr_code=settings.VNP_CURRCODE,
            expire_minutes=settings.VNP_EXPIRE_MINUTES,
            timezone=settings.VNP_TIMEZONE,
        )


@dataclass(frozen=True)
class PaymentParams:
    """Outbound redirect parameters. The field list is the signed parameter set."""

    vnp_Version: str
    vnp_Command: str
    vnp_TmnCode: str
    vnp_Locale: str
    vnp_CurrCode: str
    vnp_TxnRef: str
    vnp_OrderInfo: str
    vnp_OrderType: str
    vnp_Amount: int
    vnp_ReturnUrl: str
    vnp_IpAddr: str
    vnp_CreateDate: str
    vnp_ExpireDate: str

    def as_dict(self) -> dict[str, str]:
        return {f.name: str(getattr(self, f.name)) for f in fields(self)}


@dataclass(frozen=True)
class PaymentRedirect:
    url: str
    expire_at: datetime  # naive UTC
    txn_ref: str


@dataclass(frozen=True)
class CallbackData:
    """Inbound callback fields the ledger acts on. Only build this after verify_callback()."""

    order_info: str
    txn_ref: str
    response_code: str
    transaction_no: Optional[str]
    amount: Optional[int]

    @property
    def is_success(self) -> bool:
        return self.response_code == RESPONSE_CODE_SUCCESS

    @property
    def is_renewal_ref(self) -> bool:
        return self.txn_ref.startswith(f"{ORDER_TYPE_RENEWAL}_")


def _config(config: Optional[GatewayConfig]) -> GatewayConfig:
    return config or GatewayConfig.from_settings()


def _to_gateway_time(now: datetime, tz_name: str) -> datetime:
    """Naive UTC → gateway local time (VNPay expects GMT+7)"""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz_name))


def canonical_query(params: Mapping[str, object]) -> str:
    """Sort keys, URL-encode values (space → '+'), join as a query string"""
    return "&".join(
        f"{quote_plus(str(key))}={quote_plus(str(params[key]))}"
        for key in sorted(params)
    )


def sign(data: str, secret: str) -> str:
    """HMAC-SHA512 hex digest"""
    return hmac.new(secret.encode("utf-8"), data.encode("utf-8"), hashlib.sha512).hexdigest()


def make_txn_ref(order_type: str, local_now: datetime, nonce: Optional[str] = None) -> str:
    """e.g. RENEW_SUBSCRIPTION_20261019083000_042137"""
    if nonce is None:
        nonce = f"{secrets.randbelow(1_000_000):06d}"
    return f"{order_type}_{local_now.strftime(DATE_FORMAT)}_{nonce}"


def build_redirect(
    order_id: str,
    amount: int,
    order_type: str,
    client_ip: str,
    now: Optional[datetime] = None,
    nonce: Optional[str] = None,
    config: Optional[GatewayConfig] = None,
) -> PaymentRedirect:
    """Build the signed VNPay redirect URL. Pure given (now, nonce, config)."""
    cfg = _config(config)
    if now is None:
        now = datetime.now(timezone.utc).replace(tzinfo=None)
    expire_at = now + timedelta(minutes=cfg.expire_minutes)

    local_now = _to_gateway_time(now, cfg.timezone)
    local_expire = _to_gateway_time(expire_at, cfg.timezone)

    params = PaymentParams(
        vnp_Version=cfg.version,
        vnp_Command="pay",
        vnp_TmnCode=cfg.tmn_code,
        vnp_Locale=cfg.locale,
        vnp_CurrCode=cfg.curr_code,
        vnp_TxnRef=make_txn_ref(order_type, local_now, nonce),
        vnp_OrderInfo=str(order_id),
        vnp_OrderType=order_type.lower(),
        vnp_Amount=int(amount) * 100,
        vnp_ReturnUrl=cfg.return_url,
        vnp_IpAddr=client_ip,
        vnp_CreateDate=local_now.strftime(DATE_FORMAT),
        vnp_ExpireDate=local_expire.strftime(DATE_FORMAT),
    )

    query = canonical_query(params.as_dict())
    secure_hash = sign(query, cfg.hash_secret)
    url = f"{cfg.pay_url}?{query}&vnp_SecureHash={secure_hash}"
    return PaymentRedirect(url=url, expire_at=expire_at, txn_ref=params.vnp_TxnRef)


def verify_callback(query_params: Mapping[str, str], config: Optional[GatewayConfig] = None) -> bool:
    """Recompute the signature over every non-signature field and compare exactly"""
    cfg = _config(config)
    supplied = query_params.get("vnp_SecureHash")
    if not supplied:
        return False

    unsigned = {k: v for k, v in query_params.items() if k not in SIGNATURE_FIELDS}
    expected = sign(canonical_query(unsigned), cfg.hash_secret)
    return hmac.compare_digest(expected, str(supplied))


def parse_callback(query_params: Mapping[str, str]) -> CallbackData:
    """Typed view over the callback fields used by the ledger"""
    raw_amount = query_params.get("vnp_Amount")
    amount = None
    if raw_amount is not None and str(raw_amount).isdigit():
        amount = int(raw_amount) // 100
    return CallbackData(
        order_info=str(query_params.get("vnp_OrderInfo", "")),
        txn_ref=str(query_params.get("vnp_TxnRef", "")),
        response_code=str(query_params.get("vnp_ResponseCode", "")),
        transaction_no=query_params.get("vnp_TransactionNo"),
        amount=amount,
    )
