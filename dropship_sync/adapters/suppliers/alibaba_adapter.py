"""Alibaba(1688) 공급사 어댑터"""
from typing import List, Dict, Any, Optional, Callable
from datetime import timedelta
from decimal import Decimal, InvalidOperation
import re
import time

from dropship_sync.adapters.http.client import ProviderHttpClient
from dropship_sync.adapters.suppliers.signing import RequestSigner, AlibabaHmacSigner, stringify_param
from dropship_sync.core.entities.category import slugify
from dropship_sync.core.entities.order import DropshipOrderData, ExternalOrderStatus
from dropship_sync.core.exceptions import (
    ProviderError,
    ProviderAuthError,
    ProviderDataError,
    ProviderOrderError,
    ProviderRateLimitedError,
    ProviderUnreachableError,
)
from dropship_sync.core.ports.clock_port import ClockPort
from dropship_sync.core.ports.provider_port import (
    ProviderPort,
    HealthReport,
    HealthStatus,
    ProviderCategory,
    ProductSearchParams,
    ProviderProduct,
    OrderCreationResult,
    ProviderOrderStatus,
    ShippingQuote,
    InventoryUpdate,
    InventoryUpdateOutcome,
)
from dropship_sync.adapters.persistence.clock_adapter import ClockAdapter
from dropship_sync.shared.logging import get_logger

logger = get_logger(__name__)

# 로컬 카테고리 슬러그 -> 1688 카테고리 ID
CATEGORY_ID_MAP = {
    "electronics": "509",
    "electronics-electrical": "509",
    "electronics-technology": "509",
    "fashion": "1420",
    "apparel-fashion": "1420",
    "fashion-apparel": "1420",
    "home": "1503",
    "home-garden": "1503",
    "beauty": "1501",
    "beauty-personal-care": "1501",
    "health-beauty": "1501",
    "sports": "200001395",
    "sports-entertainment": "200001395",
    "sports-outdoors": "200001395",
    "automotive": "43",
    "automobiles-motorcycles": "43",
    "jewelry": "1509",
    "jewelry-accessories": "1509",
}

# 게이트웨이 오류 코드 분류
AUTH_ERROR_CODES = {
    "gw.AccessTokenExpired",
    "gw.AccessTokenInvalid",
    "gw.SignatureInvalid",
    "gw.AppKeyInvalid",
    "401",
    "403",
}
RATE_LIMIT_ERROR_CODES = {"gw.QosAppFrequencyLimit", "gw.QosApiFrequencyLimit", "429"}

# 게이트웨이 한도 초과 응답에는 Retry-After 가 없어 고정 대기 (초)
GATEWAY_THROTTLE_RETRY_AFTER = 1.0

DEFAULT_DELIVERY_DAYS = 15

# 1688 주문 상태 -> 공급사 주문 매핑 상태
ORDER_STATUS_MAP = {
    "waitbuyerpay": ExternalOrderStatus.SUBMITTED,
    "waitsellersend": ExternalOrderStatus.PROCESSING,
    "waitlogisticstakein": ExternalOrderStatus.PROCESSING,
    "waitbuyerreceive": ExternalOrderStatus.SHIPPED,
    "waitbuyersign": ExternalOrderStatus.SHIPPED,
    "signinsuccess": ExternalOrderStatus.DELIVERED,
    "confirm_goods": ExternalOrderStatus.DELIVERED,
    "success": ExternalOrderStatus.DELIVERED,
    "cancel": ExternalOrderStatus.CANCELLED,
    "terminated": ExternalOrderStatus.CANCELLED,
}

_PRICE_PATTERN = re.compile(r"\d+(?:\.\d+)?")


def _safe_int(raw: Any, default: int = 0) -> int:
    try:
        return int(raw) if raw not in (None, "") else default
    except (TypeError, ValueError):
        return default


def parse_price(raw: Any) -> Optional[Decimal]:
    """'¥10.00' / 10 / '10.5-12.0' 같은 가격 표현에서 첫 숫자 추출"""
    if raw is None:
        return None
    if isinstance(raw, (int, float, Decimal)) and not isinstance(raw, bool):
        return Decimal(str(raw))
    match = _PRICE_PATTERN.search(str(raw))
    if not match:
        return None
    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        return None


def _price_text(raw: Any) -> Optional[str]:
    price = parse_price(raw)
    return str(price) if price is not None else None


class AlibabaAdapter(ProviderPort):
    """Alibaba(1688) 오픈 API 어댑터"""

    name = "alibaba"
    sku_prefix = "ALI"

    def __init__(
        self,
        api_key: str,
        app_secret: str,
        access_token: Optional[str] = None,
        http_client: Optional[ProviderHttpClient] = None,
        api_url: str = "https://gw.open.1688.com/openapi",
        signer: Optional[RequestSigner] = None,
        clock: Optional[ClockPort] = None,
        timestamp_func: Callable[[], int] = lambda: int(time.time() * 1000)
    ):
        self.api_key = api_key
        self.access_token = access_token
        self.http = http_client or ProviderHttpClient(self.name, api_url)
        self.signer = signer or AlibabaHmacSigner(app_secret)
        self.clock = clock or ClockAdapter()
        self._timestamp = timestamp_func

    async def aclose(self) -> None:
        await self.http.aclose()

    async def check_health(self) -> HealthReport:
        """API 연결 확인"""
        try:
            response = await self._call("system/currentTime")
            return HealthReport(
                HealthStatus.HEALTHY,
                {"provider": self.name, "timestamp": response.get("currentTime")}
            )
        except (ProviderAuthError, ProviderRateLimitedError, ProviderDataError) as e:
            return HealthReport(HealthStatus.DEGRADED, {"provider": self.name, "error": str(e), "code": e.code})
        except ProviderUnreachableError as e:
            return HealthReport(HealthStatus.UNREACHABLE, {"provider": self.name, "error": str(e)})
        except Exception as e:
            logger.error(f"Alibaba 헬스체크 예외: {e}", exc_info=True)
            return HealthReport(HealthStatus.UNREACHABLE, {"provider": self.name, "error": str(e)})

    async def get_categories(self) -> List[ProviderCategory]:
        """카테고리 조회 (실패 시 예외 전파, 기본값 대체는 호출자 책임)"""
        response = await self._call("cn.alibaba.open/category.get")

        categories = []
        for raw in response.get("categoryInfos") or []:
            category_id = raw.get("categoryId")
            name = raw.get("categoryName")
            if category_id is None or not name:
                logger.warning(f"Alibaba 카테고리 형식 오류 건너뜀: {raw}")
                continue
            slug = slugify(name)
            if not slug:
                slug = f"alibaba-{category_id}"
            parent_id = raw.get("parentId")
            categories.append(ProviderCategory(
                id=str(category_id),
                name=name,
                slug=slug,
                parent_id=str(parent_id) if parent_id not in (None, "", 0, "0") else None,
                level=_safe_int(raw.get("level"), 1)
            ))
        return categories

    async def fetch_products(self, params: ProductSearchParams) -> List[ProviderProduct]:
        """상품 검색"""
        search_params = {
            "keywords": params.keyword or "",
            "categoryId": params.category_id or self.translate_category(params.category_slug) or "",
            "pageIndex": params.page,
            "pageSize": params.page_size,
            "orderBy": "gmv_desc",
        }

        response = await self._call("cn.alibaba.open/offer.search", search_params)
        result = response.get("result") or {}
        offers = result.get("offers") or []
        if not isinstance(offers, list):
            raise ProviderDataError("Alibaba offers 형식 오류", provider=self.name)

        products = []
        for offer in offers:
            if not isinstance(offer, dict) or offer.get("offerId") is None:
                logger.warning(f"Alibaba 상품 ID 없음, 건너뜀: {offer}")
                continue
            products.append(self._map_offer(offer))
        return products

    async def get_product(self, provider_product_id: str) -> Optional[ProviderProduct]:
        """상품 단건 조회"""
        response = await self._call(
            "com.alibaba.product/alibaba.product.get",
            {"productID": provider_product_id, "webSite": "1688"}
        )
        info = response.get("productInfo")
        if not info:
            return None
        if not isinstance(info, dict):
            raise ProviderDataError("Alibaba productInfo 형식 오류", provider=self.name)

        sale_info = info.get("saleInfo") or {}
        price_ranges = sale_info.get("priceRanges") or [{}]
        # offer.search 결과와 같은 형태로 맞춰서 매핑 재사용
        offer = {
            "offerId": info.get("productID") or provider_product_id,
            "subject": info.get("subject"),
            "details": info.get("description"),
            "image": info.get("image"),
            "sellerUserId": info.get("supplierUserId"),
            "sellerLoginId": info.get("supplierLoginId"),
            "saledProductInfos": [
                {
                    "specId": sku.get("specId"),
                    "price": sku.get("price") or price_ranges[0].get("price"),
                    "retailPrice": sku.get("retailPrice"),
                    "inventory": sku.get("amountOnSale"),
                    "specAttrs": sku.get("attributes"),
                    "minOrderQuantity": sale_info.get("minOrderQuantity"),
                }
                for sku in info.get("skuInfos") or []
            ] or [{
                "price": price_ranges[0].get("price"),
                "retailPrice": sale_info.get("retailprice"),
                "inventory": sale_info.get("amountOnSale"),
                "minOrderQuantity": sale_info.get("minOrderQuantity"),
            }],
        }
        return self._map_offer(offer)

    async def create_order(self, order: DropshipOrderData) -> OrderCreationResult:
        """공급사 주문 생성"""
        address = order.shipping_address
        order_params = {
            "addressParam": {
                "address": " ".join(filter(None, [address.address1, address.address2])),
                "fullName": order.customer.name or address.full_name,
                "mobile": order.customer.phone or "",
                "phone": order.customer.phone or "",
                "postCode": address.postal_code,
                "provinceText": address.state,
                "cityText": address.city,
                "districtText": address.city,
            },
            "cargoParamList": [
                {
                    "offerId": item.provider_product_id,
                    "specId": item.variant_id or "",
                    "quantity": item.quantity,
                }
                for item in order.items
            ],
            "message": order.notes or f"Dropship order {order.internal_order_id}",
        }

        try:
            response = await self._call("cn.alibaba.open/trade.order.createOrder", order_params)
        except ProviderError as e:
            raise ProviderOrderError(self.name, e.message, details={"code": e.code, "details": e.details})

        external_order_id = response.get("orderId")
        if external_order_id is None:
            raise ProviderOrderError(self.name, "응답에 orderId 가 없습니다", details=response)

        return OrderCreationResult(
            external_order_id=str(external_order_id),
            status="pending",
            provider_payload=response
        )

    async def get_order_status(self, external_order_id: str) -> ProviderOrderStatus:
        """주문 상태 조회 (구매자 관점 주문 상세)"""
        response = await self._call(
            "com.alibaba.trade/alibaba.trade.get.buyerView",
            {"orderId": external_order_id, "webSite": "1688"}
        )
        result = response.get("result") or {}
        base_info = result.get("baseInfo") or {}
        provider_status = str(base_info.get("status") or "").lower()

        status = ORDER_STATUS_MAP.get(provider_status)
        if status is None:
            raise ProviderDataError(
                f"알 수 없는 Alibaba 주문 상태: {provider_status!r}",
                provider=self.name,
                details={"order_id": external_order_id}
            )

        logistics = ((result.get("nativeLogistics") or {}).get("logisticsItems") or [{}])[0]
        return ProviderOrderStatus(
            external_order_id=external_order_id,
            status=status,
            tracking_number=logistics.get("logisticsBillNo"),
            provider_status=provider_status,
            details={"logistics_company": logistics.get("logisticsCompanyName")}
        )

    async def cancel_order(self, external_order_id: str) -> bool:
        """미결제/미발송 주문 취소"""
        try:
            await self._call(
                "com.alibaba.trade/alibaba.trade.cancel",
                {"tradeID": external_order_id, "cancelReason": "buyerCancel", "webSite": "1688"}
            )
        except ProviderDataError as e:
            # 게이트웨이가 취소를 거절한 경우 (이미 발송 등)
            logger.warning(f"Alibaba 주문 취소 거절 {external_order_id}: {e}")
            return False
        return True

    async def calculate_shipping(self, order: DropshipOrderData) -> ShippingQuote:
        """배송비 계산 (물류 API 실패 시 기본 추정치)"""
        shipping_params = {
            "addressParam": {
                "provinceText": order.shipping_address.state,
                "cityText": order.shipping_address.city,
            },
            "cargoParamList": [
                {"offerId": item.provider_product_id, "quantity": item.quantity}
                for item in order.items
            ],
        }

        try:
            response = await self._call("cn.alibaba.open/trade.order.getLogisticsInfo", shipping_params)
            cost = parse_price(response.get("freight")) or Decimal("0")
            days = int(response.get("deliveryTime") or DEFAULT_DELIVERY_DAYS)
            return ShippingQuote(
                cost=cost,
                estimated_delivery_date=self.clock.today() + timedelta(days=days)
            )
        except (ProviderError, ValueError, TypeError) as e:
            logger.warning(f"Alibaba 배송비 조회 실패, 기본 추정치 사용: {e}")
            return ShippingQuote(
                cost=Decimal("0"),
                estimated_delivery_date=self.clock.today() + timedelta(days=DEFAULT_DELIVERY_DAYS),
                is_estimate=True
            )

    async def update_inventory(self, updates: List[InventoryUpdate]) -> InventoryUpdateOutcome:
        """1688 드랍십은 재고 쓰기를 지원하지 않음"""
        logger.info(f"Alibaba 재고 반영 미지원 ({len(updates)}건)")
        return InventoryUpdateOutcome.UNSUPPORTED

    def translate_category(self, category_slug: Optional[str]) -> Optional[str]:
        """로컬 카테고리 슬러그 -> 1688 카테고리 ID"""
        if not category_slug:
            return None
        return CATEGORY_ID_MAP.get(category_slug)

    async def _call(self, api: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """서명된 API 호출 + 응답 봉투 검사"""
        url_path = f"param2/1/{api}/{self.api_key}"

        request_params = {key: stringify_param(value) for key, value in (params or {}).items()}
        if self.access_token:
            request_params["access_token"] = self.access_token
        request_params["_aop_timestamp"] = str(self._timestamp())
        request_params["_aop_signature"] = self.signer.sign(url_path, request_params)

        return await self.http.request_json("POST", url_path, data=request_params, validate=self._check_envelope)

    def _check_envelope(self, response: Dict[str, Any]) -> None:
        """success=false / error_code 응답 분류"""
        error_code = response.get("error_code") or response.get("errorCode")
        success = response.get("success", error_code is None)
        if success and not error_code:
            return

        code = str(error_code or "")
        message = response.get("error_message") or response.get("errorMessage") or "unknown error"
        if code in AUTH_ERROR_CODES:
            raise ProviderAuthError(f"Alibaba 인증 오류: {message}", provider=self.name, code=code, details=response)
        if code in RATE_LIMIT_ERROR_CODES:
            raise ProviderRateLimitedError(self.name, retry_after=GATEWAY_THROTTLE_RETRY_AFTER)
        raise ProviderDataError(f"Alibaba API error: {message}", provider=self.name, code=code or None, details=response)

    def _map_offer(self, offer: Dict[str, Any]) -> ProviderProduct:
        """offer.search 결과 -> ProviderProduct"""
        infos = offer.get("saledProductInfos") or []
        first = infos[0] if infos else {}
        images = (offer.get("image") or {}).get("images") or []
        offer_id = str(offer["offerId"])

        return ProviderProduct(
            id=offer_id,
            name=offer.get("subject") or "",
            description=offer.get("details") or offer.get("subject"),
            price=parse_price(first.get("price")),
            compare_at_price=parse_price(first.get("retailPrice")),
            image_url=images[0] if images else None,
            images=list(images),
            sku=offer_id,
            stock=_safe_int(first.get("inventory")),
            variants=[
                {
                    "id": str(info.get("specId")) if info.get("specId") is not None else None,
                    "price": _price_text(info.get("price")),
                    "inventory": _safe_int(info.get("inventory")),
                    "attributes": info.get("specAttrs") or [],
                }
                for info in infos
            ],
            supplier_info={
                "vendor": offer.get("sellerUserId") or "alibaba-vendor",
                "company_name": offer.get("sellerLoginId"),
                "location": offer.get("sellerAddress"),
                "min_order_quantity": _safe_int(first.get("minOrderQuantity"), 1),
            }
        )
