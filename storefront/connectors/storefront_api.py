"""
Storefront REST API Connector
Handles all interactions with the storefront backend API

Endpoints:
- Products:  GET/POST /products, GET /products/{slug}, PUT/DELETE /products/{id}
- Reviews:   POST /reviews
- Orders:    GET/POST /orders, PUT/DELETE /orders/{id}
- Wishlist:  GET /wishlist, POST /wishlist/toggle

Authorization:
- End-user calls send ``Authorization: Bearer <access token>``
- Admin calls send ``X-Admin-Secret``. The secret is a static value from
  client configuration and should be replaced with a server-issued admin
  token before this is exposed beyond a trusted admin machine.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from storefront.core.exceptions import AuthorizationError, NetworkError, RemoteAPIError

logger = logging.getLogger(__name__)


class StorefrontAPIConnector:
    """
    Connector for the storefront REST API

    Returns raw wire payloads (dicts/lists); mapping to domain models is
    done by the stores.
    """

    def __init__(self, base_url: str, admin_secret: str = None,
                 timeout: float = 30.0, transport: httpx.AsyncBaseTransport = None):
        """
        Initialize the connector

        Args:
            base_url: API root, e.g. 'https://kottravai.in/api'
            admin_secret: Value for the X-Admin-Secret header on admin calls
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        if not base_url:
            raise ValueError("Storefront API URL not configured. Set STOREFRONT_API_URL")

        self.base_url = base_url.rstrip('/')
        self.admin_secret = admin_secret
        self.timeout = timeout
        self.transport = transport

    def _headers(self, token: str = None, admin: bool = False) -> Dict[str, str]:
        headers = {'Content-Type': 'application/json'}
        if token:
            headers['Authorization'] = f'Bearer {token}'
        if admin:
            if not self.admin_secret:
                raise AuthorizationError(401, "Admin secret not configured")
            headers['X-Admin-Secret'] = self.admin_secret
        return headers

    async def _request(self, method: str, path: str, token: str = None,
                       admin: bool = False, payload: Any = None) -> Any:
        """Execute a request and return the decoded JSON body (None when empty)"""
        url = f"{self.base_url}{path}"
        headers = self._headers(token=token, admin=admin)

        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            try:
                response = await client.request(method, url, json=payload, headers=headers)
            except httpx.TransportError as e:
                logger.warning("%s %s failed: %s", method, path, e)
                raise NetworkError(f"{method} {path} failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthorizationError(response.status_code, self._error_detail(response))
        if response.is_error:
            raise RemoteAPIError(response.status_code, self._error_detail(response))

        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_detail(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return response.text or None
        if isinstance(body, dict):
            return body.get('error') or body.get('message') or body.get('detail')
        return None

    # =========================================================================
    # Products
    # =========================================================================

    async def get_products(self) -> List[Dict]:
        """Get the full product catalog"""
        return await self._request('GET', '/products') or []

    async def get_product(self, slug: str) -> Dict:
        """Get full product details (including reviews) by slug"""
        return await self._request('GET', f'/products/{slug}')

    async def create_product(self, product: Dict) -> Dict:
        return await self._request('POST', '/products', payload=product)

    async def update_product(self, product_id: str, product: Dict) -> Dict:
        return await self._request('PUT', f'/products/{product_id}', payload=product)

    async def delete_product(self, product_id: str) -> None:
        await self._request('DELETE', f'/products/{product_id}')

    async def create_review(self, product_id: str, review: Dict) -> Dict:
        """Post a product review; the server returns the stored review"""
        payload = dict(review)
        payload['productId'] = product_id
        return await self._request('POST', '/reviews', payload=payload)

    # =========================================================================
    # Orders
    # =========================================================================

    async def get_orders(self, token: str = None, admin: bool = False) -> List[Dict]:
        """
        Get orders

        With a bearer token the server returns the user's orders; with the
        admin secret it returns every order.
        """
        return await self._request('GET', '/orders', token=token, admin=admin) or []

    async def create_order(self, order: Dict, token: str = None) -> Dict:
        return await self._request('POST', '/orders', token=token, payload=order)

    async def update_order(self, order_id: str, fields: Dict) -> Dict:
        return await self._request('PUT', f'/orders/{order_id}', admin=True, payload=fields)

    async def delete_order(self, order_id: str) -> None:
        await self._request('DELETE', f'/orders/{order_id}', admin=True)

    # =========================================================================
    # Wishlist
    # =========================================================================

    async def get_wishlist(self, token: str) -> List[Dict]:
        return await self._request('GET', '/wishlist', token=token) or []

    async def toggle_wishlist(self, product_id: str, token: str) -> Any:
        return await self._request(
            'POST', '/wishlist/toggle', token=token, payload={'productId': product_id}
        )
