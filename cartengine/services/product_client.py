# cartengine/services/product_client.py
import requests

from cartengine.domain.errors import NotFoundError
from cartengine.utils.retry import http_retry
from cartengine.utils.settings import PRODUCT_SERVICE_URL
from cartengine.utils.logging import get_logger

logger = get_logger(__name__)


class ProductClient:
    """
    Klient katalogu. fetch_product zwraca:
    {id, name, sku, price, variants: [{id, name, sku, price, ...}], categories: [...]}
    """

    def __init__(self, base_url: str | None = None, timeout: int = 2, session: requests.Session | None = None):
        self.base_url = (base_url or PRODUCT_SERVICE_URL).rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @http_retry()
    def fetch_product(self, product_id) -> dict:
        url = f"{self.base_url}/products/{product_id}"
        logger.info(f"ProductClient GET {url}")

        resp = self.session.get(url, timeout=self.timeout)
        if resp.status_code == 404:
            raise NotFoundError("Product not found")
        resp.raise_for_status()
        return resp.json()
