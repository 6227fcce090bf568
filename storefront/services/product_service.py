"""
Product catalog service
"""

import logging

from storefront.models import Product, ProductPage, ProductQuery, parse_payload
from storefront.services.api_client import ApiClient
from storefront.services.query_cache import QueryCache
from storefront.utils.constants import CacheSettings

logger = logging.getLogger(__name__)


class ProductService:
    """Public catalog reads, cached in the shared scope"""

    def __init__(self, api: ApiClient, cache: QueryCache):
        self.api = api
        self.cache = cache

    async def list_products(self, query: ProductQuery) -> ProductPage:
        async def fetch() -> ProductPage:
            response = await self.api.get("/products", params=query.to_params())
            return parse_payload(lambda data: ProductPage.from_response(data, response.meta), response.data)

        return await self.cache.get_or_fetch(CacheSettings.PUBLIC_SCOPE, query.cache_key(), fetch)

    async def get_product(self, product_id: str) -> Product:
        async def fetch() -> Product:
            response = await self.api.get(f"/products/{product_id}")
            return parse_payload(Product.from_dict, response.data)

        return await self.cache.get_or_fetch(CacheSettings.PUBLIC_SCOPE, f"product:{product_id}", fetch)
