"""
Client for the partner customer registry.

Newly registered users are relayed to the rental platform's customer
service so the customer record exists there as well.
"""
from typing import Optional

import httpx

from rental_auth.base_microservice import InvalidStateError, logger
from rental_auth.auth.schemas import UserData

REGISTER_PATH = "/customer/register"


class CustomerRegistryClient:
    """
    Posts registration profiles to the external customer registry.

    Any 2xx answer counts as success. Transport failures (connection errors,
    timeouts) are raised as httpx.HTTPError for the caller to classify.
    """
    def __init__(
        self,
        base_url: Optional[str],
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self._client = client

    def register_url(self) -> str:
        if not self.base_url:
            raise InvalidStateError("Customer registry base URL is not configured")
        return self.base_url.rstrip("/") + REGISTER_PATH

    async def register_customer(self, user_data: UserData) -> bool:
        url = self.register_url()
        payload = user_data.model_dump(by_alias=True, exclude_none=True)

        if self._client is not None:
            response = await self._client.post(url, json=payload, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=payload)

        if not response.is_success:
            logger.warning(f"Customer registry answered {response.status_code} for {url}")
        return response.is_success
