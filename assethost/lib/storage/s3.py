"""S3-compatible object store gateway."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Mapping
from contextlib import AsyncExitStack
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING, Any

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from assethost.lib.exceptions import GatewayError
from assethost.lib.storage.base import PUBLIC_READ

if TYPE_CHECKING:
    from assethost.config import Credentials, StoreConfig

# HTTP header -> put_object parameter
HEADER_PARAMS = {
    "content-type": "ContentType",
    "cache-control": "CacheControl",
    "content-encoding": "ContentEncoding",
    "content-disposition": "ContentDisposition",
    "content-language": "ContentLanguage",
}


def put_object_params(
    bucket: str,
    key: str,
    body: bytes,
    acl: str,
    headers: Mapping[str, str],
) -> dict[str, Any]:
    """Translate HTTP headers into ``put_object`` keyword arguments.

    Headers without a dedicated parameter are stored as user metadata.
    """
    params: dict[str, Any] = {"Bucket": bucket, "Key": key, "Body": body}
    if acl:
        params["ACL"] = acl

    metadata: dict[str, str] = {}
    for name, value in headers.items():
        lowered = name.lower()
        if lowered in HEADER_PARAMS:
            params[HEADER_PARAMS[lowered]] = value
        elif lowered == "expires":
            params["Expires"] = parsedate_to_datetime(value)
        else:
            metadata[lowered] = value
    if metadata:
        params["Metadata"] = metadata
    return params


class S3ObjectStore:
    """Store objects in an S3-compatible bucket.

    A single client is opened on first use and kept until :meth:`close`.
    """

    def __init__(self, bucket: str, config: StoreConfig, credentials: Credentials | None = None) -> None:
        self._bucket = bucket
        self._config = config
        self._credentials = credentials
        self._session = aioboto3.Session()
        self._stack: AsyncExitStack | None = None
        self._client = None
        self._client_lock = asyncio.Lock()

    def _client_kwargs(self) -> dict:
        kwargs: dict = {
            "region_name": self._config.region,
        }
        if self._config.endpoint_url:
            kwargs["endpoint_url"] = self._config.endpoint_url
        if self._credentials is not None:
            kwargs["aws_access_key_id"] = self._credentials.access_key_id
            kwargs["aws_secret_access_key"] = self._credentials.secret_access_key
        return kwargs

    async def _get_client(self):
        async with self._client_lock:
            if self._client is None:
                stack = AsyncExitStack()
                self._client = await stack.enter_async_context(
                    self._session.client("s3", **self._client_kwargs())
                )
                self._stack = stack
        return self._client

    async def put(
        self,
        key: str,
        body: bytes,
        acl: str = PUBLIC_READ,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        params = put_object_params(self._bucket, key, body, acl, headers or {})
        try:
            s3 = await self._get_client()
            await s3.put_object(**params)
        except (BotoCoreError, ClientError) as exc:
            raise GatewayError(key, exc) from exc

    async def list_keys(self, prefix: str = "") -> AsyncIterator[str]:
        try:
            s3 = await self._get_client()
            paginator = s3.get_paginator("list_objects_v2")
            async for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    yield obj["Key"]
        except (BotoCoreError, ClientError) as exc:
            raise GatewayError(prefix, exc, operation="list") from exc

    async def close(self) -> None:
        if self._stack is not None:
            await self._stack.aclose()
        self._stack = None
        self._client = None
