#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Declarative client for the public JSONPlaceholder API.

Author: Silan Hu (silan.hu@u.nus.edu)
"""

import asyncio
import os
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from easyrest import (
    Body,
    ByteStream,
    CancellationToken,
    Path,
    Query,
    RestProxy,
    add_header,
    create_transport_client,
    get,
    post,
    rest_contract,
)

BASE_URL = os.getenv("JSONPLACEHOLDER_URL", "https://jsonplaceholder.typicode.com/")


class Post(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(alias="userId")
    id: Optional[int] = None
    title: str
    body: str


@rest_contract
class JsonPlaceholder:
    @get("/posts")
    async def posts(self, user_id: Annotated[Optional[int], Query("userId")] = None) -> List[Post]:
        ...

    @get("/posts/{post_id}", timeout=10)
    def post_by_id(self, post_id: Annotated[int, Path()]) -> Post:
        ...

    @add_header("Accept", "application/json")
    @post("/posts")
    async def create(
        self,
        item: Annotated[Post, Body()],
        token: CancellationToken = CancellationToken.NONE,
    ) -> Post:
        ...

    @get("/comments")
    async def comments_raw(self) -> ByteStream:
        ...


async def show_async() -> None:
    async with create_transport_client(BASE_URL) as client:
        api = RestProxy.create(JsonPlaceholder, client)
        await _tour(api)


async def _tour(api: JsonPlaceholder) -> None:
    posts = await api.posts(user_id=1)
    print(f"user 1 wrote {len(posts)} posts; first: {posts[0].title!r}")

    created = await api.create(Post(user_id=1, title="hello", body="from easyrest"))
    print(f"created post id={created.id}")

    async with await api.comments_raw() as stream:
        size = 0
        async for chunk in stream:
            size += len(chunk)
    print(f"streamed {size} bytes of comments")


def main() -> None:
    # Blocking calls run on a background loop; keep their client off the asyncio.run loop.
    api = RestProxy.create(JsonPlaceholder, create_transport_client(BASE_URL))
    post_one = api.post_by_id(1)
    print(f"blocking call -> post 1 by user {post_one.user_id}: {post_one.title!r}")

    asyncio.run(show_async())


if __name__ == "__main__":
    main()
