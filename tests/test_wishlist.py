"""
Tests for product extraction and wishlist storage
"""
import httpx
import pytest
from sqlalchemy import select

from app.agents.product_agent import PLACEHOLDER_IMAGE, ProductAgent, fallback_product
from app.integrations.base import NetworkError
from app.integrations.page_fetcher import BlockedURLError, create_page_fetcher, is_public_address
from app.models.ai_operation import AIOperation
from app.services.wishlist_service import WishlistItemNotFoundError, WishlistService

from conftest import FakeLLM, resolve_public

PRODUCT_HTML = "<html><head><title>Desk Lamp</title></head><body>An LED desk lamp</body></html>"

PRODUCT_REPLY = (
    '{"productName": "Desk Lamp", "description": "Dimmable LED desk lamp",'
    ' "imageUrl": "https://shop.test/lamp.jpg"}'
)


async def resolve_internal(host, port):
    return ["10.0.0.7"]


def fetcher(settings, status=200, body=PRODUCT_HTML, seen=None, resolver=resolve_public, redirects=None):
    def handler(request):
        if seen is not None:
            seen.append(str(request.url))
        if redirects and request.url.path in redirects:
            return httpx.Response(302, headers={"location": redirects[request.url.path]})
        return httpx.Response(status, text=body)

    return create_page_fetcher(settings, transport=httpx.MockTransport(handler), resolver=resolver)


def test_fallback_product_uses_domain():
    product = fallback_product("https://www.shop.example.com/items/42?ref=x")

    assert product.product_name == "Product from shop.example.com"
    assert "shop.example.com" in product.description
    assert product.image_url == PLACEHOLDER_IMAGE


@pytest.mark.asyncio
async def test_extract_product(settings):
    llm = FakeLLM(PRODUCT_REPLY)
    agent = ProductAgent(llm, fetcher(settings))

    result = await agent.extract("https://shop.test/lamp")

    assert result.succeeded
    assert result.value.product_name == "Desk Lamp"
    assert "An LED desk lamp" in llm.prompts[0]


@pytest.mark.asyncio
async def test_extract_truncates_page(settings):
    llm = FakeLLM(PRODUCT_REPLY)
    small = settings.model_copy(update={"product_html_max_chars": 10})
    agent = ProductAgent(llm, fetcher(small, body="x" * 50))

    await agent.extract("https://shop.test/lamp")

    assert "x" * 10 in llm.prompts[0]
    assert "x" * 11 not in llm.prompts[0]


@pytest.mark.asyncio
async def test_unreachable_page_falls_back_without_calling_model(settings):
    llm = FakeLLM(PRODUCT_REPLY)
    agent = ProductAgent(llm, fetcher(settings, status=404))

    result = await agent.extract("https://www.shop.test/gone")

    assert result.used_fallback
    assert result.value.product_name == "Product from shop.test"
    assert llm.prompts == []


@pytest.mark.asyncio
async def test_model_outage_falls_back(settings):
    agent = ProductAgent(FakeLLM(), fetcher(settings))

    result = await agent.extract("https://shop.test/lamp")

    assert result.used_fallback
    assert result.value == fallback_product("https://shop.test/lamp")


@pytest.mark.asyncio
async def test_add_item_extracts_missing_details(db, settings, feed):
    service = WishlistService(db, settings, feed)
    agent = ProductAgent(FakeLLM(PRODUCT_REPLY), fetcher(settings))

    item = await service.add_item("user-1", "https://shop.test/lamp", agent=agent)

    assert item.collection == "artifacts/test-app/users/user-1/wishlist"
    assert item.product_name == "Desk Lamp"
    assert item.image_url == "https://shop.test/lamp.jpg"
    assert not item.is_public


@pytest.mark.asyncio
async def test_add_item_keeps_given_details(db, settings):
    service = WishlistService(db, settings)
    seen = []
    agent = ProductAgent(FakeLLM(PRODUCT_REPLY), fetcher(settings, seen=seen))

    item = await service.add_item(
        "user-1",
        "https://shop.test/lamp",
        product_name="My lamp",
        description="For the study",
        image_url="https://img.test/lamp.png",
        agent=agent
    )

    assert item.product_name == "My lamp"
    assert seen == []


@pytest.mark.asyncio
async def test_add_item_survives_outage(db, settings):
    service = WishlistService(db, settings)
    agent = ProductAgent(FakeLLM(), fetcher(settings, status=500))

    item = await service.add_item("user-1", "https://www.shop.test/lamp", agent=agent)

    assert item.product_name == "Product from shop.test"
    assert item.image_url == PLACEHOLDER_IMAGE


@pytest.mark.asyncio
async def test_public_items_get_a_shared_copy(db, settings, feed):
    service = WishlistService(db, settings, feed)

    async with feed.subscribe(service.public_collection) as public_queue:
        item = await service.add_item(
            "user-1", "https://shop.test/lamp", is_public=True,
            product_name="Lamp", description="LED", image_url="https://img.test/l.png"
        )
        assert public_queue.qsize() == 1

    public = await service.list_public_items("user-1")
    assert len(public) == 1
    assert public[0].id != item.id
    assert public[0].collection == "artifacts/test-app/public/data/wishlists"
    assert await service.list_public_items("user-2") == []


@pytest.mark.asyncio
async def test_list_and_delete_own_items(db, settings):
    service = WishlistService(db, settings)
    first = await service.add_item("user-1", "https://shop.test/a", product_name="A", description="a", image_url="i")
    second = await service.add_item("user-1", "https://shop.test/b", product_name="B", description="b", image_url="i")
    await service.add_item("user-2", "https://shop.test/c", product_name="C", description="c", image_url="i")

    assert [i.id for i in await service.list_items("user-1")] == [second.id, first.id]

    with pytest.raises(WishlistItemNotFoundError):
        await service.delete_item("user-2", first.id)

    await service.delete_item("user-1", first.id)
    assert [i.id for i in await service.list_items("user-1")] == [second.id]


@pytest.mark.parametrize("address, public", [
    ("93.184.216.34", True),
    ("2606:4700::1111", True),
    ("127.0.0.1", False),
    ("10.1.2.3", False),
    ("172.16.0.1", False),
    ("192.168.1.1", False),
    ("169.254.169.254", False),
    ("100.64.0.1", False),
    ("0.0.0.0", False),
    ("::1", False),
    ("fe80::1%eth0", False),
    ("::ffff:127.0.0.1", False),
    ("224.0.0.1", False),
])
def test_is_public_address(address, public):
    assert is_public_address(address) is public


@pytest.mark.asyncio
@pytest.mark.parametrize("url", [
    "http://169.254.169.254/latest/meta-data/iam/",
    "http://127.0.0.1:8000/admin",
    "http://[::1]/",
    "http://10.0.0.5/internal",
    "ftp://shop.test/lamp",
])
async def test_internal_addresses_are_never_fetched(settings, url):
    seen = []
    llm = FakeLLM(PRODUCT_REPLY)
    agent = ProductAgent(llm, fetcher(settings, seen=seen))

    result = await agent.extract(url)

    assert result.used_fallback
    assert seen == []
    assert llm.prompts == []


@pytest.mark.asyncio
async def test_hosts_resolving_to_private_addresses_are_blocked(settings):
    seen = []
    page_fetcher = fetcher(settings, seen=seen, resolver=resolve_internal)

    with pytest.raises(BlockedURLError):
        await page_fetcher.fetch_html("https://intranet.shop.test/admin")

    assert seen == []


@pytest.mark.asyncio
async def test_redirect_to_internal_address_is_not_followed(settings):
    seen = []
    llm = FakeLLM(PRODUCT_REPLY)
    page_fetcher = fetcher(
        settings, seen=seen, redirects={"/lamp": "http://169.254.169.254/latest/meta-data/"}
    )

    result = await ProductAgent(llm, page_fetcher).extract("https://shop.test/lamp")

    assert result.used_fallback
    assert seen == ["https://shop.test/lamp"]
    assert llm.prompts == []


@pytest.mark.asyncio
async def test_public_redirects_are_followed(settings):
    seen = []
    page_fetcher = fetcher(settings, seen=seen, redirects={"/lamp": "/products/lamp"})

    html = await page_fetcher.fetch_html("https://shop.test/lamp")

    assert html == PRODUCT_HTML
    assert seen == ["https://shop.test/lamp", "https://shop.test/products/lamp"]


@pytest.mark.asyncio
async def test_redirect_loops_give_up(settings):
    page_fetcher = fetcher(settings, redirects={"/a": "/b", "/b": "/a"})

    with pytest.raises(NetworkError):
        await page_fetcher.fetch_html("https://shop.test/a")


@pytest.mark.asyncio
async def test_large_pages_are_not_read_in_full(settings):
    small = settings.model_copy(update={"product_html_max_chars": 100})
    sent = []

    async def endless_page():
        while True:
            sent.append(100)
            yield b"x" * 100

    def handler(request):
        return httpx.Response(200, content=endless_page())

    page_fetcher = create_page_fetcher(small, transport=httpx.MockTransport(handler), resolver=resolve_public)

    html = await page_fetcher.fetch_html("https://shop.test/lamp")

    assert html == "x" * 100
    assert sum(sent) <= 100 * 4 + 100


@pytest.mark.asyncio
async def test_add_item_records_extraction_operation(db, settings):
    service = WishlistService(db, settings)
    agent = ProductAgent(FakeLLM(PRODUCT_REPLY), fetcher(settings))

    await service.add_item("user-1", "https://shop.test/lamp", agent=agent)
    await service.add_item("user-1", "http://169.254.169.254/latest/meta-data/", agent=agent)

    result = await db.execute(select(AIOperation))
    operations = sorted(result.scalars().all(), key=lambda op: op.used_fallback)

    assert [op.operation_type for op in operations] == ["product_extraction", "product_extraction"]
    assert [op.used_fallback for op in operations] == [False, True]
    assert operations[0].tokens_used == 42
    assert operations[0].output_data["product_name"] == "Desk Lamp"
    assert operations[1].request_id is None
    assert "non-public" in operations[1].error_message
