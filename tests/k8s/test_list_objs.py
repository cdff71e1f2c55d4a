import aiohttp.web
import pytest

from cmbump.clients.errors import APIError
from cmbump.clients.fetching import list_objs


async def test_listing_works(
        resp_mocker, aresponses, hostname, settings, logger, selector):

    result = {'items': [{}, {}], 'metadata': {'resourceVersion': '123'}}
    list_mock = resp_mocker(return_value=aiohttp.web.json_response(result))
    aresponses.add(hostname, selector.get_url(), 'get', list_mock, match_querystring=True)

    items, resource_version = await list_objs(
        logger=logger,
        settings=settings,
        selector=selector,
    )
    assert items == result['items']
    assert resource_version == '123'

    assert list_mock.called
    assert list_mock.call_count == 1


async def test_listing_populates_kinds_and_versions(
        resp_mocker, aresponses, hostname, settings, logger, selector):

    result = {'kind': 'ConfigMapList', 'apiVersion': 'v1', 'items': [{}, {'kind': 'X'}]}
    list_mock = resp_mocker(return_value=aiohttp.web.json_response(result))
    aresponses.add(hostname, selector.get_url(), 'get', list_mock, match_querystring=True)

    items, resource_version = await list_objs(
        logger=logger,
        settings=settings,
        selector=selector,
    )
    assert items == [
        {'kind': 'ConfigMap', 'apiVersion': 'v1'},
        {'kind': 'X', 'apiVersion': 'v1'},
    ]
    assert resource_version is None


@pytest.mark.parametrize('status', [400, 401, 403, 500, 666])
async def test_raises_direct_api_errors(
        resp_mocker, aresponses, hostname, settings, logger, status, selector):

    list_mock = resp_mocker(return_value=aresponses.Response(status=status, reason='oops'))
    aresponses.add(hostname, selector.get_url(), 'get', list_mock, match_querystring=True)

    with pytest.raises(APIError) as e:
        await list_objs(
            logger=logger,
            settings=settings,
            selector=selector,
        )
    assert e.value.status == status
