"""Tests for cursor pagination."""

import pytest
import responses

from bitbucket_cloud.api.cancellation import CancellationToken
from bitbucket_cloud.api.errors import OperationCancelledError, ParseError, RequestError
from bitbucket_cloud.api.paginator import Page

LIST_URL = "https://api.bitbucket.org/2.0/repositories/acme/widgets/pullrequests"


def item(n, active=True):
    return {'n': n, 'active': active}


def decode(data):
    return data['n']


def add_page(url, values, next_url=None):
    body = {'values': values, 'pagelen': len(values)}
    if next_url:
        body['next'] = next_url
    responses.add(responses.GET, url, json=body, status=200)


@pytest.fixture
def paginator(client):
    return client.paginator


@responses.activate
def test_three_pages_in_order(paginator, resources):
    """Test that 100 + 100 + 37 items come back in page and item order."""
    page_1 = f"{LIST_URL}?pagelen=100"
    page_2 = f"{LIST_URL}?pagelen=100&page=2"
    page_3 = f"{LIST_URL}?pagelen=100&page=3"
    add_page(page_1, [item(i) for i in range(100)], page_2)
    add_page(page_2, [item(i) for i in range(100, 200)], page_3)
    add_page(page_3, [item(i) for i in range(200, 237)])
    
    items = paginator.collect(page_1, decode)
    
    assert items == list(range(237))
    assert len(responses.calls) == 3
    assert resources.pool.leased == 0


@responses.activate
def test_next_url_is_fetched_verbatim(paginator):
    """Test that the cursor in the next link is not rebuilt."""
    first = f"{LIST_URL}?pagelen=2"
    cursor = f"{LIST_URL}?pagelen=2&after=opaque%3Dtoken&page=zz"
    add_page(first, [item(1), item(2)], cursor)
    add_page(cursor, [item(3)])
    
    assert paginator.collect(first, decode) == [1, 2, 3]
    assert responses.calls[1].request.url == cursor


@responses.activate
def test_post_filter_after_all_pages(paginator):
    page_1 = f"{LIST_URL}?page=1"
    page_2 = f"{LIST_URL}?page=2"
    add_page(page_1, [item(1, False), item(2, True)], page_2)
    add_page(page_2, [item(3, True), item(4, False)])
    
    result = paginator.collect(page_1, lambda d: d, keep=lambda d: d['active'])
    
    assert [d['n'] for d in result] == [2, 3]


@responses.activate
def test_failure_discards_partial_results(paginator, resources):
    page_1 = f"{LIST_URL}?page=1"
    page_2 = f"{LIST_URL}?page=2"
    add_page(page_1, [item(1)], page_2)
    responses.add(responses.GET, page_2, status=500, body='oops')
    
    with pytest.raises(RequestError) as exc_info:
        paginator.collect(page_1, decode)
    
    assert exc_info.value.status_code == 500
    assert resources.pool.leased == 0


@responses.activate
def test_cancellation_between_pages(paginator):
    page_1 = f"{LIST_URL}?page=1"
    page_2 = f"{LIST_URL}?page=2"
    add_page(page_1, [item(1)], page_2)
    add_page(page_2, [item(2)])
    token = CancellationToken()
    
    pages = paginator.iter_pages(page_1, decode, token)
    assert next(pages).values == [1]
    token.cancel()
    
    with pytest.raises(OperationCancelledError):
        next(pages)
    assert len(responses.calls) == 1


@responses.activate
def test_pagination_loop_is_detected(paginator):
    page_1 = f"{LIST_URL}?page=1"
    add_page(page_1, [item(1)], page_1)
    
    with pytest.raises(ParseError):
        paginator.collect(page_1, decode)


def test_page_from_api():
    page = Page.from_api({'values': [{'n': 1}], 'next': 'https://x/?page=2', 'page': 1, 'size': 9},
                         decode, LIST_URL)
    
    assert page.values == [1]
    assert page.next == 'https://x/?page=2'
    assert not page.is_last_page
    assert page.size == 9


def test_page_without_next_is_last():
    page = Page.from_api({'values': []}, decode, LIST_URL)
    
    assert page.is_last_page
    assert page.values == []


@pytest.mark.parametrize("data", [
    [1, 2],
    {'values': 'nope'},
    {'values': [], 'next': 42},
    {'values': [], 'next': 'page=2'},
    {'values': [], 'next': '/2.0/repositories/acme/widgets/pullrequests?page=2'},
    {'values': [{'missing': 1}]},
])
def test_malformed_pages(data):
    with pytest.raises(ParseError):
        Page.from_api(data, decode, LIST_URL)


@responses.activate
def test_relative_next_link_stops_listing(paginator, resources):
    page_1 = f"{LIST_URL}?pagelen=100"
    add_page(page_1, [item(1)], "page=2")
    
    with pytest.raises(ParseError):
        paginator.collect(page_1, decode)
    
    assert len(responses.calls) == 1
    assert resources.pool.leased == 0
