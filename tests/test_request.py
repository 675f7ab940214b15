"""Tests for URL templates and endpoint requests."""

import json
import pytest

from bitbucket_cloud.api.request import (
    EndpointRequest, FORM_CONTENT_TYPE, JSON_CONTENT_TYPE, expand_template
)


def test_expand_path_variables_are_encoded():
    url = expand_template("/2.0/repositories/{owner}/{repo}/commit/{hash}",
                          {'owner': 'acme', 'repo': 'my repo', 'hash': 'feature/x'})
    
    assert url == "/2.0/repositories/acme/my%20repo/commit/feature%2Fx"


def test_reserved_expansion_keeps_slashes():
    url = expand_template("/src/{ref}/{+path}", {'ref': 'main', 'path': 'docs/read me.md'})
    
    assert url == "/src/main/docs/read%20me.md"


def test_query_parameters_keep_order_and_skip_none():
    url = expand_template("/hooks", query=[('pagelen', 100), ('role', None), ('q', 'name="dev"')])
    
    assert url == '/hooks?pagelen=100&q=name%3D%22dev%22'


def test_query_appended_to_existing_query():
    assert expand_template("/x?fields=a", query={'page': 2}) == "/x?fields=a&page=2"


def test_missing_variable_raises():
    with pytest.raises(KeyError):
        expand_template("/{owner}/{repo}", {'owner': 'acme'})


def test_json_request():
    request = EndpointRequest.with_json('POST', 'https://api.bitbucket.org/hooks', {'url': 'https://ci/hook'})
    prepared = request.to_requests().prepare()
    
    assert request.content_type == JSON_CONTENT_TYPE
    assert json.loads(prepared.body) == {'url': 'https://ci/hook'}
    assert prepared.headers['Content-Type'] == JSON_CONTENT_TYPE


def test_form_request():
    request = EndpointRequest.with_form('POST', 'https://api.bitbucket.org/c', [('content', 'build ok')])
    prepared = request.to_requests().prepare()
    
    assert prepared.body == 'content=build+ok'
    assert prepared.headers['Content-Type'] == FORM_CONTENT_TYPE


def test_request_is_immutable():
    request = EndpointRequest.get('https://api.bitbucket.org/x')
    
    with pytest.raises(AttributeError):
        request.url = 'https://elsewhere'
