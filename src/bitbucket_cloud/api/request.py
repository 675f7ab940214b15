"""
Endpoint requests and URL construction.

URLs are expanded from templates such as
``/2.0/repositories/{owner}/{repo}/commit/{hash}`` with every path variable
percent-encoded, followed by the query parameters in the order given.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
from urllib.parse import quote, urlencode

import requests

JSON_CONTENT_TYPE = 'application/json; charset=UTF-8'
FORM_CONTENT_TYPE = 'application/x-www-form-urlencoded; charset=UTF-8'

_VARIABLE = re.compile(r'\{(\+?)([A-Za-z_][A-Za-z0-9_]*)\}')

QueryParams = Union[Dict[str, Any], Sequence[Tuple[str, Any]]]


def expand_template(template: str, variables: Optional[Dict[str, Any]] = None,
                    query: Optional[QueryParams] = None) -> str:
    """
    Expand a URL template.
    
    ``{name}`` is replaced by the percent-encoded value, ``{+name}`` keeps
    slashes so that file paths survive expansion. Query parameters whose
    value is None are omitted.
    
    Args:
        template: URL template
        variables: Values for the template variables
        query: Ordered query parameters
        
    Returns:
        Expanded URL
        
    Raises:
        KeyError: When a template variable has no value
    """
    variables = variables or {}
    
    def substitute(match):
        reserved, name = match.group(1), match.group(2)
        if variables.get(name) is None:
            raise KeyError(f"No value for URL template variable '{name}'")
        return quote(str(variables[name]), safe='/' if reserved else '')
    
    url = _VARIABLE.sub(substitute, template)
    
    if query:
        items = query.items() if isinstance(query, dict) else query
        pairs = [(k, v) for k, v in items if v is not None]
        if pairs:
            url += ('&' if '?' in url else '?') + urlencode(pairs)
    return url


@dataclass(frozen=True)
class EndpointRequest:
    """
    One HTTP call against the API host.
    
    Immutable once built; the executor prepares a fresh ``requests`` object
    from it for every attempt.
    """
    
    url: str
    method: str = 'GET'
    body: Optional[str] = None
    form: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
    content_type: Optional[str] = None
    
    @classmethod
    def get(cls, url: str) -> 'EndpointRequest':
        return cls(url)
    
    @classmethod
    def head(cls, url: str) -> 'EndpointRequest':
        return cls(url, method='HEAD')
    
    @classmethod
    def delete(cls, url: str) -> 'EndpointRequest':
        return cls(url, method='DELETE')
    
    @classmethod
    def with_json(cls, method: str, url: str, payload: Any) -> 'EndpointRequest':
        """Build a request whose body is the JSON encoding of payload."""
        body = payload if isinstance(payload, str) else json.dumps(payload)
        return cls(url, method=method, body=body, content_type=JSON_CONTENT_TYPE)
    
    @classmethod
    def with_form(cls, method: str, url: str, fields: List[Tuple[str, str]]) -> 'EndpointRequest':
        """Build a request with a form-encoded body."""
        return cls(url, method=method, form=tuple(fields), content_type=FORM_CONTENT_TYPE)
    
    def to_requests(self) -> requests.Request:
        """Create the ``requests`` representation of this call."""
        headers = {}
        if self.content_type:
            headers['Content-Type'] = self.content_type
        data: Any = None
        if self.body is not None:
            data = self.body.encode('utf-8')
        elif self.form:
            data = list(self.form)
        return requests.Request(self.method, self.url, headers=headers, data=data)
