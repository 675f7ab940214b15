"""
Bitbucket Cloud API Client Implementation.

This module provides the interface to the Bitbucket Cloud REST API used by
a continuous integration host, with support for:
- A connection pool shared by every client of the host
- Caching of team and repository listing lookups
- Rate limit handling and cooperative cancellation
- Cursor pagination over all listing endpoints
"""

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, TypeVar, Union

import requests
from requests.auth import HTTPBasicAuth

from ..config import BitbucketConfig, ProxyConfig
from .cancellation import CancellationToken, NEVER_CANCELLED
from .classifier import ResponseClassifier
from .errors import BitbucketAPIError, NotFoundError, ParseError, RequestError, TransportError
from .executor import RequestExecutor
from .models import (
    Branch, BuildStatus, Commit, PullRequest, Repository, RepositoryProtocol,
    RepositoryType, SourceEntry, Team, UserRoleInRepository, WebHook,
    commit_hash_from_api, create_branch_from_api, create_commit_from_api,
    create_pull_request_from_api, create_repository_from_api,
    create_source_entry_from_api, create_team_from_api, create_webhook_from_api
)
from .paginator import Paginator
from .request import EndpointRequest, expand_template
from .resources import SharedResources
from .result import Absent, Found, Lookup

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Constants for API endpoints
REPOSITORIES_ENDPOINT = "/2.0/repositories"
TEAMS_ENDPOINT = "/2.0/teams"
REPO_ENDPOINT = REPOSITORIES_ENDPOINT + "/{owner}/{repo}"

BITBUCKET_WEB_HOST = "bitbucket.org"
USER_AGENT = "bitbucket-cloud-client"


class BitbucketCloudClient:
    """
    Client for one Bitbucket Cloud owner and, optionally, one repository.
    
    Each client owns its credentials and HTTP session but borrows the pool
    and caches of a ``SharedResources`` object. Close the client (or use it
    as a context manager) to release its session; the shared resources stay
    open for other clients.
    """
    
    def __init__(self, owner: str, repository_name: Optional[str],
                 resources: SharedResources,
                 config: Optional[BitbucketConfig] = None,
                 proxy: Optional[ProxyConfig] = None):
        """
        Initialize Bitbucket Cloud client.
        
        Args:
            owner: Repository owner (user or team)
            repository_name: Repository slug, or None for owner-level access
            resources: Shared pool and caches
            config: API configuration including credentials
            proxy: Upstream proxy, resolved once for the API host
        """
        self.owner = owner
        self.repository_name = repository_name
        self.config = config or BitbucketConfig()
        self.resources = resources
        
        self.session = requests.Session()
        self.session.trust_env = False
        self.session.headers.update({
            'Accept': 'application/json',
            'User-Agent': USER_AGENT
        })
        if self.config.has_credentials:
            # Sent preemptively, no challenge round trip
            self.session.auth = HTTPBasicAuth(self.config.username, self.config.password or '')
        
        proxy_url = (proxy or ProxyConfig()).for_host(self.config.host)
        if proxy_url:
            self.session.proxies = {'http': proxy_url, 'https': proxy_url}
            logger.debug(f"Using proxy for {self.config.host}")
        
        self.session.mount('https://', resources.pool.adapter)
        self.session.mount('http://', resources.pool.adapter)
        
        self.executor = RequestExecutor(self.session, resources.pool, self.config)
        self.paginator = Paginator(self.executor)
        
        self._cached_repository: Optional[Repository] = None
        self._cached_default_branch: Optional[str] = None
        self._closed = False
        
        logger.info(f"Bitbucket Cloud client initialized for {owner}/{repository_name or '*'} "
                    f"({'authenticated as ' + self.config.username if self.config.has_credentials else 'anonymous'})")
    
    @property
    def login(self) -> Optional[str]:
        return self.config.username if self.config.has_credentials else None
    
    def close(self) -> None:
        """Release this client's session. The shared pool stays open."""
        if not self._closed:
            self.session.close()
            self._closed = True
    
    def __enter__(self) -> 'BitbucketCloudClient':
        return self
    
    def __exit__(self, *exc_info) -> None:
        self.close()
    
    # URL helpers
    
    def _url(self, template: str, query: Optional[Any] = None, **variables: Any) -> str:
        return self.config.api_url + expand_template(template, variables, query)
    
    def _repo_url(self, suffix: str = '', query: Optional[Any] = None, **variables: Any) -> str:
        if self.repository_name is None:
            raise ValueError("Cannot access a repository from a client that is not associated with a repository")
        return self._url(REPO_ENDPOINT + suffix, query,
                         owner=self.owner, repo=self.repository_name, **variables)
    
    # Request helpers
    
    def _get_json(self, url: str, cancel: CancellationToken) -> Any:
        response = self.executor.execute(EndpointRequest.get(url), cancel)
        return ResponseClassifier.json_of(response)
    
    def _lookup_json(self, url: str, cancel: CancellationToken) -> Lookup:
        """Like _get_json, but a 404 becomes Absent."""
        try:
            return Found(self._get_json(url, cancel))
        except NotFoundError:
            logger.debug(f"Resource not found: {url}")
            return Absent(f"not found: {url}")
    
    @staticmethod
    def _decode(url: str, decoder: Callable[[Dict[str, Any]], T], data: Any) -> T:
        try:
            return decoder(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ParseError(url, f"unexpected shape: {e}") from e
    
    def _send(self, request: EndpointRequest, cancel: CancellationToken) -> str:
        response = self.executor.execute(request, cancel)
        return ResponseClassifier.text_of(response)
    
    # Repository
    
    def get_repository_uri(self, repo_type: RepositoryType, protocol: RepositoryProtocol,
                           owner: str, repository: str) -> str:
        """
        Build the clone URI of a repository.
        
        Raises:
            ValueError: For unsupported type or protocol
        """
        if repo_type is RepositoryType.GIT:
            if protocol is RepositoryProtocol.HTTP:
                return f"https://{BITBUCKET_WEB_HOST}/{owner}/{repository}.git"
            if protocol is RepositoryProtocol.SSH:
                return f"git@{BITBUCKET_WEB_HOST}:{owner}/{repository}.git"
        elif repo_type is RepositoryType.MERCURIAL:
            if protocol is RepositoryProtocol.HTTP:
                return f"https://{BITBUCKET_WEB_HOST}/{owner}/{repository}"
            if protocol is RepositoryProtocol.SSH:
                return f"ssh://hg@{BITBUCKET_WEB_HOST}/{owner}/{repository}"
        else:
            raise ValueError(f"Unsupported repository type: {repo_type}")
        raise ValueError(f"Unsupported repository protocol: {protocol}")
    
    def get_repository(self, cancel: CancellationToken = NEVER_CANCELLED) -> Repository:
        """
        Get the repository this client is associated with.
        
        The result is kept for the lifetime of the client.
        """
        if self._cached_repository is None:
            url = self._repo_url()
            self._cached_repository = self._decode(url, create_repository_from_api, self._get_json(url, cancel))
        return self._cached_repository
    
    def is_private(self, cancel: CancellationToken = NEVER_CANCELLED) -> bool:
        return self.get_repository(cancel).is_private
    
    def get_default_branch(self, cancel: CancellationToken = NEVER_CANCELLED) -> Lookup[str]:
        """
        Get the name of the repository's main branch.
        
        Returns:
            Found(name), or Absent when the repository is missing or has no
            main branch configured
        """
        if self._cached_default_branch is not None:
            return Found(self._cached_default_branch)
        
        url = self._repo_url(query={'fields': 'mainbranch.name'})
        result = self._lookup_json(url, cancel)
        if not result.is_present:
            logger.debug(f"Could not find default branch for {self.owner}/{self.repository_name}")
            return result
        
        data = result.value if result.value is not None else {}
        if not isinstance(data, dict):
            raise ParseError(url, "repository is not an object")
        mainbranch = data.get('mainbranch') or {}
        name = mainbranch.get('name') if isinstance(mainbranch, dict) else None
        if not name:
            return Absent(f"no main branch configured for {self.owner}/{self.repository_name}")
        self._cached_default_branch = name
        return Found(name)
    
    def check_path_exists(self, branch_or_hash: str, path: str,
                          cancel: CancellationToken = NEVER_CANCELLED) -> bool:
        """Check whether a file or directory exists at a branch or commit."""
        url = self._repo_url("/src/{ref}/{+path}", ref=branch_or_hash, path=path.lstrip('/'))
        response = self.executor.execute(EndpointRequest.head(url), cancel)
        return response.status_code == 200
    
    # Pull requests
    
    def get_pull_requests(self, cancel: CancellationToken = NEVER_CANCELLED) -> List[PullRequest]:
        """Get all open pull requests of the repository."""
        url = self._repo_url("/pullrequests", query={'pagelen': self.config.page_length})
        return self.paginator.collect(url, create_pull_request_from_api, cancel)
    
    def get_pull_request_by_id(self, pull_id: int,
                               cancel: CancellationToken = NEVER_CANCELLED) -> PullRequest:
        url = self._repo_url("/pullrequests/{id}", id=pull_id)
        return self._decode(url, create_pull_request_from_api, self._get_json(url, cancel))
    
    def resolve_source_full_hash(self, pull: Union[PullRequest, int],
                                 cancel: CancellationToken = NEVER_CANCELLED) -> str:
        """
        Get the full hash of the newest commit of a pull request's source.
        
        Raises:
            BitbucketAPIError: When the pull request has no commits
        """
        pull_id = pull.id if isinstance(pull, PullRequest) else pull
        url = self._repo_url("/pullrequests/{id}/commits",
                             query={'fields': 'values.hash', 'pagelen': 1}, id=pull_id)
        page = self.paginator.fetch_page(url, commit_hash_from_api, cancel)
        if not page.values:
            raise BitbucketAPIError(f"Could not determine commit for pull request {pull_id}", url=url)
        return page.values[0]
    
    # Branches and commits
    
    def get_branches(self, names: Optional[Sequence[str]] = None,
                     cancel: CancellationToken = NEVER_CANCELLED) -> List[Branch]:
        """
        Get the active branches of the repository.
        
        Args:
            names: Only return branches with one of these names
            cancel: Token checked between pages
        """
        query: Dict[str, Any] = {'pagelen': self.config.page_length}
        if names:
            query['q'] = '(' + ' OR '.join(f'name="{name}"' for name in names) + ')'
        url = self._repo_url("/refs/branches", query=query)
        return self.paginator.collect(url, create_branch_from_api, cancel,
                                      keep=lambda branch: branch.active)
    
    def resolve_commit(self, hash: str,
                       cancel: CancellationToken = NEVER_CANCELLED) -> Lookup[Commit]:
        """
        Resolve a commit hash or branch name to a commit.
        
        Returns:
            Found(commit), or Absent when no such commit exists
        """
        url = self._repo_url("/commit/{hash}", hash=hash)
        return self._lookup_json(url, cancel).map(lambda data: self._decode(url, create_commit_from_api, data))
    
    def post_commit_comment(self, hash: str, comment: str,
                            cancel: CancellationToken = NEVER_CANCELLED) -> None:
        url = self._repo_url("/commit/{hash}/comments", hash=hash)
        request = EndpointRequest.with_form('POST', url, [('content', comment)])
        try:
            self._send(request, cancel)
        except TransportError as e:
            raise TransportError(url, f"Cannot comment on commit, url: {url}") from e
    
    def post_build_status(self, status: BuildStatus,
                          cancel: CancellationToken = NEVER_CANCELLED) -> None:
        url = self._repo_url("/commit/{hash}/statuses/build", hash=status.hash)
        self._send(EndpointRequest.with_json('POST', url, status.to_api()), cancel)
    
    # Webhooks
    
    def get_webhooks(self, cancel: CancellationToken = NEVER_CANCELLED) -> List[WebHook]:
        url = self._repo_url("/hooks", query={'pagelen': self.config.page_length})
        return self.paginator.collect(url, create_webhook_from_api, cancel)
    
    def register_commit_webhook(self, hook: WebHook,
                                cancel: CancellationToken = NEVER_CANCELLED) -> None:
        url = self._repo_url("/hooks")
        self._send(EndpointRequest.with_json('POST', url, hook.to_api()), cancel)
    
    def update_commit_webhook(self, hook: WebHook,
                              cancel: CancellationToken = NEVER_CANCELLED) -> None:
        url = self._repo_url("/hooks/{uuid}", uuid=self._hook_uuid(hook))
        self._send(EndpointRequest.with_json('PUT', url, hook.to_api()), cancel)
    
    def remove_commit_webhook(self, hook: WebHook,
                              cancel: CancellationToken = NEVER_CANCELLED) -> None:
        """
        Delete a webhook.
        
        Raises:
            NotFoundError: When the hook no longer exists
        """
        url = self._repo_url("/hooks/{uuid}", uuid=self._hook_uuid(hook))
        self._send(EndpointRequest.delete(url), cancel)
    
    @staticmethod
    def _hook_uuid(hook: WebHook) -> str:
        if not hook.uuid or not hook.uuid.strip():
            raise BitbucketAPIError("Hook UUID required")
        return hook.uuid
    
    # Teams and repository listings (cached)
    
    def get_team(self, cancel: CancellationToken = NEVER_CANCELLED) -> Lookup[Team]:
        """
        Get the team the owner refers to.
        
        Returns:
            Found(team), or Absent when the owner is not a team
        """
        url = self._url(TEAMS_ENDPOINT + "/{owner}", owner=self.owner)
        cache_key = f"{self.owner}::{self.login or ''}"
        
        def compute() -> Optional[Team]:
            return self._lookup_json(url, cancel).map(
                lambda data: self._decode(url, create_team_from_api, data)).or_none()
        
        team = self.resources.team_cache.get(cache_key, compute)
        if team is None:
            return Absent(f"{self.owner} is not a team")
        return Found(team)
    
    def get_repositories(self, role: Optional[UserRoleInRepository] = None,
                         cancel: CancellationToken = NEVER_CANCELLED) -> List[Repository]:
        """
        Get the owner's repositories, sorted by name.
        
        The role filter only makes sense for authenticated requests and is
        ignored for anonymous clients.
        """
        query: Dict[str, Any] = {'pagelen': self.config.page_length}
        cache_key = f"{self.owner}::{self.login or ''}"
        if role is not None and self.login is not None:
            query['role'] = role.value
            cache_key += f"::{role.value}"
        url = self._url(REPOSITORIES_ENDPOINT + "/{owner}", query, owner=self.owner)
        
        def compute() -> List[Repository]:
            repositories = self.paginator.collect(url, create_repository_from_api, cancel)
            return sorted(repositories, key=lambda r: r.name)
        
        return list(self.resources.repository_cache.get(cache_key, compute))
    
    # Source browsing
    
    def get_directory_content(self, branch_or_hash: str, path: str = '',
                              cancel: CancellationToken = NEVER_CANCELLED) -> List[SourceEntry]:
        path = path.strip('/')
        suffix = "/src/{ref}/{+path}/" if path else "/src/{ref}/"
        url = self._repo_url(suffix, query={'pagelen': self.config.page_length},
                             ref=branch_or_hash, path=path)
        return self.paginator.collect(url, create_source_entry_from_api, cancel)
    
    @contextmanager
    def open_file_content(self, branch_or_hash: str, path: str,
                          cancel: CancellationToken = NEVER_CANCELLED) -> Iterator[Any]:
        """
        Open a file for reading.
        
        The connection is returned to the pool when the block exits.
        
        Yields:
            Binary file-like object with the file content
            
        Raises:
            NotFoundError: When the file does not exist
            RequestError: For any other unexpected status
        """
        url = self._repo_url("/src/{ref}/{+path}", ref=branch_or_hash, path=path.lstrip('/'))
        with self.executor.stream(EndpointRequest.get(url), cancel) as response:
            if response.status_code == 404:
                raise NotFoundError(url, response.reason or 'Not Found')
            if response.status_code != 200:
                raise RequestError(response.status_code, response.reason or '', response.text, url)
            response.raw.decode_content = True
            yield response.raw
