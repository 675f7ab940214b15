"""
Resource shapes of the Bitbucket Cloud API.

Each ``create_*_from_api`` function converts a raw JSON object from the API
into a standardized, immutable value. They double as element decoders for
paginated listings.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, List, Optional, Tuple


class UserRoleInRepository(Enum):
    """Role filter for repository listings."""
    
    OWNER = 'owner'
    ADMIN = 'admin'
    CONTRIBUTOR = 'contributor'
    MEMBER = 'member'


class RepositoryType(Enum):
    GIT = 'git'
    MERCURIAL = 'hg'


class RepositoryProtocol(Enum):
    HTTP = 'http'
    SSH = 'ssh'


class BuildState(Enum):
    INPROGRESS = 'INPROGRESS'
    SUCCESSFUL = 'SUCCESSFUL'
    FAILED = 'FAILED'
    STOPPED = 'STOPPED'


def _nested(data: Dict[str, Any], *path: str) -> Any:
    """Follow a path of keys, returning None as soon as one is missing."""
    value: Any = data
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


@dataclass(frozen=True)
class Repository:
    full_name: str
    name: str
    owner: str
    scm: str = 'git'
    is_private: bool = False
    uuid: Optional[str] = None
    main_branch: Optional[str] = None
    url: str = ''


@dataclass(frozen=True)
class Branch:
    name: str
    hash: Optional[str] = None
    date: Optional[str] = None
    active: bool = True


@dataclass(frozen=True)
class Commit:
    hash: str
    message: str = ''
    date: Optional[str] = None
    author: str = ''
    parents: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PullRequest:
    id: int
    title: str = ''
    state: str = ''
    source_branch: Optional[str] = None
    source_commit: Optional[str] = None
    source_repository: Optional[str] = None
    destination_branch: Optional[str] = None
    destination_commit: Optional[str] = None
    author: str = ''
    url: str = ''
    updated_on: Optional[str] = None


@dataclass(frozen=True)
class Team:
    username: str
    display_name: str = ''
    uuid: Optional[str] = None
    avatar_url: str = ''


@dataclass(frozen=True)
class SourceEntry:
    path: str
    type: str
    size: Optional[int] = None
    commit: Optional[str] = None
    
    @property
    def is_directory(self) -> bool:
        return self.type == 'commit_directory'


@dataclass(frozen=True)
class WebHook:
    """A repository webhook, both as registered and as returned by the API."""
    
    url: str
    events: Tuple[str, ...] = ()
    description: str = ''
    active: bool = True
    uuid: Optional[str] = None
    
    def to_api(self) -> Dict[str, Any]:
        data = {
            'description': self.description,
            'url': self.url,
            'active': self.active,
            'events': list(self.events)
        }
        if self.uuid:
            data['uuid'] = self.uuid
        return data


@dataclass(frozen=True)
class BuildStatus:
    """Build result posted against a commit."""
    
    hash: str
    state: BuildState
    key: str
    url: str
    name: str = ''
    description: str = ''
    
    def to_api(self) -> Dict[str, Any]:
        return {
            'state': self.state.value,
            'key': self.key,
            'name': self.name,
            'url': self.url,
            'description': self.description
        }


def create_repository_from_api(data: Dict[str, Any]) -> Repository:
    """
    Convert a repository object from the API into a standardized format.
    
    Args:
        data: Raw data from the API
        
    Returns:
        Standardized repository object
    """
    full_name = data['full_name']
    owner = _nested(data, 'owner', 'username') or full_name.split('/', 1)[0]
    return Repository(
        full_name=full_name,
        name=data.get('name') or full_name.split('/', 1)[-1],
        owner=owner,
        scm=data.get('scm') or 'git',
        is_private=bool(data.get('is_private', False)),
        uuid=data.get('uuid'),
        main_branch=_nested(data, 'mainbranch', 'name'),
        url=_nested(data, 'links', 'html', 'href') or ''
    )


def create_branch_from_api(data: Dict[str, Any]) -> Branch:
    """Convert a branch object from the API into a standardized format."""
    return Branch(
        name=data['name'],
        hash=_nested(data, 'target', 'hash'),
        date=_nested(data, 'target', 'date'),
        active=bool(data.get('active', True))
    )


def create_commit_from_api(data: Dict[str, Any]) -> Commit:
    """Convert a commit object from the API into a standardized format."""
    return Commit(
        hash=data['hash'],
        message=data.get('message') or '',
        date=data.get('date'),
        author=_nested(data, 'author', 'raw') or '',
        parents=tuple(p['hash'] for p in data.get('parents') or [] if 'hash' in p)
    )


def create_pull_request_from_api(data: Dict[str, Any]) -> PullRequest:
    """Convert a pull request object from the API into a standardized format."""
    return PullRequest(
        id=int(data['id']),
        title=data.get('title') or '',
        state=data.get('state') or '',
        source_branch=_nested(data, 'source', 'branch', 'name'),
        source_commit=_nested(data, 'source', 'commit', 'hash'),
        source_repository=_nested(data, 'source', 'repository', 'full_name'),
        destination_branch=_nested(data, 'destination', 'branch', 'name'),
        destination_commit=_nested(data, 'destination', 'commit', 'hash'),
        author=_nested(data, 'author', 'display_name') or '',
        url=_nested(data, 'links', 'html', 'href') or '',
        updated_on=data.get('updated_on')
    )


def create_team_from_api(data: Dict[str, Any]) -> Team:
    """Convert a team object from the API into a standardized format."""
    return Team(
        username=data['username'],
        display_name=data.get('display_name') or '',
        uuid=data.get('uuid'),
        avatar_url=_nested(data, 'links', 'avatar', 'href') or ''
    )


def create_source_entry_from_api(data: Dict[str, Any]) -> SourceEntry:
    """Convert a directory listing entry into a standardized format."""
    return SourceEntry(
        path=data['path'],
        type=data['type'],
        size=data.get('size'),
        commit=_nested(data, 'commit', 'hash')
    )


def create_webhook_from_api(data: Dict[str, Any]) -> WebHook:
    """Convert a webhook object from the API into a standardized format."""
    return WebHook(
        url=data['url'],
        events=tuple(data.get('events') or ()),
        description=data.get('description') or '',
        active=bool(data.get('active', True)),
        uuid=data.get('uuid')
    )


def commit_hash_from_api(data: Dict[str, Any]) -> str:
    return data['hash']


__all__: List[str] = [
    'UserRoleInRepository', 'RepositoryType', 'RepositoryProtocol', 'BuildState',
    'Repository', 'Branch', 'Commit', 'PullRequest', 'Team', 'SourceEntry',
    'WebHook', 'BuildStatus',
    'create_repository_from_api', 'create_branch_from_api', 'create_commit_from_api',
    'create_pull_request_from_api', 'create_team_from_api', 'create_source_entry_from_api',
    'create_webhook_from_api', 'commit_hash_from_api'
]
