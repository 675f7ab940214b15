"""Bitbucket Cloud API client for continuous integration hosts."""

from .api import (
    BitbucketCloudClient,
    SharedResources,
    CancellationToken,
    Found,
    Absent
)
from .config import ClientConfig, load_config

__version__ = "0.1.0"

__all__ = [
    'BitbucketCloudClient',
    'SharedResources',
    'CancellationToken',
    'Found',
    'Absent',
    'ClientConfig',
    'load_config'
]
