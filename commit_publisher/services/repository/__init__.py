# Repository services - VCS root URL parsing
from .git import GitRepositoryParser
from .parsers import (
    guess_api_url,
    parse_bitbucket_cloud_repository,
    parse_deveo_repository,
    parse_repository,
)
from .tfs import TfsRepository, parse_tfs_repository

__all__ = [
    "GitRepositoryParser",
    "TfsRepository",
    "guess_api_url",
    "parse_bitbucket_cloud_repository",
    "parse_deveo_repository",
    "parse_repository",
    "parse_tfs_repository",
]
