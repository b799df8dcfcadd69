# Publishers - provider descriptors and the generic status publisher
from commit_publisher.core.config import FeatureConfig, Settings, settings as default_settings
from commit_publisher.core.exceptions import ConfigurationError
from commit_publisher.services.dispatcher import AsyncHttpDispatcher
from commit_publisher.state.problems import BuildProblemsStore, build_problems

from . import bitbucket_cloud, bitbucket_server, deveo, gerrit, gitea, github, gitlab, space, tfs, upsource
from .base import CommitStatusPublisher, ProviderDescriptor, PublishContext

DESCRIPTORS: dict[str, ProviderDescriptor] = {
    module.DESCRIPTOR.publisher_id: module.DESCRIPTOR
    for module in (github, gitlab, bitbucket_cloud, bitbucket_server, gerrit, tfs, upsource, deveo, gitea, space)
}


def get_descriptor(publisher_id: str) -> ProviderDescriptor:
    """
    Look up a provider by publisher id.

    Raises:
        ConfigurationError: If the publisher is unknown
    """
    try:
        return DESCRIPTORS[publisher_id]
    except KeyError:
        raise ConfigurationError(f"Unknown publisher '{publisher_id}'") from None


def create_publisher(
    feature: FeatureConfig,
    dispatcher: AsyncHttpDispatcher,
    problems: BuildProblemsStore = build_problems,
    settings: Settings = default_settings,
) -> CommitStatusPublisher:
    """Create and validate the publisher of a build feature."""
    publisher = CommitStatusPublisher(get_descriptor(feature.publisher_id), feature, dispatcher, problems, settings)
    publisher.validate()
    return publisher


__all__ = [
    "DESCRIPTORS",
    "CommitStatusPublisher",
    "ProviderDescriptor",
    "PublishContext",
    "create_publisher",
    "get_descriptor",
]
