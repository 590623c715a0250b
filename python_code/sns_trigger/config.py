"""
Configuration for the SNS publishing client.

Settings come from environment variables, read once when an `SnsTrigger` is
built. The hard SNS platform limits are plain constants since they are not
something a deployment can change.
"""

import os
from dataclasses import dataclass
from typing import Optional

# 256 KiB, the SNS per-message (and per-batch-request) ceiling.
SNS_MESSAGE_LIMIT_SIZE = 256 * 1024

# Entries per publish_batch request.
SNS_MAX_BATCH_SIZE = 10

# Room left in size estimates for the bucket name and region, which are only
# known once the destination list has been resolved.
DESTINATION_METADATA_ALLOWANCE = 256

TENANT_ATTRIBUTE_NAME = "tenant-client"
TOPIC_ATTRIBUTE_NAME = "topicName"

_TRUTHY = {"1", "true", "yes", "on"}


def get_env_var(name: str, default: Optional[str] = None) -> str:
    """
    Gets an environment variable or raises a ValueError for fast-failure.

    Args:
        name: The name of the environment variable.
        default: An optional default value. If not provided, the variable is required.

    Returns:
        The value of the environment variable.

    Raises:
        ValueError: If the required environment variable is not set.
    """
    value = os.environ.get(name, default)
    if value is None:
        raise ValueError(f"FATAL: Environment variable '{name}' is not set.")
    return value


@dataclass(frozen=True)
class Settings:
    """
    Runtime settings.

    Attributes:
        service_name: Name of the deploying service. Part of every content
                      path and used as the STS role-session name.
        storage_parameter_name: Fragment identifying the shared SSM parameter
                                that lists the offload buckets.
        ram_region: Region queried for resources shared through RAM.
        assume_role_duration_seconds: Lifetime of assumed bucket credentials.
        max_concurrency: Ceiling on in-flight publish_batch calls.
        log_level: Level for the Powertools logger.
        require_tenant_for_offload: When True, offloading without a tenant
                                    code raises MissingTenantContextError.
        default_namespace: Path prefix used when no tenant code is available.
    """

    service_name: str = "unknown-service"
    storage_parameter_name: str = "/shared/internal-storage"
    ram_region: str = "us-east-1"
    assume_role_duration_seconds: int = 1800
    max_concurrency: int = 25
    log_level: str = "INFO"
    require_tenant_for_offload: bool = False
    default_namespace: str = "core"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            service_name=get_env_var("SERVICE_NAME", "unknown-service"),
            storage_parameter_name=get_env_var("STORAGE_PARAMETER_NAME", "/shared/internal-storage"),
            ram_region=get_env_var("RAM_REGION", "us-east-1"),
            assume_role_duration_seconds=int(get_env_var("ASSUME_ROLE_DURATION_SECONDS", "1800")),
            max_concurrency=int(get_env_var("PUBLISH_MAX_CONCURRENCY", "25")),
            log_level=get_env_var("LOG_LEVEL", "INFO").upper(),
            require_tenant_for_offload=get_env_var("OFFLOAD_REQUIRE_TENANT", "false").lower() in _TRUTHY,
            default_namespace=get_env_var("OFFLOAD_DEFAULT_NAMESPACE", "core"),
        )
