"""
Usage estimator service.
Maps a template resource plus a usage profile to estimated monthly usage.

Estimation is total: every resource gets an estimate, unsupported types get
the default (quantity 1, nothing else) and are left for the pricer to reject.
"""
from typing import Callable, Dict
import logging

from stackcost.core.config import config
from stackcost.domain.resource_types import (
    RESOURCE_TYPES,
    EC2_INSTANCE, EC2_VOLUME, EC2_NAT_GATEWAY, RDS_DB_INSTANCE, ELASTICACHE_CLUSTER,
    LOAD_BALANCER, S3_BUCKET, LAMBDA_FUNCTION, SNS_TOPIC, SQS_QUEUE, DYNAMODB_TABLE,
    CLOUDWATCH_ALARM, KMS_KEY, SECRETS_MANAGER_SECRET,
    service_name_for,
)
from stackcost.domain.template_models import Resource, ResourceUsage, UsageProfile
from stackcost.utils.properties import get_string_property, get_float_property, get_bool_property


logger = logging.getLogger(__name__)


HOURS_PER_MONTH = float(config.HOURS_PER_MONTH)

# Default sizes when the template does not declare one
DEFAULT_EC2_INSTANCE_TYPE = RESOURCE_TYPES[EC2_INSTANCE].default_instance_type  # t3.medium
DEFAULT_RDS_INSTANCE_CLASS = RESOURCE_TYPES[RDS_DB_INSTANCE].default_instance_type  # db.t3.small
DEFAULT_CACHE_NODE_TYPE = RESOURCE_TYPES[ELASTICACHE_CLUSTER].default_instance_type  # cache.t3.micro
DEFAULT_RDS_ENGINE = "mysql"
DEFAULT_CACHE_ENGINE = "redis"
DEFAULT_VOLUME_TYPE = "gp3"
DEFAULT_LOAD_BALANCER_TYPE = "application"

# S3 storage by profile: 1 GB / 10 GB / 100 GB / 1 TB
S3_STORAGE_GB: Dict[UsageProfile, float] = {
    UsageProfile.MINIMAL: 1.0,
    UsageProfile.LIGHT: 10.0,
    UsageProfile.MODERATE: 100.0,
    UsageProfile.HEAVY: 1000.0,
}

# EBS volume size by profile when Size is not declared
EBS_VOLUME_GB: Dict[UsageProfile, float] = {
    UsageProfile.MINIMAL: 8.0,
    UsageProfile.LIGHT: 20.0,
    UsageProfile.MODERATE: 100.0,
    UsageProfile.HEAVY: 500.0,
}

LAMBDA_INVOCATIONS: Dict[UsageProfile, float] = {
    UsageProfile.MINIMAL: 10_000,
    UsageProfile.LIGHT: 100_000,
    UsageProfile.MODERATE: 1_000_000,
    UsageProfile.HEAVY: 10_000_000,
}

SNS_NOTIFICATIONS: Dict[UsageProfile, float] = {
    UsageProfile.MINIMAL: 100,
    UsageProfile.LIGHT: 1_000,
    UsageProfile.MODERATE: 10_000,
    UsageProfile.HEAVY: 100_000,
}

SQS_MESSAGES: Dict[UsageProfile, float] = {
    UsageProfile.MINIMAL: 10_000,
    UsageProfile.LIGHT: 100_000,
    UsageProfile.MODERATE: 1_000_000,
    UsageProfile.HEAVY: 10_000_000,
}

# Provisioned read and write capacity units (each)
DYNAMODB_CAPACITY_UNITS: Dict[UsageProfile, float] = {
    UsageProfile.MINIMAL: 5.0,
    UsageProfile.LIGHT: 10.0,
    UsageProfile.MODERATE: 25.0,
    UsageProfile.HEAVY: 100.0,
}


class UsageEstimator:
    """Estimates monthly resource usage from template properties and a usage profile."""

    def __init__(self):
        self._rules: Dict[str, Callable[[Resource, UsageProfile, dict], None]] = {
            EC2_INSTANCE: self._estimate_ec2_instance,
            EC2_VOLUME: self._estimate_ebs_volume,
            EC2_NAT_GATEWAY: self._estimate_always_on,
            RDS_DB_INSTANCE: self._estimate_rds_instance,
            ELASTICACHE_CLUSTER: self._estimate_cache_cluster,
            LOAD_BALANCER: self._estimate_load_balancer,
            S3_BUCKET: self._estimate_s3_bucket,
            LAMBDA_FUNCTION: self._estimate_lambda_function,
            SNS_TOPIC: self._estimate_sns_topic,
            SQS_QUEUE: self._estimate_sqs_queue,
            DYNAMODB_TABLE: self._estimate_dynamodb_table,
            CLOUDWATCH_ALARM: self._estimate_flat_rate,
            KMS_KEY: self._estimate_flat_rate,
            SECRETS_MANAGER_SECRET: self._estimate_flat_rate,
        }

    def supported_types(self):
        """Resource types with a dedicated estimation rule."""
        return list(self._rules)

    def estimate_usage(self, resource: Resource, profile: UsageProfile) -> ResourceUsage:
        """
        Estimate monthly usage for a resource.

        Args:
            resource: Parsed template resource
            profile: Usage profile (unknown values fall back to light)

        Returns:
            ResourceUsage with the fields of the resource's billing basis populated
        """
        profile = UsageProfile.parse(profile)
        fields = {}

        rule = self._rules.get(resource.type)
        if rule is None:
            logger.debug(f"No usage rule for {resource.type} ({resource.logical_id}), using default estimate")
            fields["quantity"] = 1.0
        else:
            rule(resource, profile, fields)

        return ResourceUsage(
            resource_type=resource.type,
            logical_id=resource.logical_id,
            service_name=service_name_for(resource.type),
            utilization_factor=1.0,
            **fields
        )

    # Elastic compute: active hours scale with the profile multiplier

    def _estimate_ec2_instance(self, resource: Resource, profile: UsageProfile, fields: dict) -> None:
        fields["instance_type"] = get_string_property(
            resource.properties, "InstanceType", DEFAULT_EC2_INSTANCE_TYPE
        )
        # 73 / 219 / 438 / 730 hours
        fields["monthly_hours"] = round(HOURS_PER_MONTH * profile.multiplier, 2)
        fields["quantity"] = 1.0

    # Always-on: full-month uptime regardless of profile

    def _estimate_always_on(self, resource: Resource, profile: UsageProfile, fields: dict) -> None:
        fields["monthly_hours"] = HOURS_PER_MONTH
        fields["quantity"] = 1.0

    def _estimate_rds_instance(self, resource: Resource, profile: UsageProfile, fields: dict) -> None:
        self._estimate_always_on(resource, profile, fields)
        fields["instance_type"] = get_string_property(
            resource.properties, "DBInstanceClass", DEFAULT_RDS_INSTANCE_CLASS
        )
        multi_az = get_bool_property(resource.properties, "MultiAZ", False)
        fields["options"] = {
            "engine": get_string_property(resource.properties, "Engine", DEFAULT_RDS_ENGINE).lower(),
            "deployment_option": "Multi-AZ" if multi_az else "Single-AZ",
        }

    def _estimate_cache_cluster(self, resource: Resource, profile: UsageProfile, fields: dict) -> None:
        self._estimate_always_on(resource, profile, fields)
        fields["instance_type"] = get_string_property(
            resource.properties, "CacheNodeType", DEFAULT_CACHE_NODE_TYPE
        )
        fields["quantity"] = get_float_property(resource.properties, "NumCacheNodes", 1.0)
        fields["options"] = {
            "cache_engine": get_string_property(resource.properties, "Engine", DEFAULT_CACHE_ENGINE).lower(),
        }

    def _estimate_load_balancer(self, resource: Resource, profile: UsageProfile, fields: dict) -> None:
        self._estimate_always_on(resource, profile, fields)
        fields["options"] = {
            "load_balancer_type": get_string_property(
                resource.properties, "Type", DEFAULT_LOAD_BALANCER_TYPE
            ).lower(),
        }

    # Storage: absolute GB by profile

    def _estimate_s3_bucket(self, resource: Resource, profile: UsageProfile, fields: dict) -> None:
        fields["storage_gb"] = S3_STORAGE_GB[profile]

    def _estimate_ebs_volume(self, resource: Resource, profile: UsageProfile, fields: dict) -> None:
        fields["storage_gb"] = get_float_property(resource.properties, "Size", EBS_VOLUME_GB[profile])
        fields["options"] = {
            "volume_type": get_string_property(resource.properties, "VolumeType", DEFAULT_VOLUME_TYPE).lower(),
        }

    # Requests: absolute monthly counts by profile

    def _estimate_lambda_function(self, resource: Resource, profile: UsageProfile, fields: dict) -> None:
        fields["requests_per_month"] = LAMBDA_INVOCATIONS[profile]

    def _estimate_sns_topic(self, resource: Resource, profile: UsageProfile, fields: dict) -> None:
        fields["requests_per_month"] = SNS_NOTIFICATIONS[profile]

    def _estimate_sqs_queue(self, resource: Resource, profile: UsageProfile, fields: dict) -> None:
        fields["requests_per_month"] = SQS_MESSAGES[profile]
        fifo = get_bool_property(resource.properties, "FifoQueue", False)
        fields["options"] = {"queue_type": "fifo" if fifo else "standard"}

    # Provisioned capacity: capacity units by profile, billed every hour

    def _estimate_dynamodb_table(self, resource: Resource, profile: UsageProfile, fields: dict) -> None:
        fields["quantity"] = DYNAMODB_CAPACITY_UNITS[profile]
        fields["monthly_hours"] = HOURS_PER_MONTH

    # Flat-rate: existence drives the price

    def _estimate_flat_rate(self, resource: Resource, profile: UsageProfile, fields: dict) -> None:
        fields["quantity"] = 1.0


_default_estimator = UsageEstimator()


def estimate_usage(resource: Resource, profile: UsageProfile) -> ResourceUsage:
    """Estimate usage with the default estimator."""
    return _default_estimator.estimate_usage(resource, profile)
