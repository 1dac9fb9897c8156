"""
Catalog of supported CloudFormation resource types.

Each supported type is bound to exactly one billing basis. The usage estimator
populates the usage fields of that basis and the resource pricer applies the
formula of that basis, so the two always agree.
"""
from typing import Dict, Optional, Tuple
from dataclasses import dataclass
from enum import Enum


class BillingBasis(Enum):
    """Unit a resource type is billed in."""
    HOURLY = "hourly"  # unit price per instance-hour
    STORAGE = "storage"  # unit price per GB-month
    REQUESTS = "requests"  # unit price per request (or per million requests)
    PROVISIONED_CAPACITY = "provisioned_capacity"  # unit price per capacity-unit-hour
    FLAT = "flat"  # unit price per resource per month


# Usage fields each basis multiplies into cost
BILLING_FIELDS: Dict[BillingBasis, Tuple[str, ...]] = {
    BillingBasis.HOURLY: ("monthly_hours", "quantity"),
    BillingBasis.STORAGE: ("storage_gb",),
    BillingBasis.REQUESTS: ("requests_per_month",),
    BillingBasis.PROVISIONED_CAPACITY: ("quantity", "monthly_hours"),
    BillingBasis.FLAT: ("quantity",),
}


@dataclass(frozen=True)
class ResourceTypeInfo:
    """Static facts about one supported resource type."""
    resource_type: str
    service_code: str  # AWS Price List service code
    billing_basis: BillingBasis
    always_on: bool = False  # Uptime does not depend on the usage profile
    default_instance_type: Optional[str] = None


EC2_INSTANCE = "AWS::EC2::Instance"
EC2_VOLUME = "AWS::EC2::Volume"
EC2_NAT_GATEWAY = "AWS::EC2::NatGateway"
RDS_DB_INSTANCE = "AWS::RDS::DBInstance"
ELASTICACHE_CLUSTER = "AWS::ElastiCache::CacheCluster"
LOAD_BALANCER = "AWS::ElasticLoadBalancingV2::LoadBalancer"
S3_BUCKET = "AWS::S3::Bucket"
LAMBDA_FUNCTION = "AWS::Lambda::Function"
SNS_TOPIC = "AWS::SNS::Topic"
SQS_QUEUE = "AWS::SQS::Queue"
DYNAMODB_TABLE = "AWS::DynamoDB::Table"
CLOUDWATCH_ALARM = "AWS::CloudWatch::Alarm"
KMS_KEY = "AWS::KMS::Key"
SECRETS_MANAGER_SECRET = "AWS::SecretsManager::Secret"


RESOURCE_TYPES: Dict[str, ResourceTypeInfo] = {
    info.resource_type: info
    for info in (
        # Elastic compute
        ResourceTypeInfo(EC2_INSTANCE, "AmazonEC2", BillingBasis.HOURLY,
                         default_instance_type="t3.medium"),
        # Always-on
        ResourceTypeInfo(RDS_DB_INSTANCE, "AmazonRDS", BillingBasis.HOURLY, always_on=True,
                         default_instance_type="db.t3.small"),
        ResourceTypeInfo(ELASTICACHE_CLUSTER, "AmazonElastiCache", BillingBasis.HOURLY, always_on=True,
                         default_instance_type="cache.t3.micro"),
        ResourceTypeInfo(EC2_NAT_GATEWAY, "AmazonEC2", BillingBasis.HOURLY, always_on=True),
        ResourceTypeInfo(LOAD_BALANCER, "AWSELB", BillingBasis.HOURLY, always_on=True),
        # Storage
        ResourceTypeInfo(S3_BUCKET, "AmazonS3", BillingBasis.STORAGE),
        ResourceTypeInfo(EC2_VOLUME, "AmazonEC2", BillingBasis.STORAGE),
        # Requests
        ResourceTypeInfo(LAMBDA_FUNCTION, "AWSLambda", BillingBasis.REQUESTS),
        ResourceTypeInfo(SNS_TOPIC, "AmazonSNS", BillingBasis.REQUESTS),
        ResourceTypeInfo(SQS_QUEUE, "AmazonSQS", BillingBasis.REQUESTS),
        # Provisioned capacity
        ResourceTypeInfo(DYNAMODB_TABLE, "AmazonDynamoDB", BillingBasis.PROVISIONED_CAPACITY),
        # Flat-rate
        ResourceTypeInfo(CLOUDWATCH_ALARM, "AmazonCloudWatch", BillingBasis.FLAT),
        ResourceTypeInfo(KMS_KEY, "awskms", BillingBasis.FLAT),
        ResourceTypeInfo(SECRETS_MANAGER_SECRET, "AWSSecretsManager", BillingBasis.FLAT),
    )
}


def get_resource_type_info(resource_type: str) -> Optional[ResourceTypeInfo]:
    """
    Look up catalog facts for a resource type.

    Args:
        resource_type: CloudFormation type (e.g., 'AWS::EC2::Instance')

    Returns:
        ResourceTypeInfo, or None for unsupported types
    """
    return RESOURCE_TYPES.get(resource_type)


def service_name_for(resource_type: str) -> str:
    """
    Coarse service bucket used for aggregation.

    e.g., "AWS::EC2::Instance" -> "ec2"
    """
    parts = resource_type.split("::")
    if len(parts) >= 2 and parts[1]:
        return parts[1].lower()
    return "unknown"
