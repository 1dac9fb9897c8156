"""
Region code to Price List location mapping.

Offer files and the Price List query API describe regions by a human-readable
location ("US East (N. Virginia)"); newer offer files also carry `regionCode`.
"""
from typing import Dict, List, Optional


AWS_REGION_TO_LOCATION: Dict[str, str] = {
    # North America
    "us-east-1": "US East (N. Virginia)",
    "us-east-2": "US East (Ohio)",
    "us-west-1": "US West (N. California)",
    "us-west-2": "US West (Oregon)",
    "ca-central-1": "Canada (Central)",
    "ca-west-1": "Canada West (Calgary)",
    "us-gov-east-1": "AWS GovCloud (US-East)",
    "us-gov-west-1": "AWS GovCloud (US-West)",

    # Asia Pacific
    "ap-south-1": "Asia Pacific (Mumbai)",
    "ap-south-2": "Asia Pacific (Hyderabad)",
    "ap-southeast-1": "Asia Pacific (Singapore)",
    "ap-southeast-2": "Asia Pacific (Sydney)",
    "ap-southeast-3": "Asia Pacific (Jakarta)",
    "ap-southeast-4": "Asia Pacific (Melbourne)",
    "ap-northeast-1": "Asia Pacific (Tokyo)",
    "ap-northeast-2": "Asia Pacific (Seoul)",
    "ap-northeast-3": "Asia Pacific (Osaka)",
    "ap-east-1": "Asia Pacific (Hong Kong)",

    # Europe
    "eu-west-1": "EU (Ireland)",
    "eu-west-2": "EU (London)",
    "eu-west-3": "EU (Paris)",
    "eu-central-1": "EU (Frankfurt)",
    "eu-central-2": "EU (Zurich)",
    "eu-north-1": "EU (Stockholm)",
    "eu-south-1": "EU (Milan)",
    "eu-south-2": "EU (Spain)",

    # Middle East, Africa, South America
    "me-south-1": "Middle East (Bahrain)",
    "me-central-1": "Middle East (UAE)",
    "il-central-1": "Israel (Tel Aviv)",
    "af-south-1": "Africa (Cape Town)",
    "sa-east-1": "South America (Sao Paulo)",
}

# Offer files have used both "EU (...)" and "Europe (...)" for the same regions
_LOCATION_ALIASES: Dict[str, str] = {
    location.replace("EU (", "Europe ("): region
    for region, location in AWS_REGION_TO_LOCATION.items()
    if location.startswith("EU (")
}

_LOCATION_TO_REGION: Dict[str, str] = {
    **{location: region for region, location in AWS_REGION_TO_LOCATION.items()},
    **_LOCATION_ALIASES,
}


def get_aws_pricing_location(region_code: str) -> Optional[str]:
    """
    Get the Price List location string for a region code.

    Args:
        region_code: AWS region code (e.g., 'ap-south-1')

    Returns:
        Location string (e.g., 'Asia Pacific (Mumbai)'), or None if unknown
    """
    return AWS_REGION_TO_LOCATION.get(region_code)


def get_region_for_location(location: str) -> Optional[str]:
    """Reverse lookup: Price List location string to region code."""
    return _LOCATION_TO_REGION.get(location)


def get_all_aws_regions() -> List[str]:
    """All region codes with a known pricing location."""
    return list(AWS_REGION_TO_LOCATION)
