"""
Template analyzer service.
Runs the full pipeline: parse -> estimate usage -> price -> aggregate.
"""
from typing import List, Optional, Tuple
import asyncio
import logging

from stackcost.core.config import config
from stackcost.domain.resource_types import CLOUDWATCH_ALARM, SNS_TOPIC, service_name_for
from stackcost.domain.template_models import Resource, ResourceUsage, TemplateAnalysis, UsageProfile
from stackcost.pricing.price_cache import FilePriceCache, PriceCache
from stackcost.pricing.pricing_factory import create_pricing_client
from stackcost.pricing.pricing_source import PricingError
from stackcost.pricing.resource_pricer import ResourcePricer
from stackcost.services.template_parser import TemplateParser
from stackcost.services.usage_estimator import UsageEstimator


logger = logging.getLogger(__name__)


# Per-account baseline created by the account bootstrap
BOOTSTRAP_ALARMS_PER_ACCOUNT = 2
BOOTSTRAP_NOTIFICATIONS_PER_ACCOUNT = 100


class TemplateAnalysisError(Exception):
    """Raised when a template yields nothing to analyze."""
    pass


class TemplateAnalyzer:
    """Estimates the monthly cost of a CloudFormation template."""

    def __init__(
        self,
        parser: TemplateParser,
        estimator: UsageEstimator,
        pricer: ResourcePricer,
        max_concurrency: Optional[int] = None
    ):
        """
        Args:
            parser: Template parser
            estimator: Usage estimator
            pricer: Resource pricer (owns the cache and the pricing source)
            max_concurrency: Resources priced at once (defaults to ANALYSIS_MAX_CONCURRENCY)
        """
        self.parser = parser
        self.estimator = estimator
        self.pricer = pricer
        self.max_concurrency = max(1, max_concurrency or config.ANALYSIS_MAX_CONCURRENCY)

    async def analyze_template(self, content: str, profile, region: str) -> TemplateAnalysis:
        """
        Analyze template content.

        Individual pricing failures are recorded in `errors` and never fail the call.

        Args:
            content: Raw template text (JSON or YAML)
            profile: Usage profile (unknown values fall back to light)
            region: AWS region code

        Returns:
            TemplateAnalysis

        Raises:
            TemplateParseError: If the template cannot be parsed
            TemplateAnalysisError: If the template yields no resources
        """
        profile = UsageProfile.parse(profile)
        resources = self.parser.parse_template(content)
        if not resources:
            raise TemplateAnalysisError("template contains no resources")

        usages = [self.estimator.estimate_usage(resource, profile) for resource in resources]

        logger.info(f"Analyzing {len(resources)} resources ({profile.value} profile, {region})")
        return await self._price_and_aggregate(resources, usages, profile, region)

    async def analyze_bootstrap_only(self, profile, region: str, num_accounts: int) -> TemplateAnalysis:
        """
        Estimate the per-account baseline cost of bootstrapped accounts.

        Args:
            profile: Usage profile (recorded on the result)
            region: AWS region code
            num_accounts: Number of accounts (at least 1)

        Raises:
            ValueError: If num_accounts is less than 1
        """
        if num_accounts < 1:
            raise ValueError(f"num_accounts must be at least 1 (got: {num_accounts})")

        profile = UsageProfile.parse(profile)
        resources = [
            Resource(type=CLOUDWATCH_ALARM, logical_id="BillingAlarm"),
            Resource(type=SNS_TOPIC, logical_id="NotificationTopic"),
        ]
        usages = [
            ResourceUsage(
                resource_type=CLOUDWATCH_ALARM,
                logical_id="BillingAlarm",
                service_name=service_name_for(CLOUDWATCH_ALARM),
                quantity=float(BOOTSTRAP_ALARMS_PER_ACCOUNT * num_accounts),
            ),
            ResourceUsage(
                resource_type=SNS_TOPIC,
                logical_id="NotificationTopic",
                service_name=service_name_for(SNS_TOPIC),
                requests_per_month=float(BOOTSTRAP_NOTIFICATIONS_PER_ACCOUNT * num_accounts),
            ),
        ]

        logger.info(f"Analyzing bootstrap baseline for {num_accounts} accounts ({region})")
        return await self._price_and_aggregate(resources, usages, profile, region)

    async def _price_and_aggregate(
        self,
        resources: List[Resource],
        usages: List[ResourceUsage],
        profile: UsageProfile,
        region: str
    ) -> TemplateAnalysis:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def price_one(usage: ResourceUsage) -> Tuple[Optional[float], int, int, Optional[str]]:
            async with semaphore:
                try:
                    cost, results = await self.pricer.price_usage(usage, region)
                except PricingError as error:
                    logger.warning(f"Pricing error for {usage.logical_id} ({usage.resource_type}): {error}")
                    return None, 0, 0, str(error)
                except Exception as error:
                    logger.error(
                        f"Unexpected error pricing {usage.logical_id} ({usage.resource_type}): "
                        f"{type(error).__name__}: {error}",
                        exc_info=True
                    )
                    return None, 0, 0, "unexpected error during pricing lookup"

            hits = sum(1 for result in results if result.from_cache)
            return cost, hits, len(results) - hits, None

        outcomes = await asyncio.gather(*(price_one(usage) for usage in usages))

        analysis = TemplateAnalysis(
            usage_profile=profile,
            region=region,
            resources=list(resources),
            usage_estimates=list(usages),
        )
        for usage, (cost, hits, misses, reason) in zip(usages, outcomes):
            analysis.cache_hits += hits
            analysis.cache_misses += misses
            if reason is not None:
                analysis.add_error(usage.logical_id, reason)
            else:
                analysis.add_cost(usage, cost)

        logger.info(
            f"Estimated ${analysis.estimated_cost:.2f}/month "
            f"({len(analysis.by_resource)} priced, {len(analysis.errors)} errors)"
        )
        return analysis


def create_template_analyzer(
    pricing_source: Optional[str] = None,
    cache: Optional[PriceCache] = None
) -> TemplateAnalyzer:
    """
    Wire an analyzer from configuration.

    Args:
        pricing_source: "bulk", "api" or "mock" (defaults to PRICING_SOURCE)
        cache: Price cache (defaults to a FilePriceCache in PRICING_CACHE_DIR)
    """
    pricer = ResourcePricer(
        pricing_client=create_pricing_client(pricing_source),
        cache=cache if cache is not None else FilePriceCache(),
    )
    return TemplateAnalyzer(
        parser=TemplateParser(),
        estimator=UsageEstimator(),
        pricer=pricer,
        max_concurrency=config.ANALYSIS_MAX_CONCURRENCY,
    )
