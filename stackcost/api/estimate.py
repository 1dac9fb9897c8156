"""
API routes for template cost estimation and the price cache.
"""
from typing import Any, Dict
import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from stackcost.core.config import config
from stackcost.pricing.price_cache import FilePriceCache, PriceCache, PriceCacheError
from stackcost.services.template_analyzer import (
    TemplateAnalyzer, TemplateAnalysisError, create_template_analyzer,
)
from stackcost.services.template_parser import TemplateParseError


logger = logging.getLogger(__name__)
router = APIRouter()


class EstimateRequest(BaseModel):
    """Request model for template cost estimation."""
    template: str = Field(..., min_length=1, description="CloudFormation template body (JSON or YAML)")
    usage_profile: str = Field(
        default_factory=lambda: config.DEFAULT_USAGE_PROFILE,
        description="minimal, light, moderate or heavy (unknown values fall back to light)"
    )
    region: str = Field(default_factory=lambda: config.DEFAULT_REGION, description="AWS region code")


class BootstrapEstimateRequest(BaseModel):
    """Request model for the account bootstrap baseline estimate."""
    num_accounts: int = Field(..., ge=1, le=1000, description="Number of bootstrapped accounts")
    usage_profile: str = Field(default_factory=lambda: config.DEFAULT_USAGE_PROFILE)
    region: str = Field(default_factory=lambda: config.DEFAULT_REGION)


_price_cache: PriceCache = None
_template_analyzer: TemplateAnalyzer = None


def get_price_cache() -> PriceCache:
    """Shared price cache for this process."""
    global _price_cache
    if _price_cache is None:
        _price_cache = FilePriceCache()
    return _price_cache


def get_template_analyzer(cache: PriceCache = Depends(get_price_cache)) -> TemplateAnalyzer:
    """Shared analyzer for this process (offer files stay loaded between requests)."""
    global _template_analyzer
    if _template_analyzer is None:
        _template_analyzer = create_template_analyzer(cache=cache)
    return _template_analyzer


@router.post("/api/estimate")
async def estimate_template(
    estimate_request: EstimateRequest,
    analyzer: TemplateAnalyzer = Depends(get_template_analyzer)
) -> Dict[str, Any]:
    """
    Estimate the monthly cost of a CloudFormation template.

    Resources that cannot be priced are listed in `analysis.errors`.

    Raises:
        HTTPException: 400 if the template cannot be parsed
    """
    try:
        analysis = await analyzer.analyze_template(
            estimate_request.template,
            estimate_request.usage_profile,
            estimate_request.region,
        )
    except (TemplateParseError, TemplateAnalysisError) as error:
        raise HTTPException(status_code=400, detail=f"Invalid template: {error}") from error

    return {"status": "ok", "analysis": analysis.to_dict()}


@router.post("/api/estimate/bootstrap")
async def estimate_bootstrap(
    bootstrap_request: BootstrapEstimateRequest,
    analyzer: TemplateAnalyzer = Depends(get_template_analyzer)
) -> Dict[str, Any]:
    """Estimate the baseline monthly cost of bootstrapped accounts."""
    try:
        analysis = await analyzer.analyze_bootstrap_only(
            bootstrap_request.usage_profile,
            bootstrap_request.region,
            bootstrap_request.num_accounts,
        )
    except ValueError as error:
        raise HTTPException(status_code=400, detail=str(error)) from error

    return {"status": "ok", "analysis": analysis.to_dict()}


@router.get("/api/pricing/cache")
async def get_cache_stats(cache: PriceCache = Depends(get_price_cache)) -> Dict[str, Any]:
    """Price cache statistics."""
    return {"status": "ok", "cache": cache.get_stats().to_dict()}


@router.delete("/api/pricing/cache")
async def clear_cache(cache: PriceCache = Depends(get_price_cache)) -> Dict[str, Any]:
    """
    Remove every cached price.

    Raises:
        HTTPException: 500 if the cache cannot be cleared
    """
    try:
        cache.clear()
    except PriceCacheError as error:
        logger.error(f"Failed to clear price cache: {error}")
        raise HTTPException(status_code=500, detail="Failed to clear price cache") from error

    return {"status": "ok", "cache": cache.get_stats().to_dict()}
