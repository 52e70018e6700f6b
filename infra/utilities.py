import logging
import os

from aws_cdk import Environment, RemovalPolicy, Token
from constructs import Construct

logger = logging.getLogger(__name__)

CLOUDFRONT_REGION = "us-east-1"
MIN_WAF_RATE_LIMIT = 100

PLACEHOLDER_ACCOUNT = "123456789012"

REQUIRED_CONTEXT_KEYS = ("domain_name", "site_sub_domain")
PIPELINE_CONTEXT_KEYS = ("source_owner", "source_repo", "connection_arn")

REMOVAL_POLICIES = {
    "destroy": RemovalPolicy.DESTROY,
    "retain": RemovalPolicy.RETAIN,
    "snapshot": RemovalPolicy.SNAPSHOT,
}


class ConfigurationError(ValueError):
    """Raised when the CDK context cannot describe a deployable site."""


def get_removal_policy(name: str) -> RemovalPolicy:
    """
    returns the removal policy matching a context value
    """
    try:
        return REMOVAL_POLICIES[name.lower()]
    except KeyError:
        raise ConfigurationError(
            f"unknown removal policy {name!r}, expected one of {sorted(REMOVAL_POLICIES)}"
        ) from None


def get_environment() -> Environment:
    """
    returns the deployment environment from CDK_DEFAULT_ACCOUNT / CDK_DEFAULT_REGION

    The hosted zone import and certificate need a concrete account and
    region at synth time, so placeholders are used when they are unset.
    """
    account = os.environ.get("CDK_DEFAULT_ACCOUNT") or PLACEHOLDER_ACCOUNT
    region = os.environ.get("CDK_DEFAULT_REGION") or CLOUDFRONT_REGION
    if account == PLACEHOLDER_ACCOUNT:
        logger.warning("CDK_DEFAULT_ACCOUNT is not set, using placeholder account %s", account)
    return Environment(account=account, region=region)


def get_log_level(default: str = "INFO") -> int:
    """
    returns the numeric logging level named by LOG_LEVEL
    """
    name = (os.environ.get("LOG_LEVEL") or default).upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise ConfigurationError(
            f"unknown LOG_LEVEL {name!r}, expected one of DEBUG, INFO, WARNING, ERROR, CRITICAL"
        )
    return level


def get_site_domain(context: dict) -> str:
    return f"{context['site_sub_domain']}.{context['domain_name']}"


def load_context(scope: Construct, context_key: str) -> dict:
    """
    returns the validated context block stored under context_key

    hostedZoneId / zoneName given on the command line take precedence over
    the values in the block.
    """
    raw = scope.node.try_get_context(context_key)
    if not raw:
        raise ConfigurationError(f"missing context block {context_key!r} in cdk.json")

    context: dict = dict(raw)
    missing = [key for key in REQUIRED_CONTEXT_KEYS if not context.get(key)]
    if missing:
        raise ConfigurationError(f"context {context_key!r} is missing {', '.join(missing)}")

    context.setdefault("blue_green", True)
    context.setdefault("waf_enabled", False)
    context.setdefault("waf_rate_limit", 500)
    context.setdefault("removal_policy", "destroy")
    context.setdefault("nag_checks", True)
    context.setdefault("source_branch", "main")
    context.setdefault("approval_emails", [])

    context["hosted_zone_id"] = scope.node.try_get_context("hostedZoneId") or context.get("hosted_zone_id")
    context["zone_name"] = (
        scope.node.try_get_context("zoneName") or context.get("zone_name") or context["domain_name"]
    )
    if not context["hosted_zone_id"]:
        raise ConfigurationError("a hosted zone id is required, set hosted_zone_id or pass --context hostedZoneId=")

    # fail on a bad name now rather than half way through building a stack
    get_removal_policy(context["removal_policy"])

    try:
        rate_limit = int(context["waf_rate_limit"])
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"waf_rate_limit must be an integer, got {context['waf_rate_limit']!r}"
        ) from None
    if rate_limit < MIN_WAF_RATE_LIMIT:
        raise ConfigurationError(
            f"waf_rate_limit must be at least {MIN_WAF_RATE_LIMIT}, got {rate_limit}"
        )
    context["waf_rate_limit"] = rate_limit

    if context["blue_green"]:
        missing = [key for key in PIPELINE_CONTEXT_KEYS if not context.get(key)]
        if missing:
            raise ConfigurationError(f"the blue/green pipeline needs {', '.join(missing)}")

    return context


def check_waf_region(context: dict, region: str) -> None:
    """
    CLOUDFRONT scoped web ACLs only exist in us-east-1
    """
    if not context["waf_enabled"]:
        return
    if Token.is_unresolved(region):
        raise ConfigurationError(
            f"waf_enabled needs an explicit stack region, set env with region {CLOUDFRONT_REGION}"
        )
    if region != CLOUDFRONT_REGION:
        raise ConfigurationError(
            f"waf_enabled requires the site stack in {CLOUDFRONT_REGION}, not {region}"
        )
