import logging

from aws_cdk import App, Environment

from . import nag
from .pipeline_stack import PipelineStack
from .s3_cloudfront import StaticSiteStack
from .utilities import get_site_domain, load_context

logger = logging.getLogger(__name__)

CONTEXT_KEY = "staticsite"
SITE_STACK_NAME = "StaticSiteStack"
PIPELINE_STACK_NAME = "PipelineStack"


def create_stacks(app: App, env: Environment, context_key: str = CONTEXT_KEY) -> dict:
    """
    returns the stacks of the site keyed by stack name

    The pipeline stack is only declared for the blue/green variant.
    """
    context = load_context(app, context_key)
    site_domain = get_site_domain(context)
    logger.info("synthesising %s for %s in %s/%s (blue_green=%s, waf_enabled=%s)",
                SITE_STACK_NAME, site_domain, env.account, env.region,
                context["blue_green"], context["waf_enabled"])

    site_stack = StaticSiteStack(
        app, SITE_STACK_NAME, context,
        env=env,
        description=f"Static site hosting for {site_domain}",
    )
    stacks = {SITE_STACK_NAME: site_stack}

    if context["blue_green"]:
        stacks[PIPELINE_STACK_NAME] = PipelineStack(
            app, PIPELINE_STACK_NAME, context,
            blue_bucket_name=site_stack.blue_bucket.bucket_name,
            green_bucket_name=site_stack.green_bucket.bucket_name,
            distribution_id=site_stack.cfront_dist.distribution_id,
            site_stack_name=site_stack.stack_name,
            env=env,
            description=f"Blue/green release pipeline for {site_domain}",
        )

    if context["nag_checks"]:
        nag.add_checks(app)
        nag.suppress_site_findings(site_stack)
        if PIPELINE_STACK_NAME in stacks:
            nag.suppress_pipeline_findings(stacks[PIPELINE_STACK_NAME])

    return stacks
