import copy

import pytest
from aws_cdk import App, Environment

SITE_CONTEXT = {
    "domain_name": "example.com",
    "site_sub_domain": "www",
    "hosted_zone_id": "Z0123456789ABCDEFGHIJ",
    "zone_name": "example.com",
    "blue_green": True,
    "waf_enabled": False,
    "waf_rate_limit": 500,
    "removal_policy": "destroy",
    "nag_checks": False,
    "source_owner": "example-owner",
    "source_repo": "example-site",
    "source_branch": "main",
    "connection_arn": "arn:aws:codestar-connections:us-east-1:123456789012:connection/example",
    "approval_emails": [],
}

ACCOUNT = "123456789012"


@pytest.fixture
def site_context():
    return copy.deepcopy(SITE_CONTEXT)


@pytest.fixture
def make_app(site_context):
    """
    returns a factory building an App with the site context block, optionally changed
    """
    def _make_app(extra_context=None, **overrides):
        block = {**site_context, **overrides}
        return App(context={"staticsite": block, **(extra_context or {})})

    return _make_app


@pytest.fixture
def us_east_1():
    return Environment(account=ACCOUNT, region="us-east-1")


@pytest.fixture
def eu_west_1():
    return Environment(account=ACCOUNT, region="eu-west-1")


@pytest.fixture
def make_env():
    def _make_env(region):
        return Environment(account=ACCOUNT, region=region)

    return _make_env
