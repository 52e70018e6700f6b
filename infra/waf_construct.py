import logging

from aws_cdk.aws_wafv2 import CfnWebACL
from constructs import Construct

logger = logging.getLogger(__name__)

# evaluated in priority order, the first blocking match wins
MANAGED_RULE_GROUPS = (
    (1, "AWSManagedRulesCommonRuleSet", "CommonRuleSetMetric"),
    (2, "AWSManagedRulesAmazonIpReputationList", "IpReputationListMetric"),
)
RATE_LIMIT_PRIORITY = 3


class SiteWebAcl(Construct):
    """
    returns a CLOUDFRONT scoped web ACL with managed rule groups and a rate limit
    """

    def __init__(self, scope: Construct, construct_id: str, rate_limit: int, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        rules = [self.create_managed_rule(priority, name, metric) for priority, name, metric in MANAGED_RULE_GROUPS]
        rules.append(self.create_rate_limit_rule(rate_limit))
        logger.info("web ACL with %d rules, rate limit %d requests per 5 minutes", len(rules), rate_limit)

        self.web_acl = CfnWebACL(
            self,
            "WebACL",
            name="SiteWebACL",
            scope="CLOUDFRONT",
            default_action=CfnWebACL.DefaultActionProperty(allow={}),
            visibility_config=self.get_visibility_config("webACLMetric"),
            rules=rules,
        )

    @property
    def arn(self) -> str:
        return self.web_acl.attr_arn

    @staticmethod
    def get_visibility_config(metric_name: str) -> CfnWebACL.VisibilityConfigProperty:
        return CfnWebACL.VisibilityConfigProperty(
            cloud_watch_metrics_enabled=True,
            metric_name=metric_name,
            sampled_requests_enabled=True,
        )

    def create_managed_rule(self, priority: int, name: str, metric_name: str) -> CfnWebACL.RuleProperty:
        """
        returns a rule evaluating an AWS managed rule group with its own actions
        """
        return CfnWebACL.RuleProperty(
            name=name,
            priority=priority,
            override_action=CfnWebACL.OverrideActionProperty(none={}),
            statement=CfnWebACL.StatementProperty(
                managed_rule_group_statement=CfnWebACL.ManagedRuleGroupStatementProperty(
                    vendor_name="AWS",
                    name=name,
                )
            ),
            visibility_config=self.get_visibility_config(metric_name),
        )

    def create_rate_limit_rule(self, rate_limit: int) -> CfnWebACL.RuleProperty:
        """
        returns a rule blocking any single IP above rate_limit requests
        """
        return CfnWebACL.RuleProperty(
            name="RateLimitRule",
            priority=RATE_LIMIT_PRIORITY,
            action=CfnWebACL.RuleActionProperty(block={}),
            statement=CfnWebACL.StatementProperty(
                rate_based_statement=CfnWebACL.RateBasedStatementProperty(
                    limit=rate_limit,
                    aggregate_key_type="IP",
                )
            ),
            visibility_config=self.get_visibility_config("RateLimitRuleMetric"),
        )
