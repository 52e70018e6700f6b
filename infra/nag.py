from aws_cdk import Aspects, Stack
from cdk_nag import AwsSolutionsChecks, NagPackSuppression, NagSuppressions
from constructs import Construct

SITE_SUPPRESSIONS = [
    NagPackSuppression(id="AwsSolutions-S1", reason="Server access logs are not kept for the example site buckets."),
    NagPackSuppression(id="AwsSolutions-CFR1", reason="The site is served without geo restrictions."),
    NagPackSuppression(id="AwsSolutions-CFR2", reason="The web ACL is optional and controlled by waf_enabled."),
    NagPackSuppression(id="AwsSolutions-CFR3", reason="CloudFront access logging is not enabled for the example."),
    NagPackSuppression(id="AwsSolutions-CFR7", reason="Origins use an origin access identity so the pipeline "
                                                       "can switch between them by id."),
    NagPackSuppression(id="AwsSolutions-IAM4", reason="CDK provided custom resources use the AWS managed "
                                                      "Lambda execution policy."),
    NagPackSuppression(id="AwsSolutions-IAM5", reason="Bucket auto delete and certificate custom resources "
                                                      "need object and record wildcards."),
    NagPackSuppression(id="AwsSolutions-L1", reason="Custom resource runtimes are managed by the CDK."),
]

PIPELINE_SUPPRESSIONS = [
    NagPackSuppression(id="AwsSolutions-IAM5", reason="CodePipeline and CodeBuild roles need wildcards on the "
                                                      "artifact bucket and log groups."),
    NagPackSuppression(id="AwsSolutions-CB4", reason="Build projects use the AWS managed CodeBuild key."),
    NagPackSuppression(id="AwsSolutions-S1", reason="The artifact bucket does not keep access logs."),
    NagPackSuppression(id="AwsSolutions-SNS2", reason="Approval notifications carry no sensitive data."),
    NagPackSuppression(id="AwsSolutions-SNS3", reason="Approval notifications carry no sensitive data."),
]


def add_checks(scope: Construct) -> None:
    Aspects.of(scope).add(AwsSolutionsChecks(verbose=True))


def suppress_site_findings(stack: Stack) -> None:
    NagSuppressions.add_stack_suppressions(stack, SITE_SUPPRESSIONS)


def suppress_pipeline_findings(stack: Stack) -> None:
    NagSuppressions.add_stack_suppressions(stack, PIPELINE_SUPPRESSIONS)
