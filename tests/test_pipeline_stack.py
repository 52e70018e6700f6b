import json

import pytest
from aws_cdk import App
from aws_cdk.assertions import Template

from infra.pipeline_stack import PipelineStack
from infra.utilities import load_context

STAGES = ["Source", "Build", "DeployBlue", "DeployGreen", "PromoteToGreen"]


@pytest.fixture
def template(make_app, us_east_1):
    app = make_app(approval_emails=["releases@example.com"])
    stack = PipelineStack(
        app, "PipelineStack", load_context(app, "staticsite"),
        blue_bucket_name="blue-www.example.com",
        green_bucket_name="green-www.example.com",
        distribution_id="E2EXAMPLE123",
        site_stack_name="StaticSiteStack",
        env=us_east_1,
    )
    return Template.from_stack(stack)


def stages(template: Template) -> dict:
    pipeline = next(iter(template.find_resources("AWS::CodePipeline::Pipeline").values()))
    return {stage["Name"]: stage["Actions"] for stage in pipeline["Properties"]["Stages"]}


def project(template: Template, name: str) -> dict:
    projects = template.find_resources("AWS::CodeBuild::Project", {"Properties": {"Name": name}})
    assert len(projects) == 1
    return next(iter(projects.values()))["Properties"]


def environment_variables(properties: dict) -> dict:
    return {variable["Name"]: variable["Value"] for variable in properties["Environment"]["EnvironmentVariables"]}


def test_stage_order(template):
    assert list(stages(template)) == STAGES


def test_source_stage_uses_connection(template):
    (action,) = stages(template)["Source"]

    assert action["ActionTypeId"]["Provider"] == "CodeStarSourceConnection"
    assert action["Configuration"]["FullRepositoryId"] == "example-owner/example-site"
    assert action["Configuration"]["BranchName"] == "main"
    assert [artifact["Name"] for artifact in action["OutputArtifacts"]] == ["SourceOutput"]


def test_build_stage_outputs_both_artifacts(template):
    (action,) = stages(template)["Build"]

    assert [artifact["Name"] for artifact in action["OutputArtifacts"]] == [
        "CdkOutputArtifact",
        "SiteOutputArtifact",
    ]
    build_spec = json.loads(project(template, "PipelineBuildProject")["Source"]["BuildSpec"])
    assert set(build_spec["artifacts"]["secondary-artifacts"]) == {"CdkOutputArtifact", "SiteOutputArtifact"}


@pytest.mark.parametrize("stage, expected", [
    ("DeployBlue", ["DeployInfrastructure", "DeployToBlueBucket", "InvalidateCloudFrontBlue"]),
    ("DeployGreen", ["ApproveGreenDeployment", "DeployToGreenBucket", "InvalidateCloudFrontGreen"]),
    ("PromoteToGreen", ["ApprovePromoteToGreen", "UpdateCloudFrontOriginToGreen",
                        "InvalidateCloudFrontPostPromotion"]),
])
def test_run_order_strictly_increases(template, stage, expected):
    actions = stages(template)[stage]

    assert [action["Name"] for action in actions] == expected
    run_orders = [action["RunOrder"] for action in actions]
    assert run_orders == sorted(set(run_orders))


@pytest.mark.parametrize("stage", ["DeployGreen", "PromoteToGreen"])
def test_approval_gates_come_first(template, stage):
    actions = sorted(stages(template)[stage], key=lambda action: action["RunOrder"])

    assert actions[0]["ActionTypeId"]["Category"] == "Approval"
    assert all(action["ActionTypeId"]["Category"] != "Approval" for action in actions[1:])


def test_blue_deploy_targets_site_stack_template(template):
    deploy_infra, deploy_blue, _ = stages(template)["DeployBlue"]

    assert deploy_infra["Configuration"]["StackName"] == "StaticSiteStack"
    assert deploy_infra["Configuration"]["TemplatePath"] == "CdkOutputArtifact::StaticSiteStack.template.json"
    assert deploy_blue["Configuration"]["BucketName"] == "blue-www.example.com"
    assert deploy_blue["Configuration"]["Extract"] == "true"


def test_green_deploy_targets_green_bucket(template):
    _, deploy_green, _ = stages(template)["DeployGreen"]

    assert deploy_green["Configuration"]["BucketName"] == "green-www.example.com"


def test_promotion_project(template):
    properties = project(template, "UpdateCloudFrontOriginProject")

    assert environment_variables(properties) == {
        "DISTRIBUTION_ID": "E2EXAMPLE123",
        "GREEN_ORIGIN_ID": "greenOrigin",
    }
    commands = json.loads(properties["Source"]["BuildSpec"])["phases"]["build"]["commands"]
    assert sum("get-distribution-config" in command for command in commands) == 1
    assert '--if-match "$ETAG"' in commands[-1]


def test_invalidation_projects(template):
    for name in ["InvalidateCloudFrontBlue", "InvalidateCloudFrontGreen", "InvalidateCloudFrontPostPromotion"]:
        properties = project(template, f"{name}Project")
        assert environment_variables(properties) == {"DISTRIBUTION_ID": "E2EXAMPLE123"}


def test_roles_are_scoped_to_cloudfront_actions(template):
    inline_actions = {}
    for role in template.find_resources("AWS::IAM::Role").values():
        for policy in role["Properties"].get("Policies", []):
            for statement in policy["PolicyDocument"]["Statement"]:
                action = statement["Action"]
                inline_actions[policy["PolicyName"]] = action if isinstance(action, list) else [action]

    assert inline_actions["CloudFrontInvalidationPolicy"] == ["cloudfront:CreateInvalidation"]
    assert inline_actions["CloudFrontUpdatePolicy"] == [
        "cloudfront:GetDistributionConfig",
        "cloudfront:UpdateDistribution",
    ]


def test_approval_notifications(template):
    approvals = [
        action for actions in stages(template).values() for action in actions
        if action["ActionTypeId"]["Category"] == "Approval"
    ]

    assert len(approvals) == 2
    assert all("NotificationArn" in action["Configuration"] for action in approvals)
    assert template.find_resources("AWS::SNS::Subscription")


def test_pipeline_without_approval_emails(make_app, us_east_1):
    app: App = make_app()
    stack = PipelineStack(
        app, "PipelineStack", load_context(app, "staticsite"),
        blue_bucket_name="blue-www.example.com",
        green_bucket_name="green-www.example.com",
        distribution_id="E2EXAMPLE123",
        site_stack_name="StaticSiteStack",
        env=us_east_1,
    )

    assert Template.from_stack(stack).find_resources("AWS::SNS::Topic") == {}
