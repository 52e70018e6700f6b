import logging

from aws_cdk import Aws, Stack
from aws_cdk.aws_codebuild import PipelineProject, BuildSpec, BuildEnvironment, LinuxBuildImage, \
    BuildEnvironmentVariable
from aws_cdk.aws_codepipeline import Pipeline, Artifact, StageProps
from aws_cdk.aws_codepipeline_actions import CodeStarConnectionsSourceAction, CodeBuildAction, \
    CloudFormationCreateUpdateStackAction, S3DeployAction, ManualApprovalAction
from aws_cdk.aws_iam import Role, ServicePrincipal, PolicyDocument, PolicyStatement, Effect
from aws_cdk.aws_s3 import Bucket, IBucket
from constructs import Construct

from .buildspecs import CDK_OUTPUT_ARTIFACT, SITE_OUTPUT_ARTIFACT, synth_build_spec, \
    invalidation_build_spec, promotion_build_spec
from .s3_cloudfront import GREEN_ORIGIN_ID

logger = logging.getLogger(__name__)

BUILD_IMAGE = LinuxBuildImage.STANDARD_7_0


class PipelineStack(Stack):
    """
    Blue/green release pipeline for the static site.

    Source -> Build -> DeployBlue -> DeployGreen (approval) -> PromoteToGreen (approval).
    Within a stage the actions run one after another in run_order.
    """

    def __init__(self, scope: Construct, construct_id: str, context: dict,
                 blue_bucket_name: str, green_bucket_name: str, distribution_id: str,
                 site_stack_name: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.context = context
        self.distribution_id = distribution_id
        self.distribution_arn = f"arn:{Aws.PARTITION}:cloudfront::{self.account}:distribution/{distribution_id}"

        self.invalidation_role = self.create_invalidation_role()
        self.update_origin_role = self.create_update_origin_role()

        self.source_output = Artifact("SourceOutput")
        self.cdk_output = Artifact(CDK_OUTPUT_ARTIFACT)
        self.site_output = Artifact(SITE_OUTPUT_ARTIFACT)

        blue_bucket = Bucket.from_bucket_name(self, "ImportedBlueBucket", blue_bucket_name)
        green_bucket = Bucket.from_bucket_name(self, "ImportedGreenBucket", green_bucket_name)

        self.pipeline = Pipeline(
            self,
            "StaticSitePipeline",
            pipeline_name="StaticSiteBlueGreenPipeline",
            cross_account_keys=False,
            stages=[
                StageProps(stage_name="Source", actions=[self.create_source_action()]),
                StageProps(stage_name="Build", actions=[self.create_build_action()]),
                StageProps(stage_name="DeployBlue", actions=self.deploy_blue_actions(blue_bucket, site_stack_name)),
                StageProps(stage_name="DeployGreen", actions=self.deploy_green_actions(green_bucket)),
                StageProps(stage_name="PromoteToGreen", actions=self.promote_to_green_actions()),
            ],
        )
        logger.info("release pipeline deploys stack %s", site_stack_name)

    def create_invalidation_role(self) -> Role:
        """
        returns the role shared by the cache invalidation projects
        """
        return Role(
            self,
            "InvalidateCloudFrontRole",
            assumed_by=ServicePrincipal("codebuild.amazonaws.com"),
            inline_policies={
                "CloudFrontInvalidationPolicy": PolicyDocument(
                    statements=[
                        PolicyStatement(
                            effect=Effect.ALLOW,
                            actions=["cloudfront:CreateInvalidation"],
                            resources=[self.distribution_arn],
                        )
                    ]
                )
            },
        )

    def create_update_origin_role(self) -> Role:
        """
        returns the role allowed to read and rewrite the distribution config
        """
        return Role(
            self,
            "UpdateCloudFrontOriginRole",
            assumed_by=ServicePrincipal("codebuild.amazonaws.com"),
            inline_policies={
                "CloudFrontUpdatePolicy": PolicyDocument(
                    statements=[
                        PolicyStatement(
                            effect=Effect.ALLOW,
                            actions=[
                                "cloudfront:GetDistributionConfig",
                                "cloudfront:UpdateDistribution",
                            ],
                            resources=[self.distribution_arn],
                        )
                    ]
                )
            },
        )

    def create_source_action(self) -> CodeStarConnectionsSourceAction:
        return CodeStarConnectionsSourceAction(
            action_name="GitHub_Source",
            owner=self.context["source_owner"],
            repo=self.context["source_repo"],
            branch=self.context["source_branch"],
            connection_arn=self.context["connection_arn"],
            output=self.source_output,
        )

    def create_build_action(self) -> CodeBuildAction:
        build_project = PipelineProject(
            self,
            "CdkBuildProject",
            project_name="PipelineBuildProject",
            environment=BuildEnvironment(build_image=BUILD_IMAGE),
            build_spec=BuildSpec.from_object(synth_build_spec()),
        )
        return CodeBuildAction(
            action_name="CDK_Build",
            project=build_project,
            input=self.source_output,
            outputs=[self.cdk_output, self.site_output],
        )

    def create_invalidation_action(self, name: str, run_order: int) -> CodeBuildAction:
        """
        returns an action invalidating every cached path of the distribution
        """
        project = PipelineProject(
            self,
            f"{name}Project",
            project_name=f"{name}Project",
            environment=BuildEnvironment(build_image=BUILD_IMAGE),
            environment_variables={
                "DISTRIBUTION_ID": BuildEnvironmentVariable(value=self.distribution_id),
            },
            build_spec=BuildSpec.from_object(invalidation_build_spec()),
            role=self.invalidation_role,
        )
        # CodeBuild actions need an input even when the buildspec ignores it
        return CodeBuildAction(
            action_name=name,
            project=project,
            input=self.site_output,
            run_order=run_order,
        )

    def create_approval_action(self, name: str, information: str) -> ManualApprovalAction:
        return ManualApprovalAction(
            action_name=name,
            additional_information=information,
            notify_emails=self.context["approval_emails"] or None,
            run_order=1,
        )

    @staticmethod
    def create_bucket_deploy_action(name: str, bucket: IBucket, site_output: Artifact,
                                    run_order: int) -> S3DeployAction:
        return S3DeployAction(
            action_name=name,
            bucket=bucket,
            input=site_output,
            extract=True,
            run_order=run_order,
        )

    def deploy_blue_actions(self, blue_bucket: IBucket, site_stack_name: str) -> list:
        deploy_infra = CloudFormationCreateUpdateStackAction(
            action_name="DeployInfrastructure",
            stack_name=site_stack_name,
            template_path=self.cdk_output.at_path(f"{site_stack_name}.template.json"),
            admin_permissions=True,
            run_order=1,
        )
        return [
            deploy_infra,
            self.create_bucket_deploy_action("DeployToBlueBucket", blue_bucket, self.site_output, 2),
            self.create_invalidation_action("InvalidateCloudFrontBlue", 3),
        ]

    def deploy_green_actions(self, green_bucket: IBucket) -> list:
        return [
            self.create_approval_action(
                "ApproveGreenDeployment",
                "Publish this build to the green bucket.",
            ),
            self.create_bucket_deploy_action("DeployToGreenBucket", green_bucket, self.site_output, 2),
            self.create_invalidation_action("InvalidateCloudFrontGreen", 3),
        ]

    def promote_to_green_actions(self) -> list:
        update_origin_project = PipelineProject(
            self,
            "UpdateCloudFrontOriginProject",
            project_name="UpdateCloudFrontOriginProject",
            environment=BuildEnvironment(build_image=BUILD_IMAGE),
            environment_variables={
                "DISTRIBUTION_ID": BuildEnvironmentVariable(value=self.distribution_id),
                "GREEN_ORIGIN_ID": BuildEnvironmentVariable(value=GREEN_ORIGIN_ID),
            },
            build_spec=BuildSpec.from_object(promotion_build_spec()),
            role=self.update_origin_role,
        )
        return [
            self.create_approval_action(
                "ApprovePromoteToGreen",
                "Route live traffic to the green origin.",
            ),
            CodeBuildAction(
                action_name="UpdateCloudFrontOriginToGreen",
                project=update_origin_project,
                input=self.cdk_output,
                run_order=2,
            ),
            self.create_invalidation_action("InvalidateCloudFrontPostPromotion", 3),
        ]
