import logging

from aws_cdk import CfnOutput, Duration, RemovalPolicy, Stack, Token
from aws_cdk.aws_certificatemanager import Certificate, CertificateValidation, DnsValidatedCertificate, \
    ICertificate
from aws_cdk.aws_cloudfront import OriginAccessIdentity, Distribution, HttpVersion, PriceClass, \
    SecurityPolicyProtocol, BehaviorOptions, AllowedMethods, ViewerProtocolPolicy, ErrorResponse, \
    CfnDistribution
from aws_cdk.aws_cloudfront_origins import S3BucketOrigin
from aws_cdk.aws_iam import PolicyStatement, CanonicalUserPrincipal
from aws_cdk.aws_route53 import HostedZone, IHostedZone, ARecord, RecordTarget
from aws_cdk.aws_route53_targets import CloudFrontTarget
from aws_cdk.aws_s3 import Bucket, BlockPublicAccess, BucketEncryption
from constructs import Construct

from .utilities import CLOUDFRONT_REGION, check_waf_region, get_removal_policy, get_site_domain
from .waf_construct import SiteWebAcl

logger = logging.getLogger(__name__)

BLUE_ORIGIN_ID = "blueOrigin"
GREEN_ORIGIN_ID = "greenOrigin"
SITE_ORIGIN_ID = "siteOrigin"

ERROR_DOCUMENT = "/error.html"


class StaticSiteStack(Stack):
    """
    S3 + CloudFront static site behind a DNS validated certificate.

    With ``blue_green`` set the stack declares a blue and a green bucket. The
    default cache behaviour always targets the blue origin; the green origin
    is only registered on the distribution so the pipeline can switch to it.
    """

    def __init__(self, scope: Construct, construct_id: str, context: dict, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.context = context
        self.site_domain: str = get_site_domain(context)
        self.blue_green: bool = bool(context["blue_green"])
        self.removal_policy: RemovalPolicy = get_removal_policy(context["removal_policy"])
        check_waf_region(context, self.region)

        self.cfront_oai = self.create_origin_access_identity()

        if self.blue_green:
            self.blue_bucket = self.create_bucket("blue")
            self.green_bucket = self.create_bucket("green")
            self.site_bucket = self.blue_bucket
            default_origin_id = BLUE_ORIGIN_ID
        else:
            self.blue_bucket = None
            self.green_bucket = None
            self.site_bucket = self.create_bucket("site")
            default_origin_id = SITE_ORIGIN_ID

        # the default origin grants its own bucket; green is only wired through an override
        if self.blue_green:
            self.grant_origin_read(self.green_bucket)

        self.hosted_zone = self.import_hosted_zone()
        self.certificate = self.create_certificate(self.site_domain, self.hosted_zone)

        self.web_acl = None
        if context["waf_enabled"]:
            self.web_acl = SiteWebAcl(self, "SiteWebAcl", rate_limit=int(context["waf_rate_limit"]))

        self.cfront_dist = self.create_distribution(default_origin_id)
        if self.blue_green:
            self.register_green_origin(self.green_bucket)

        self.create_alias_record(self.cfront_dist)
        self.create_outputs()

    def create_bucket(self, colour: str) -> Bucket:
        """
        returns a private bucket for one environment of the site
        """
        return Bucket(
            self,
            f"{colour.capitalize()}S3Bucket",
            bucket_name=f"{colour}-{self.site_domain}",
            encryption=BucketEncryption.S3_MANAGED,
            enforce_ssl=True,
            block_public_access=BlockPublicAccess.BLOCK_ALL,
            public_read_access=False,
            versioned=False,
            removal_policy=self.removal_policy,
            auto_delete_objects=self.removal_policy == RemovalPolicy.DESTROY,
        )

    def create_origin_access_identity(self) -> OriginAccessIdentity:
        return OriginAccessIdentity(
            self,
            "OAI",
            comment=f"OAI for {self.site_domain}"
        )

    def grant_origin_read(self, bucket: Bucket) -> None:
        bucket.add_to_resource_policy(
            PolicyStatement(
                actions=["s3:GetObject"],
                resources=[bucket.arn_for_objects("*")],
                principals=[
                    CanonicalUserPrincipal(
                        self.cfront_oai.cloud_front_origin_access_identity_s3_canonical_user_id
                    )
                ]
            )
        )

    def import_hosted_zone(self) -> IHostedZone:
        return HostedZone.from_hosted_zone_attributes(
            self,
            "HostedZone",
            hosted_zone_id=self.context["hosted_zone_id"],
            zone_name=self.context["zone_name"],
        )

    def create_certificate(self, site_domain: str, hosted_zone: IHostedZone) -> ICertificate:
        """
        returns a DNS validated certificate for the site domain in us-east-1

        CloudFront only accepts certificates from us-east-1, so a stack
        anywhere else gets a cross region certificate.
        """
        if not Token.is_unresolved(self.region) and self.region == CLOUDFRONT_REGION:
            logger.info("issuing certificate for %s in the stack region", site_domain)
            return Certificate(
                self,
                "SiteCertificate",
                domain_name=site_domain,
                validation=CertificateValidation.from_dns(hosted_zone),
            )

        logger.info("issuing certificate for %s in %s from %s", site_domain, CLOUDFRONT_REGION, self.region)
        return DnsValidatedCertificate(
            self,
            "SiteCertificate",
            domain_name=site_domain,
            hosted_zone=hosted_zone,
            region=CLOUDFRONT_REGION,
        )

    def create_distribution(self, origin_id: str) -> Distribution:
        return Distribution(
            self,
            "SiteDistribution",
            enabled=True,
            comment=f"Static site hosting for {self.site_domain}",
            http_version=HttpVersion.HTTP2,
            default_root_object="index.html",
            price_class=PriceClass.PRICE_CLASS_100,
            domain_names=[self.site_domain],
            minimum_protocol_version=SecurityPolicyProtocol.TLS_V1_2_2021,
            certificate=self.certificate,
            web_acl_id=self.web_acl.arn if self.web_acl else None,
            default_behavior=self.get_default_behavior(self.site_bucket, origin_id),
            error_responses=[self.get_error_response(403), self.get_error_response(404)],
        )

    def get_default_behavior(self, bucket: Bucket, origin_id: str) -> BehaviorOptions:
        return BehaviorOptions(
            origin=S3BucketOrigin.with_origin_access_identity(
                bucket,
                origin_access_identity=self.cfront_oai,
                origin_id=origin_id,
            ),
            allowed_methods=AllowedMethods.ALLOW_GET_HEAD,
            viewer_protocol_policy=ViewerProtocolPolicy.REDIRECT_TO_HTTPS,
            compress=True,
        )

    @staticmethod
    def get_error_response(status: int) -> ErrorResponse:
        # private buckets answer 403 for missing keys
        return ErrorResponse(
            http_status=status,
            response_http_status=status,
            response_page_path=ERROR_DOCUMENT,
            ttl=Duration.minutes(5),
        )

    def register_green_origin(self, bucket: Bucket) -> None:
        """
        Adds the green bucket to the distribution's origins without a behaviour
        pointing at it. Promotion rewrites the default behaviour's target to
        GREEN_ORIGIN_ID outside of CloudFormation.
        """
        logger.info("registering %s as origin %s", bucket.node.id, GREEN_ORIGIN_ID)
        cfn_distribution: CfnDistribution = self.cfront_dist.node.default_child
        # index 0 is the default behaviour's origin
        cfn_distribution.add_property_override(
            "DistributionConfig.Origins.1",
            {
                "Id": GREEN_ORIGIN_ID,
                "DomainName": bucket.bucket_regional_domain_name,
                "S3OriginConfig": {
                    "OriginAccessIdentity":
                        f"origin-access-identity/cloudfront/{self.cfront_oai.origin_access_identity_id}",
                },
            },
        )

    def create_alias_record(self, distribution: Distribution) -> ARecord:
        return ARecord(
            self,
            "SiteARecord",
            record_name=self.site_domain,
            zone=self.hosted_zone,
            target=RecordTarget.from_alias(CloudFrontTarget(distribution)),
        )

    def create_outputs(self) -> None:
        CfnOutput(self, "DistributionDomainName", value=self.cfront_dist.distribution_domain_name)
        CfnOutput(self, "DistributionId", value=self.cfront_dist.distribution_id)
        if self.blue_green:
            CfnOutput(self, "BlueBucketName", value=self.blue_bucket.bucket_name)
            CfnOutput(self, "GreenBucketName", value=self.green_bucket.bucket_name)
        else:
            CfnOutput(self, "SiteBucketName", value=self.site_bucket.bucket_name)
        CfnOutput(self, "SiteUrl", value=f"https://{self.site_domain}")
