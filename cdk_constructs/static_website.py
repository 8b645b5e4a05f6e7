from typing import Optional
from aws_cdk import RemovalPolicy
from aws_cdk import aws_s3 as s3
from aws_cdk import aws_cloudfront as cloudfront
from aws_cdk import aws_cloudfront_origins as origins
from aws_cdk import aws_certificatemanager as acm
from aws_cdk import Tags
from constructs import Construct
from config.base_config import InfrastructureConfig


class StaticWebsite(Construct):
    def __init__(self,
                 scope: Construct,
                 id: str,
                 config: InfrastructureConfig,
                 domain_name: str,
                 certificate: Optional[acm.ICertificate] = None) -> None:
        super().__init__(scope, id)
        website = config.frontend.website

        # Create S3 bucket for static website hosting
        self.bucket = s3.Bucket(
            self, "StaticAppBucket",
            bucket_name=config.prefix("frontend-bucket"),
            removal_policy=RemovalPolicy.DESTROY,
            auto_delete_objects=True,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            encryption=s3.BucketEncryption.S3_MANAGED
        )

        self.oac = cloudfront.S3OriginAccessControl(
            self, "OriginAccessControl",
            signing=cloudfront.Signing.SIGV4_NO_OVERRIDE
        )

        # single page app: unknown paths fall back to the error (or index) document
        fallback = "/" + (website.error or website.index)
        error_responses = [
            cloudfront.ErrorResponse(
                http_status=status,
                response_http_status=200,
                response_page_path=fallback
            )
            for status in (403, 404)
        ]

        self.distribution = cloudfront.Distribution(
            self, "AppDistribution",
            comment=config.prefix("frontend-distribution"),
            default_behavior=cloudfront.BehaviorOptions(
                origin=origins.S3BucketOrigin.with_origin_access_control(
                    self.bucket,
                    origin_access_control=self.oac
                ),
                viewer_protocol_policy=cloudfront.ViewerProtocolPolicy.REDIRECT_TO_HTTPS,
                cache_policy=cloudfront.CachePolicy.CACHING_OPTIMIZED,
                compress=True
            ),
            default_root_object=website.index,
            error_responses=error_responses,
            price_class=cloudfront.PriceClass.PRICE_CLASS_100,
            domain_names=[domain_name] if certificate else None,
            certificate=certificate
        )

        Tags.of(self.distribution).add("Name", config.prefix("frontend-distribution"))
