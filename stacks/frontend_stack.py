from aws_cdk import Stack
from aws_cdk import aws_certificatemanager as acm
from aws_cdk import aws_route53 as route53
from aws_cdk import aws_route53_targets as targets
from aws_cdk import aws_ssm as ssm
from aws_cdk import CfnOutput
from constructs import Construct
from cdk_constructs.static_node_pipeline import StaticNodePipeline
from cdk_constructs.static_website import StaticWebsite
from config.base_config import InfrastructureConfig


class FrontendStack(Stack):
    def __init__(self,
                 scope: Construct,
                 construct_id: str,
                 config: InfrastructureConfig,
                 **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.config = config

        certificate = acm.Certificate.from_certificate_arn(
            self, "Certificate",
            ssm.StringParameter.value_for_string_parameter(self, self.config.certificate_arn_parameter)
        )

        # Create S3 bucket and CloudFront distribution
        self.static_website = StaticWebsite(
            self, "StaticWebsite",
            config=self.config,
            domain_name=self.config.frontend_domain_name,
            certificate=certificate
        )

        self.dns_record = self._create_dns_record()

        self.pipeline = StaticNodePipeline(
            self, "AppPipeline",
            config=self.config,
            target=self.static_website.bucket,
            distribution=self.static_website.distribution
        )

        # Global tags for the stack
        self.config.add_stack_global_tags(self)

        CfnOutput(
            self, "FrontendDomainName",
            value=self.config.frontend_domain_name,
            description="Frontend domain name"
        )

    def _create_dns_record(self) -> route53.ARecord:
        hosted_zone = route53.HostedZone.from_hosted_zone_attributes(
            self, "HostedZone",
            hosted_zone_id=ssm.StringParameter.value_for_string_parameter(self, self.config.zone_id_parameter),
            zone_name=self.config.dns.domain
        )

        # Create A record for the frontend domain (CloudFront)
        return route53.ARecord(
            self, "FrontendDnsRecord",
            zone=hosted_zone,
            record_name=self.config.frontend_domain_name,
            target=route53.RecordTarget.from_alias(
                targets.CloudFrontTarget(self.static_website.distribution)
            )
        )
