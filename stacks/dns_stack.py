from aws_cdk import Stack, Fn
from aws_cdk import aws_route53 as route53
from aws_cdk import aws_certificatemanager as acm
from aws_cdk import aws_ssm as ssm
from aws_cdk import CfnOutput
from constructs import Construct
from config.base_config import PipelineConfig


class DnsStack(Stack):
    """
    Public hosted zone and wildcard certificate shared by every stage.

    Stages cannot reference resources of another stage, so the zone id and
    the certificate ARN are published as SSM parameters and resolved by the
    stage stacks at deploy time.
    """

    def __init__(self,
                 scope: Construct,
                 construct_id: str,
                 config: PipelineConfig,
                 **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.config = config
        self.domain = config.dns.domain
        self.zone = self._create_hosted_zone()
        self.cert = self._create_certificate()
        self._publish_parameters()
        # Global tags for the stack
        self.config.add_stack_global_tags(self)

        CfnOutput(
            self, "NameServers",
            value=Fn.join(", ", self.zone.hosted_zone_name_servers),
            description="Name servers to delegate the domain to"
        )

    def _create_hosted_zone(self) -> route53.PublicHostedZone:
        return route53.PublicHostedZone(
            self, "HostedZone",
            zone_name=self.domain
        )

    def _create_certificate(self) -> acm.Certificate:
        # api.<domain> and <env>.<domain> use the first wildcard, <env>.api.<domain> the second
        return acm.Certificate(
            self, "Certificate",
            domain_name=self.domain,
            subject_alternative_names=[f"*.{self.domain}", f"*.api.{self.domain}"],
            validation=acm.CertificateValidation.from_dns(self.zone)
        )

    def _publish_parameters(self):
        ssm.StringParameter(
            self, "ZoneIdParameter",
            parameter_name=self.config.zone_id_parameter,
            string_value=self.zone.hosted_zone_id
        )
        ssm.StringParameter(
            self, "CertificateArnParameter",
            parameter_name=self.config.certificate_arn_parameter,
            string_value=self.cert.certificate_arn
        )
