from aws_cdk import Stack, RemovalPolicy, Duration
from aws_cdk import aws_apigateway as apigateway
from aws_cdk import aws_certificatemanager as acm
from aws_cdk import aws_dynamodb as dynamodb
from aws_cdk import aws_ecr as ecr
from aws_cdk import aws_lambda as lambda_
from aws_cdk import aws_route53 as route53
from aws_cdk import aws_route53_targets as targets
from aws_cdk import aws_ssm as ssm
from aws_cdk import CfnOutput
from constructs import Construct
from config.base_config import InfrastructureConfig


class BackendStack(Stack):
    def __init__(self,
                 scope: Construct,
                 construct_id: str,
                 repository_name: str,
                 tag_parameter: str,
                 config: InfrastructureConfig,
                 **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.config = config
        self.repository_name = repository_name
        self.tag_parameter = tag_parameter

        self.match_table = self._create_match_table()
        self.api_handler = self._create_api_handler()
        self.gateway = self._create_api_gateway()
        self.url = self.gateway.url
        self._create_dns_record()
        self.config.add_stack_global_tags(self)

        CfnOutput(
            self, "ApiUrl",
            value=f"https://{self.config.api_domain_name}/",
            description="Public URL of the API"
        )

    def _create_match_table(self) -> dynamodb.Table:
        return dynamodb.Table(
            self, "MatchTable",
            partition_key=dynamodb.Attribute(name="match", type=dynamodb.AttributeType.STRING),
            sort_key=dynamodb.Attribute(name="move", type=dynamodb.AttributeType.NUMBER),
            billing_mode=dynamodb.BillingMode.PAY_PER_REQUEST,
            removal_policy=RemovalPolicy.RETAIN
        )

    def _create_api_handler(self) -> lambda_.DockerImageFunction:
        repository = ecr.Repository.from_repository_name(
            self, "ApiHandlerRepository",
            repository_name=self.repository_name
        )

        # resolved by CloudFormation when the stack is deployed
        image_tag = ssm.StringParameter.value_for_string_parameter(self, self.tag_parameter)

        handler = lambda_.DockerImageFunction(
            self, "ApiHandler",
            description="API Handler",
            code=lambda_.DockerImageCode.from_ecr(repository, tag_or_digest=image_tag),
            memory_size=self.config.backend.memory_size,
            timeout=Duration.seconds(self.config.backend.timeout_seconds),
            environment={
                "STAGE": self.config.env_name_str,
                "MATCH_TABLE_NAME": self.match_table.table_name,
            }
        )
        self.match_table.grant_read_write_data(handler)
        return handler

    def _create_api_gateway(self) -> apigateway.LambdaRestApi:
        certificate = acm.Certificate.from_certificate_arn(
            self, "Certificate",
            ssm.StringParameter.value_for_string_parameter(self, self.config.certificate_arn_parameter)
        )

        return apigateway.LambdaRestApi(
            self, "ApiGateway",
            rest_api_name=self.config.prefix("api"),
            handler=self.api_handler,
            endpoint_types=[apigateway.EndpointType.REGIONAL],
            domain_name=apigateway.DomainNameOptions(
                certificate=certificate,
                domain_name=self.config.api_domain_name,
                endpoint_type=apigateway.EndpointType.REGIONAL
            )
        )

    def _create_dns_record(self) -> route53.ARecord:
        zone = route53.HostedZone.from_hosted_zone_attributes(
            self, "HostedZone",
            hosted_zone_id=ssm.StringParameter.value_for_string_parameter(self, self.config.zone_id_parameter),
            zone_name=self.config.dns.domain
        )

        return route53.ARecord(
            self, "ApiARecord",
            zone=zone,
            record_name=self.config.api_domain_name,
            target=route53.RecordTarget.from_alias(targets.ApiGateway(self.gateway))
        )
