"""Shared fixtures for sitedeploy tests.

moto's ``mock_aws`` backs S3, CloudFront and Route53. CloudFormation and ACM
lifecycles (in-progress states, validation, failures) are driven by the
hand-written fakes in ``fakes.py`` instead.
"""

import os

import boto3
import pytest
from moto import mock_aws

from sitedeploy.config import DeploymentSpec
from sitedeploy.deploy import AwsClients

from .fakes import FakeAcm, FakeCloudFormation, FakeCloudFront, FakeDnsProvider


@pytest.fixture(autouse=True)
def mock_aws_env():
    """Activate moto's mock_aws context for every test."""
    # Dummy credentials so boto3 never reaches real AWS
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"

    with mock_aws():
        yield


@pytest.fixture
def aws_region():
    return "us-east-1"


@pytest.fixture
def aws_session(aws_region):
    return boto3.Session(
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        aws_session_token="testing",
        region_name=aws_region,
    )


@pytest.fixture
def s3(aws_session, aws_region):
    return aws_session.client("s3", region_name=aws_region)


@pytest.fixture
def sleeps():
    """A recording stand-in for time.sleep."""
    return []


@pytest.fixture
def sleep(sleeps):
    return sleeps.append


@pytest.fixture
def provider():
    return FakeDnsProvider()


@pytest.fixture
def cfn():
    return FakeCloudFormation()


@pytest.fixture
def acm():
    return FakeAcm()


@pytest.fixture
def cloudfront():
    return FakeCloudFront()


@pytest.fixture
def clients(cfn, s3, cloudfront, acm):
    return AwsClients(cloudformation=cfn, s3=s3, cloudfront=cloudfront, acm=acm)


@pytest.fixture
def apex_spec():
    return DeploymentSpec(site_name="blog", domain="example.com")


@pytest.fixture
def subdomain_spec():
    return DeploymentSpec(site_name="docs", domain="docs.example.com")
