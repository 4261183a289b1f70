"""CloudFormation template for the site stack: bucket, OAC, distribution, bucket policy.

DNS records are deliberately absent; they are reconciled against the DNS
provider after the stack converges.
"""

import json

# Managed-CachingOptimized
CACHING_OPTIMIZED_POLICY_ID = "658327ea-f89d-4fab-a63d-7e88639e58f6"

URL_REWRITE_CODE = """function handler(event) {
  var request = event.request;
  var uri = request.uri;
  if (uri.endsWith('/')) {
    request.uri = uri + 'index.html';
  } else if (!uri.includes('.')) {
    request.uri = uri + '.html';
  }
  return request;
}"""


def _distribution_config(bucket_name: str, aliases, certificate_arn, default_root_object: str, error_document: str) -> dict:
    origin_id = f"S3-{bucket_name}"
    config = {
        "Comment": f"sitedeploy: {bucket_name}",
        "Enabled": True,
        "DefaultRootObject": default_root_object,
        "HttpVersion": "http2and3",
        "IPV6Enabled": True,
        "PriceClass": "PriceClass_100",
        "Origins": [
            {
                "Id": origin_id,
                "DomainName": {"Fn::GetAtt": ["S3Bucket", "RegionalDomainName"]},
                "S3OriginConfig": {"OriginAccessIdentity": ""},
                "OriginAccessControlId": {"Fn::GetAtt": ["OriginAccessControl", "Id"]},
            }
        ],
        "DefaultCacheBehavior": {
            "TargetOriginId": origin_id,
            "ViewerProtocolPolicy": "redirect-to-https",
            "AllowedMethods": ["GET", "HEAD"],
            "CachedMethods": ["GET", "HEAD"],
            "CachePolicyId": CACHING_OPTIMIZED_POLICY_ID,
            "Compress": True,
            "FunctionAssociations": [
                {
                    "EventType": "viewer-request",
                    "FunctionARN": {"Fn::GetAtt": ["UrlRewriteFunction", "FunctionARN"]},
                }
            ],
        },
        "CustomErrorResponses": [
            # The bucket policy grants no s3:ListBucket, so S3 answers 403 for a
            # missing key and every unknown path serves the root object for
            # client-side routing. The 404 page is only reached when the origin
            # itself answers 404.
            {
                "ErrorCode": 403,
                "ResponseCode": 200,
                "ResponsePagePath": f"/{default_root_object}",
                "ErrorCachingMinTTL": 300,
            },
            {
                "ErrorCode": 404,
                "ResponseCode": 404,
                "ResponsePagePath": f"/{error_document}",
                "ErrorCachingMinTTL": 300,
            },
        ],
    }

    if aliases and certificate_arn:
        config["Aliases"] = list(aliases)
        config["ViewerCertificate"] = {
            "AcmCertificateArn": certificate_arn,
            "SslSupportMethod": "sni-only",
            "MinimumProtocolVersion": "TLSv1.2_2021",
        }
    else:
        config["ViewerCertificate"] = {"CloudFrontDefaultCertificate": True}
    return config


def build_site_template(
    bucket_name: str,
    aliases=(),
    certificate_arn: str | None = None,
    default_root_object: str = "index.html",
    error_document: str = "404.html",
) -> dict:
    """Build the stack template for one site.

    Aliases are attached only together with a certificate, since CloudFront
    refuses custom names on its default certificate. Unknown paths fall back
    to ``default_root_object`` with a 200 so single-page apps can route them;
    ``error_document`` only backs genuine 404s from the origin. Outputs
    BucketName, DistributionId and DistributionDomain.
    """
    resources = {
        "S3Bucket": {
            "Type": "AWS::S3::Bucket",
            "Properties": {
                "BucketName": bucket_name,
                # CloudFront is the only reader
                "PublicAccessBlockConfiguration": {
                    "BlockPublicAcls": True,
                    "IgnorePublicAcls": True,
                    "BlockPublicPolicy": True,
                    "RestrictPublicBuckets": True,
                },
            },
        },
        "OriginAccessControl": {
            "Type": "AWS::CloudFront::OriginAccessControl",
            "Properties": {
                "OriginAccessControlConfig": {
                    "Name": f"{bucket_name}-oac",
                    "Description": f"OAC for {bucket_name}",
                    "OriginAccessControlOriginType": "s3",
                    "SigningBehavior": "always",
                    "SigningProtocol": "sigv4",
                }
            },
        },
        "UrlRewriteFunction": {
            "Type": "AWS::CloudFront::Function",
            "Properties": {
                "Name": {"Fn::Sub": "${AWS::StackName}-url-rewrite"},
                "AutoPublish": True,
                "FunctionConfig": {
                    "Comment": "Serve index.html for directories and .html for extensionless paths",
                    "Runtime": "cloudfront-js-2.0",
                },
                "FunctionCode": URL_REWRITE_CODE,
            },
        },
        "CloudFrontDistribution": {
            "Type": "AWS::CloudFront::Distribution",
            "Properties": {
                "DistributionConfig": _distribution_config(
                    bucket_name, aliases, certificate_arn, default_root_object, error_document
                ),
            },
        },
        "BucketPolicy": {
            "Type": "AWS::S3::BucketPolicy",
            "Properties": {
                "Bucket": {"Ref": "S3Bucket"},
                "PolicyDocument": {
                    "Version": "2012-10-17",
                    "Statement": [
                        {
                            "Sid": "AllowCloudFrontServicePrincipal",
                            "Effect": "Allow",
                            "Principal": {"Service": "cloudfront.amazonaws.com"},
                            "Action": "s3:GetObject",
                            "Resource": {"Fn::Sub": "arn:aws:s3:::${S3Bucket}/*"},
                            "Condition": {
                                "StringEquals": {
                                    "AWS:SourceArn": {
                                        "Fn::Sub": "arn:aws:cloudfront::${AWS::AccountId}:distribution/${CloudFrontDistribution}"
                                    }
                                }
                            },
                        }
                    ],
                },
            },
        },
    }

    outputs = {
        "BucketName": {"Description": "S3 bucket name", "Value": {"Ref": "S3Bucket"}},
        "DistributionId": {"Description": "CloudFront distribution ID", "Value": {"Ref": "CloudFrontDistribution"}},
        "DistributionDomain": {
            "Description": "CloudFront distribution domain",
            "Value": {"Fn::GetAtt": ["CloudFrontDistribution", "DomainName"]},
        },
    }

    return {
        "AWSTemplateFormatVersion": "2010-09-09",
        "Description": f"Static site for {aliases[0] if aliases else bucket_name}",
        "Resources": resources,
        "Outputs": outputs,
    }


def template_body(template: dict) -> str:
    return json.dumps(template, indent=2)
