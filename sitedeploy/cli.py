"""Command line entry point."""

import argparse
import logging
import os
import sys

from .config import DEFAULT_REGION, DNS_PROVIDER_NAMES, DeploymentSpec, dns_config_from_env
from .deploy import deploy_site_full, destroy_site
from .errors import ConfigError
from .state import clear_state, load_state, save_state
from .sync import detect_output_dir


def _ask(question: str) -> bool:
    answer = input(question)
    return answer.strip().lower() in ("y", "yes")


def confirm_conflict(conflict) -> bool:
    print(
        f"\n{conflict.record.name} currently points to {conflict.hosting_provider} "
        f"({conflict.record.type} {conflict.record.content})."
    )
    return _ask("Remove this record and serve the domain from CloudFront instead? [y/N] ")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sitedeploy",
        description="Deploy a static site to S3 behind CloudFront with an ACM certificate, managing DNS through Route53, Porkbun, GoDaddy or Cloudflare.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""examples:
  %(prog)s --site docs --domain docs.example.com
      Provision (or reuse) the bucket, certificate and distribution for
      docs.example.com, point a Route53 CNAME at it and upload ./dist.

  %(prog)s --site blog --domain example.com --dns-provider porkbun
      Apex deployment with DNS at Porkbun: an ALIAS record for example.com
      and a CNAME for www.example.com. Reads PORKBUN_API_KEY and
      PORKBUN_SECRET_KEY from the environment.

  %(prog)s --site blog --domain example.com --no-upload
      Reconcile the infrastructure only.

  %(prog)s --site blog --domain example.com --destroy
      Remove the DNS records, empty the bucket and delete the stack.

provider credentials:
  route53     standard AWS credentials (ROUTE53_HOSTED_ZONE_ID optional)
  porkbun     PORKBUN_API_KEY, PORKBUN_SECRET_KEY
  godaddy     GODADDY_API_KEY, GODADDY_API_SECRET (GODADDY_ENVIRONMENT=ote for testing)
  cloudflare  CLOUDFLARE_API_TOKEN

state tracking:
  The result of the last successful deploy is written to site_deploy.json in
  the project directory. --destroy reads the stack name and certificate from
  it. Live AWS state always wins over this file when deploying.""",
    )
    parser.add_argument("--site", required=True, help="Site name. The stack is named <site>-static-site unless --stack-name is given.")
    parser.add_argument("--domain", required=True, help="Domain to serve the site from, e.g. example.com or docs.example.com.")
    parser.add_argument("--region", default=DEFAULT_REGION, help=f"AWS region for the S3 bucket (default: {DEFAULT_REGION}). Certificates are always issued in us-east-1.")
    parser.add_argument("--bucket", help="S3 bucket name (default: the domain with dots replaced by dashes).")
    parser.add_argument("--stack-name", help="CloudFormation stack name.")
    parser.add_argument("--certificate-arn", help="Use this ACM certificate instead of finding or requesting one.")
    parser.add_argument("--san", action="append", default=[], dest="extra_sans", help="Extra subject alternative name for the certificate. May be repeated.")
    parser.add_argument("--dns-provider", choices=DNS_PROVIDER_NAMES, default="route53", help="Where the domain's DNS is hosted (default: route53).")
    parser.add_argument("--dir", default=".", help="Project directory (default: current directory).")
    parser.add_argument("--output", help="Build output directory to upload. Auto-detected as dist/, build/, out/ or public/ inside the project directory.")
    parser.add_argument("--no-upload", action="store_true", help="Reconcile infrastructure without uploading files.")
    parser.add_argument("--max-wait-minutes", type=int, default=10, help="How long to wait for certificate validation (default: 10).")
    parser.add_argument("--yes", "-y", action="store_true", help="Answer yes to every prompt.")
    parser.add_argument("--destroy", action="store_true", help="Tear down the site instead of deploying it.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log AWS and DNS provider detail.")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(message)s")
    if not args.verbose:
        for noisy in ("botocore", "boto3", "urllib3", "s3transfer"):
            logging.getLogger(noisy).setLevel(logging.WARNING)

    project_dir = os.path.abspath(args.dir)
    if not os.path.isdir(project_dir):
        sys.exit(f"Project directory not found: {project_dir}")

    state = load_state(project_dir)
    stack_name = args.stack_name or (state.get("stack_name") if args.destroy else None)

    try:
        spec = DeploymentSpec(
            site_name=args.site,
            domain=args.domain,
            region=args.region,
            bucket=args.bucket,
            certificate_arn=args.certificate_arn,
            stack_name=stack_name,
            dns_provider=dns_config_from_env(args.dns_provider),
            extra_sans=tuple(args.extra_sans),
            max_wait_minutes=args.max_wait_minutes,
        )
    except ConfigError as e:
        sys.exit(f"Error: {e}")

    if args.destroy:
        if not args.yes and not _ask(f"\nDestroy stack {spec.resolved_stack_name} and all files in its bucket? This cannot be undone. [y/N] "):
            sys.exit("Aborted.")
        result = destroy_site(spec, certificate_arn=state.get("certificate_arn") or None)
        if result.success:
            clear_state(project_dir)
            print(result.message)
            return 0
        print(f"Destroy failed: {result.message}", file=sys.stderr)
        return 1

    source_dir = None
    if not args.no_upload:
        try:
            source_dir = args.output or detect_output_dir(project_dir)
        except ConfigError as e:
            sys.exit(str(e))
        if not os.path.isdir(source_dir):
            sys.exit(f"Output directory not found: {source_dir}")

    confirm = (lambda conflict: True) if args.yes else confirm_conflict
    result = deploy_site_full(spec, source_dir, confirm=confirm)

    for warning in result.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    if not result.success:
        print(f"Deployment failed: {result.message}", file=sys.stderr)
        return 1

    save_state(project_dir, result.to_dict())
    print(result.message)
    print(f"\nSite URL: https://{spec.domain}")
    print("Done!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
