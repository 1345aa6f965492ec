# sns_dlq.py

import argparse
import os
import sys

from cfn_template import load_document, load_template, write_template
from dlq_errors import ConfigurationError, DlqError
from dlq_wiring import configure_single_function, wire_dead_letter_queues

DEFAULT_STAGE = "dev"


# --- Service definition --- START
def load_functions(service_path, stage=None):
    """Loads the function declarations from a service definition (YAML or JSON)."""
    service = load_document(service_path)
    if not isinstance(service, dict):
        raise ConfigurationError(f"Service definition '{service_path}' must be a mapping.")

    functions = service.get('functions', service)
    if not isinstance(functions, dict):
        raise ConfigurationError(f"'functions' in '{service_path}' must be a mapping.")

    # Deployed names follow <service>-<stage>-<function> unless set explicitly
    service_name = service.get('service')
    if isinstance(service_name, dict):
        service_name = service_name.get('name')
    if not service_name or 'functions' not in service:
        return service, functions

    stage = stage or (service.get('provider') or {}).get('stage') or DEFAULT_STAGE
    named = {}
    for key, declaration in functions.items():
        if isinstance(declaration, dict) and not declaration.get('name'):
            # Copy so the name never ends up in a rewritten service definition
            declaration = dict(declaration, name=f"{service_name}-{stage}-{key}")
        named[key] = declaration
    return service, named
# --- Service definition --- END


def resolve_identity(args, parser):
    account_id = args.account_id or os.environ.get('AWS_ACCOUNT_ID')
    region = args.region or os.environ.get('AWS_REGION') or os.environ.get('AWS_DEFAULT_REGION')
    if not account_id:
        parser.error("An account id is required (--account-id or AWS_ACCOUNT_ID).")
    if not region:
        parser.error("A region is required (--region, AWS_REGION or AWS_DEFAULT_REGION).")
    return account_id, region


def run_deploy(args, parser):
    account_id, region = resolve_identity(args, parser)
    _, functions = load_functions(args.service, args.stage)

    print(f"\n--- Wiring dead-letter queues into: {args.template} (Region: {region}) ---")
    template = load_template(args.template)
    wire_dead_letter_queues(
        template, functions, account_id, region,
        failure_destination=not args.no_failure_destination)

    output_file = args.output or args.template
    print(f"Writing template to {output_file}...")
    write_template(template.document, output_file)
    print(f"Successfully wrote template to {output_file}.")


def run_package_function(args, parser):
    account_id, region = resolve_identity(args, parser)
    service, functions = load_functions(args.service, args.stage)

    url = configure_single_function(functions, args.function, account_id, region)
    if url is None:
        print("Service definition not modified.")
        return
    print(f"DLQ_QUEUE_URL={url}")

    # The service definition itself is only read; comments and tags would not survive a rewrite
    if not args.output:
        return
    if os.path.abspath(args.output) == os.path.abspath(args.service):
        raise ConfigurationError("package-function does not overwrite the service definition, pick another --output.")
    declarations = service.get('functions', service)
    declarations[args.function]['environment'] = functions[args.function]['environment']

    output_file = args.output
    print(f"Writing service definition to {output_file}...")
    write_template(service, output_file)
    print(f"Successfully wrote service definition to {output_file}.")


def build_parser():
    parser = argparse.ArgumentParser(
        description="Wire SQS dead-letter queues into the SNS subscriptions of a compiled "
                    "CloudFormation template."
    )
    parser.add_argument("--account-id", help="AWS account id (default: $AWS_ACCOUNT_ID)")
    parser.add_argument("--region", help="AWS region (default: $AWS_REGION or $AWS_DEFAULT_REGION)")
    parser.add_argument("--stage", help="Stage used for default function names "
                                        "(default: provider.stage or 'dev')")
    subparsers = parser.add_subparsers(dest="command", required=True)

    deploy = subparsers.add_parser(
        "deploy", help="Add queues, policies and redrive wiring to the whole template.")
    deploy.add_argument("service", help="Service definition declaring the functions (YAML or JSON)")
    deploy.add_argument("template", help="Compiled CloudFormation template (JSON or YAML)")
    deploy.add_argument("-o", "--output",
                        help="Where to write the updated template (default: overwrite the input)")
    deploy.add_argument("--no-failure-destination", action="store_true",
                        help="Don't route failed async invocations to the queue (EventInvokeConfig)")
    deploy.set_defaults(handler=run_deploy)

    package = subparsers.add_parser(
        "package-function", help="Compute DLQ_QUEUE_URL for one function of the service definition.")
    package.add_argument("service", help="Service definition declaring the functions (YAML or JSON)")
    package.add_argument("-f", "--function", required=True, help="Function key in the service definition")
    package.add_argument("-o", "--output",
                         help="Also write the service definition with the updated environment to this path "
                              "(the input file is never modified)")
    package.set_defaults(handler=run_package_function)
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.handler(args, parser)
    except DlqError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
