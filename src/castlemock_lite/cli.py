#!/usr/bin/env python3
"""
CastleMock Lite CLI

Command-line interface for managing mock projects and sending simulated
requests.

Commands:
    projects      - List projects
    create        - Create an empty project
    import        - Import an OpenAPI/Swagger document or a project backup
    export        - Write a project backup
    start/stop    - Toggle a project's mock server
    delete        - Delete a project with its endpoints and responses
    endpoints     - List a project's endpoints
    docs          - Show an endpoint's documentation with refs resolved
    strategy      - Set an endpoint's response strategy
    add-endpoint  - Add a hand-written endpoint
    responses     - List an endpoint's responses
    add-response  - Add a response with optional match rule and delay
    set-default   - Set an endpoint's default response
    rm-endpoint   - Delete an endpoint and its responses
    rm-response   - Delete a response
    send          - Send a simulated request

Examples:
    # Create a project from an OpenAPI document
    castlemock-lite import petstore.yaml

    # Start it and send a request
    castlemock-lite start <project-id>
    castlemock-lite send <project-id> GET /pets
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from .catalog import CatalogStore, JsonFileStorage, ResponseStrategy
from .common import detect_document_kind, fetch_document, load_document, now_ms
from .config import LOG_LEVELS, load_config
from .errors import CastleMockError
from .offload import create_coordinator
from .service import MockService


def _build_service(args) -> MockService:
    """Load config, open the catalog and start the coordinator."""
    try:
        config = load_config(args.config)
    except (CastleMockError, ValueError) as e:
        print(f"❌ Failed to load config: {e}")
        sys.exit(1)

    if args.storage:
        config.storage_path = args.storage
    if args.log_level:
        config.log_level = args.log_level

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    try:
        store = CatalogStore(JsonFileStorage(str(config.resolved_storage_path)))
    except CastleMockError as e:
        print(f"❌ Failed to open catalog: {e}")
        sys.exit(1)

    return MockService(store, create_coordinator(config), config)


def _require_project(service: MockService, project_id: str):
    project = service.store.get_project(project_id)
    if project is None:
        print(f"❌ Project not found: {project_id}")
        sys.exit(1)
    return project


def _require_endpoint(service: MockService, endpoint_id: str):
    endpoint = service.store.get_endpoint(endpoint_id)
    if endpoint is None:
        print(f"❌ Endpoint not found: {endpoint_id}")
        sys.exit(1)
    return endpoint


def _parse_headers(values: Optional[List[str]]) -> Optional[Dict[str, str]]:
    if not values:
        return None
    headers = {}
    for item in values:
        if ':' not in item:
            print(f"❌ Invalid header (expected 'Name: value'): {item}")
            sys.exit(1)
        name, value = item.split(':', 1)
        headers[name.strip()] = value.strip()
    return headers


def cmd_projects(service: MockService, args):
    projects = service.store.get_projects()
    if not projects:
        print("No projects yet. Create one with 'create' or 'import'.")
        return

    for project in projects:
        marker = "🟢" if project.is_running else "⚪"
        count = len(service.store.get_endpoints(project.id))
        print(f"{marker} {project.id}  {project.name}  ({count} endpoints, {project.status})")


def cmd_create(service: MockService, args):
    project = service.store.create_project(args.name, args.description or "")
    print(f"✅ Created project {project.name}")
    print(f"   ID: {project.id}")
    print(f"   Base URL: {project.base_url}")


def cmd_import(service: MockService, args):
    """
    Import an OpenAPI document or backup file.

    Args:
        service: Mock service
        args: Parsed command-line arguments
    """
    try:
        if args.url:
            print(f"📥 Fetching {args.url}")
            document = fetch_document(args.url)
        elif args.file:
            document = load_document(args.file)
        else:
            print("❌ Provide a file or --url")
            sys.exit(1)
    except CastleMockError as e:
        print(f"❌ {e}")
        sys.exit(1)

    kind = detect_document_kind(document)
    try:
        if kind == 'backup':
            project = service.store.import_backup(document, name=args.name, description=args.description)
            print(f"✅ Restored backup as project {project.name}")
        elif kind == 'openapi':
            if args.into:
                project = _require_project(service, args.into)
                result = service.import_openapi(project.id, document)
                print(f"✅ Imported {len(result.endpoints)} endpoints into {project.name}")
            else:
                project = service.create_project_from_openapi(document, name=args.name, description=args.description)
                count = len(service.store.get_endpoints(project.id))
                print(f"✅ Created project {project.name} with {count} endpoints")
        else:
            print("❌ Unrecognized document: expected an OpenAPI/Swagger document or a CastleMock Lite backup")
            sys.exit(1)
    except CastleMockError as e:
        print(f"❌ Import failed: {e}")
        sys.exit(1)

    print(f"   ID: {project.id}")


def cmd_export(service: MockService, args):
    _require_project(service, args.project_id)
    backup = service.store.export_project(args.project_id)
    output = Path(args.output or f"castlemock-backup-{args.project_id}-{now_ms()}.json")
    output.write_text(json.dumps(backup, indent=2, ensure_ascii=False), encoding='utf-8')
    print(f"✅ Saved backup to {output}")


def cmd_status(service: MockService, args, status: str):
    project = _require_project(service, args.project_id)
    service.store.update_project_status(project.id, status)
    marker = "🟢" if status == 'running' else "⚪"
    print(f"{marker} {project.name} is now {status}")


def cmd_delete(service: MockService, args):
    project = _require_project(service, args.project_id)
    service.store.delete_project(project.id)
    print(f"🗑️  Deleted project {project.name}")


def cmd_endpoints(service: MockService, args):
    project = _require_project(service, args.project_id)
    endpoints = service.store.get_endpoints(project.id)
    print(f"📋 {project.name}: {len(endpoints)} endpoints")
    for endpoint in endpoints:
        responses = service.store.get_responses(endpoint.id)
        print(f"   {endpoint.method:7} {endpoint.path}  [{endpoint.response_strategy.value}]  "
              f"{endpoint.name} ({len(responses)} responses)  id={endpoint.id}")


def cmd_docs(service: MockService, args):
    docs = service.resolved_docs(args.endpoint_id)
    if docs is None:
        print(f"❌ No documentation for endpoint {args.endpoint_id}")
        sys.exit(1)
    print(json.dumps(docs, indent=2, ensure_ascii=False))


def cmd_strategy(service: MockService, args):
    endpoint = _require_endpoint(service, args.endpoint_id)
    endpoint.response_strategy = ResponseStrategy(args.strategy)
    service.store.update_endpoint(endpoint)
    print(f"✅ {endpoint.method} {endpoint.path} now uses {args.strategy}")


def cmd_add_endpoint(service: MockService, args):
    project = _require_project(service, args.project_id)
    method = args.method.upper()
    endpoint = service.store.create_endpoint(
        project.id,
        method,
        args.path,
        args.name or f"{method} {args.path}",
        ResponseStrategy(args.strategy),
    )
    print(f"✅ Added {endpoint.method} {endpoint.path} to {project.name}")
    print(f"   ID: {endpoint.id}")


def cmd_responses(service: MockService, args):
    endpoint = _require_endpoint(service, args.endpoint_id)
    responses = service.store.get_responses(endpoint.id)
    print(f"📋 {endpoint.method} {endpoint.path} [{endpoint.response_strategy.value}]: {len(responses)} responses")
    for response in responses:
        marker = "⭐" if response.id == endpoint.default_response_id else "  "
        if response.delay_mode == 'random':
            delay = f"{response.delay_min or 0}-{response.delay_max or 1000}ms"
        else:
            delay = f"{response.delay}ms"
        rule = f"  {response.match_type}: {response.match_expression}" if response.match_expression else ""
        print(f"   {marker} {response.status_code}  {response.name}  ({delay})  id={response.id}{rule}")


def cmd_add_response(service: MockService, args):
    """
    Add a response to an endpoint, with optional match rule and delay.

    Args:
        service: Mock service
        args: Parsed command-line arguments
    """
    endpoint = _require_endpoint(service, args.endpoint_id)
    if args.match and not args.match_type:
        print("❌ --match requires --match-type")
        sys.exit(1)

    body = args.body if args.body is not None else "{}"
    if args.body_file:
        body = Path(args.body_file).read_text(encoding='utf-8')

    response = service.store.create_response(endpoint.id, args.name, body, status_code=args.status)
    headers = _parse_headers(args.header)
    if headers:
        response.headers.update(headers)
    if args.match:
        response.match_type = args.match_type
        response.match_expression = args.match
    if args.delay_min is not None or args.delay_max is not None:
        response.delay_mode = 'random'
        if args.delay_min is not None:
            response.delay_min = args.delay_min
        if args.delay_max is not None:
            response.delay_max = args.delay_max
    elif args.delay is not None:
        response.delay = args.delay
    service.store.update_response(response)

    if args.default:
        service.store.set_default_response(endpoint.id, response.id)

    print(f"✅ Added response {response.name} ({response.status_code}) to {endpoint.method} {endpoint.path}")
    print(f"   ID: {response.id}")


def cmd_set_default(service: MockService, args):
    endpoint = _require_endpoint(service, args.endpoint_id)
    if not service.store.set_default_response(endpoint.id, args.response_id):
        print(f"❌ Response {args.response_id} does not belong to endpoint {endpoint.id}")
        sys.exit(1)
    print(f"⭐ {args.response_id} is now the default for {endpoint.method} {endpoint.path}")


def cmd_rm_endpoint(service: MockService, args):
    endpoint = _require_endpoint(service, args.endpoint_id)
    service.store.delete_endpoint(endpoint.id)
    print(f"🗑️  Deleted endpoint {endpoint.method} {endpoint.path}")


def cmd_rm_response(service: MockService, args):
    response = service.store.get_response(args.response_id)
    if response is None:
        print(f"❌ Response not found: {args.response_id}")
        sys.exit(1)
    service.store.delete_response(response.id)
    print(f"🗑️  Deleted response {response.name}")


def cmd_send(service: MockService, args):
    """
    Send a simulated request and print the reply.

    Args:
        service: Mock service
        args: Parsed command-line arguments
    """
    body = args.body
    if args.body_file:
        body = Path(args.body_file).read_text(encoding='utf-8')

    try:
        reply = service.send(
            args.project_id,
            args.method.upper(),
            args.path,
            body=body,
            headers=_parse_headers(args.header),
            apply_delay=False if args.no_delay else None,
        )
    except CastleMockError as e:
        print(f"❌ Request failed: {e}")
        sys.exit(1)

    print(f"📡 {args.method.upper()} {args.path} -> {reply.status_code}")
    if reply.matched:
        print(f"   Strategy: {reply.matched_strategy} | Response: {reply.response_name} | Latency: {reply.latency_ms}ms")
    for name, value in reply.headers.items():
        print(f"   {name}: {value}")
    print()
    body = reply.json()
    print(json.dumps(body, indent=2, ensure_ascii=False) if not isinstance(body, str) else body)

    if reply.status_code >= 500 and not reply.matched:
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='castlemock-lite',
        description="CastleMock Lite - mock REST APIs from OpenAPI documents without a backend",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import an OpenAPI document as a new project
  %(prog)s import petstore.yaml

  # Restore a backup under a new name
  %(prog)s import castlemock-backup.json --name "Petstore copy"

  # Send a request with a header
  %(prog)s send <project-id> POST /pets --body '{"name": "Rex"}' -H "X-Env: test"
        """
    )
    parser.add_argument('--config', help='YAML config file')
    parser.add_argument('--storage', help='Catalog file (overrides config)')
    parser.add_argument('--log-level', choices=LOG_LEVELS, help='Log level (overrides config)')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    subparsers.add_parser('projects', help='List projects')

    create_parser = subparsers.add_parser('create', help='Create an empty project')
    create_parser.add_argument('name', help='Project name')
    create_parser.add_argument('-d', '--description', help='Project description')

    import_parser = subparsers.add_parser('import', help='Import an OpenAPI document or backup')
    import_parser.add_argument('file', nargs='?', help='JSON or YAML file')
    import_parser.add_argument('--url', help='Fetch the OpenAPI document from a URL')
    import_parser.add_argument('--name', help='Project name override')
    import_parser.add_argument('--description', help='Project description override')
    import_parser.add_argument('--into', metavar='PROJECT_ID', help='Add OpenAPI endpoints to an existing project')

    export_parser = subparsers.add_parser('export', help='Write a project backup')
    export_parser.add_argument('project_id', help='Project ID')
    export_parser.add_argument('-o', '--output', help='Output file')

    for name, help_text in (('start', 'Start a project'), ('stop', 'Stop a project'), ('delete', 'Delete a project')):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument('project_id', help='Project ID')

    endpoints_parser = subparsers.add_parser('endpoints', help="List a project's endpoints")
    endpoints_parser.add_argument('project_id', help='Project ID')

    docs_parser = subparsers.add_parser('docs', help='Show endpoint documentation')
    docs_parser.add_argument('endpoint_id', help='Endpoint ID')

    strategy_parser = subparsers.add_parser('strategy', help="Set an endpoint's response strategy")
    strategy_parser.add_argument('endpoint_id', help='Endpoint ID')
    strategy_parser.add_argument('strategy', choices=[s.value for s in ResponseStrategy])

    add_endpoint_parser = subparsers.add_parser('add-endpoint', help='Add a hand-written endpoint to a project')
    add_endpoint_parser.add_argument('project_id', help='Project ID')
    add_endpoint_parser.add_argument('method', help='HTTP method')
    add_endpoint_parser.add_argument('path', help='Path template, e.g. /pets/{id}')
    add_endpoint_parser.add_argument('--name', help="Endpoint name (default: 'METHOD PATH')")
    add_endpoint_parser.add_argument('--strategy', choices=[s.value for s in ResponseStrategy],
                                     default=ResponseStrategy.DEFAULT.value, help='Response strategy')

    responses_parser = subparsers.add_parser('responses', help="List an endpoint's responses")
    responses_parser.add_argument('endpoint_id', help='Endpoint ID')

    add_response_parser = subparsers.add_parser('add-response', help='Add a response to an endpoint')
    add_response_parser.add_argument('endpoint_id', help='Endpoint ID')
    add_response_parser.add_argument('name', help='Response name')
    add_response_parser.add_argument('--status', type=int, default=200, help='Status code (default: 200)')
    add_response_parser.add_argument('--body', help="Response body (default: '{}')")
    add_response_parser.add_argument('--body-file', help='Read the response body from a file')
    add_response_parser.add_argument('-H', '--header', action='append', help="Response header 'Name: value' (repeatable)")
    add_response_parser.add_argument('--match-type', choices=['json', 'regex', 'body_json', 'header'],
                                     help='How --match is read under QUERY_MATCH')
    add_response_parser.add_argument('--match', help="Match expression, e.g. \"role == 'admin'\"")
    add_response_parser.add_argument('--delay', type=int, help='Fixed delay in ms')
    add_response_parser.add_argument('--delay-min', type=int, help='Random delay lower bound in ms')
    add_response_parser.add_argument('--delay-max', type=int, help='Random delay upper bound in ms')
    add_response_parser.add_argument('--default', action='store_true', help="Make it the endpoint's default")

    set_default_parser = subparsers.add_parser('set-default', help="Set an endpoint's default response")
    set_default_parser.add_argument('endpoint_id', help='Endpoint ID')
    set_default_parser.add_argument('response_id', help='Response ID')

    rm_endpoint_parser = subparsers.add_parser('rm-endpoint', help='Delete an endpoint and its responses')
    rm_endpoint_parser.add_argument('endpoint_id', help='Endpoint ID')

    rm_response_parser = subparsers.add_parser('rm-response', help='Delete a response')
    rm_response_parser.add_argument('response_id', help='Response ID')

    send_parser = subparsers.add_parser('send', help='Send a simulated request')
    send_parser.add_argument('project_id', help='Project ID')
    send_parser.add_argument('method', help='HTTP method')
    send_parser.add_argument('path', help='Request path, e.g. /pets')
    send_parser.add_argument('--body', help='Request body')
    send_parser.add_argument('--body-file', help='Read the request body from a file')
    send_parser.add_argument('-H', '--header', action='append', help="Request header 'Name: value' (repeatable)")
    send_parser.add_argument('--no-delay', action='store_true', help='Skip the simulated latency')

    return parser


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    service = _build_service(args)
    try:
        if args.command == 'projects':
            cmd_projects(service, args)
        elif args.command == 'create':
            cmd_create(service, args)
        elif args.command == 'import':
            cmd_import(service, args)
        elif args.command == 'export':
            cmd_export(service, args)
        elif args.command == 'start':
            cmd_status(service, args, 'running')
        elif args.command == 'stop':
            cmd_status(service, args, 'stopped')
        elif args.command == 'delete':
            cmd_delete(service, args)
        elif args.command == 'endpoints':
            cmd_endpoints(service, args)
        elif args.command == 'docs':
            cmd_docs(service, args)
        elif args.command == 'strategy':
            cmd_strategy(service, args)
        elif args.command == 'add-endpoint':
            cmd_add_endpoint(service, args)
        elif args.command == 'responses':
            cmd_responses(service, args)
        elif args.command == 'add-response':
            cmd_add_response(service, args)
        elif args.command == 'set-default':
            cmd_set_default(service, args)
        elif args.command == 'rm-endpoint':
            cmd_rm_endpoint(service, args)
        elif args.command == 'rm-response':
            cmd_rm_response(service, args)
        elif args.command == 'send':
            cmd_send(service, args)
    finally:
        service.close()


if __name__ == '__main__':
    main()
