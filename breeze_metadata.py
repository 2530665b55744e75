#!/usr/bin/env python3
"""
Breeze metadata builder - command line entry point.

Reads an OData service's CSDL metadata (over HTTP or from a file) and writes
the equivalent Breeze client metadata document as JSON.
"""

import argparse
import os
import sys
from pathlib import Path
from typing import Dict, Optional

import requests
from dotenv import load_dotenv

from breeze_metadata_lib import CsdlModelReader, MetadataBuildError, MetadataDocument, build_metadata

# Load environment variables from .env file
load_dotenv()


def parse_cookie_string(cookie_string: str) -> Dict[str, str]:
    """Parse cookie string like 'key1=val1; key2=val2'."""
    cookies = {}
    for cookie in cookie_string.split(';'):
        cookie = cookie.strip()
        if '=' in cookie:
            key, value = cookie.split('=', 1)
            cookies[key.strip()] = value.strip()
    return cookies


def print_trace_info(document: MetadataDocument, source: str):
    """Print a readable summary of the built document instead of the JSON."""
    complex_types = [mt for mt in document.structural_types if mt.is_complex_type]
    entity_types = [mt for mt in document.structural_types if not mt.is_complex_type]

    print("=" * 80)
    print("Breeze Metadata Trace Information")
    print("=" * 80)
    print(f"\nSource: {source}")
    print(f"Complex Types: {len(complex_types)}")
    print(f"Entity Types: {len(entity_types)}")
    print(f"Enum Types: {len(document.enum_types)}")

    for mt in document.structural_types:
        kind = "complex" if mt.is_complex_type else "entity"
        print(f"\n{mt.short_name}:#{mt.namespace} ({kind})")
        if mt.default_resource_name:
            print(f"   Resource: {mt.default_resource_name}")
        if mt.base_type_name:
            print(f"   Base: {mt.base_type_name}")
        if mt.auto_generated_key_type:
            print(f"   Key Generation: {mt.auto_generated_key_type.value}")
        for dp in mt.data_properties:
            flags = []
            if dp.is_part_of_key:
                flags.append("key")
            if dp.is_identity_column:
                flags.append("identity")
            if not dp.is_nullable:
                flags.append("required")
            type_name = dp.complex_type_name or dp.data_type
            print(f"   - {dp.name_on_server}: {type_name}" + (f" [{', '.join(flags)}]" if flags else ""))
        for np in mt.navigation_properties:
            arity = "1" if np.is_scalar else "*"
            print(f"   > {np.name_on_server} -> {np.entity_type_name} ({arity}) via {np.association_name}")

    for enum in document.enum_types:
        print(f"\nenum {enum.short_name}:#{enum.namespace} = {', '.join(enum.values)}")

    print("\n" + "=" * 80)


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Build Breeze client metadata from OData CSDL metadata",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("--service", dest="service_via_flag", help="URL of the OData service (overrides positional argument and ODATA_URL env var)")
    parser.add_argument("service_url_pos", nargs='?', help="URL of the OData service (alternative to --service flag or env var)")
    parser.add_argument("--metadata-file", help="Read CSDL metadata from this file instead of the service")

    auth_group = parser.add_mutually_exclusive_group()
    auth_group.add_argument("-u", "--user", help="Username for basic authentication (overrides ODATA_USER env var)")
    auth_group.add_argument("--cookie-string", help="Cookie string (key1=val1; key2=val2)")
    parser.add_argument("-p", "--password", help="Password for basic authentication (overrides ODATA_PASS env var)")

    parser.add_argument("-o", "--output", help="Write the metadata JSON to this file instead of stdout")
    parser.add_argument("--indent", type=int, default=None, help="Indent the JSON output by this many spaces")
    parser.add_argument("--strict-complex-types", action="store_true", help="Fail when two complex types share a name but differ in structure")
    parser.add_argument("--trace", action="store_true", help="Print a summary of the built metadata instead of JSON")
    parser.add_argument("-v", "--verbose", "--debug", dest="verbose", action="store_true", help="Enable verbose output to stderr")

    args = parser.parse_args(argv)

    # Priority: --service flag > Positional argument > Environment Variable > .env file
    service_url = args.service_via_flag or args.service_url_pos
    if service_url is None:
        service_url = os.getenv("ODATA_URL") or os.getenv("ODATA_SERVICE_URL")
        if service_url and args.verbose:
            print("[VERBOSE] Using ODATA_URL from environment.", file=sys.stderr)

    if not service_url and not args.metadata_file:
        print("ERROR: No metadata source provided.", file=sys.stderr)
        print("Provide --metadata-file, the --service flag, a positional URL, or the ODATA_URL environment variable.", file=sys.stderr)
        parser.print_help(file=sys.stderr)
        return 1

    auth = None
    cookie_string = args.cookie_string or os.getenv("ODATA_COOKIE_STRING")
    if cookie_string:
        auth = parse_cookie_string(cookie_string)
        if not auth:
            print("ERROR: Failed to parse cookie string", file=sys.stderr)
            return 1
        if args.verbose:
            print(f"[VERBOSE] Parsed {len(auth)} cookies", file=sys.stderr)
    else:
        final_user = args.user if args.user is not None else os.getenv("ODATA_USER")
        final_pass = args.password if args.password is not None else os.getenv("ODATA_PASS")
        if final_user and final_pass:
            auth = (final_user, final_pass)
            if args.verbose:
                print(f"[VERBOSE] Using basic authentication for user: {final_user}", file=sys.stderr)

    reader = CsdlModelReader(service_url, auth, verbose=args.verbose)
    try:
        if args.metadata_file:
            path = Path(args.metadata_file)
            if not path.exists():
                print(f"ERROR: Metadata file not found: {path}", file=sys.stderr)
                return 1
            model = reader.parse(path.read_bytes())
            source = str(path)
        else:
            model = reader.read()
            source = reader.metadata_url

        document = build_metadata(model, verbose=args.verbose, strict_complex_types=args.strict_complex_types)
    except MetadataBuildError as e:
        stage = f" ({e.stage})" if e.stage else ""
        print(f"ERROR: Could not build metadata{stage}: {e}", file=sys.stderr)
        return 1
    except requests.exceptions.RequestException as e:
        print(f"ERROR: Could not fetch metadata: {e}", file=sys.stderr)
        if e.response is not None and e.response.status_code in [401, 403]:
            print("ERROR: Authentication might be required or incorrect. Check credentials.", file=sys.stderr)
        return 1

    if args.trace:
        print_trace_info(document, source)
        return 0

    output = document.to_json(indent=args.indent)
    if args.output:
        Path(args.output).write_text(output + "\n", encoding='utf-8')
        if args.verbose:
            print(f"[VERBOSE] Wrote metadata to {args.output}", file=sys.stderr)
    else:
        print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
