"""
VCR.py configuration for recording and replaying etcd gateway traffic

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: tests/vcr_config.py
Created: 2026-10-19
Author: Confsyncer Contributors
Type: Test Configuration

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  Confsyncer  CREATE  VCR instance, body matcher for the etcd
                                JSON gateway and cassette decorator.
-------------------------------------------------------------------------------

License: MIT

RECORDING:
- Cassettes live in tests/fixtures/cassettes
- Tests replay only (record_mode "none") unless VCR_RECORD_MODE is set
- Re-record against a throwaway etcd: VCR_RECORD_MODE=once pytest -k cassette
===============================================================================
"""

import json
import os
import re
from functools import wraps
from typing import Callable

import vcr

# =============================================================================
# VCR Configuration Constants
# =============================================================================

CASSETTE_DIR = os.path.join(os.path.dirname(__file__), 'fixtures', 'cassettes')

# Sensitive patterns to scrub from recorded bodies
SENSITIVE_PATTERNS = [
    # etcd auth/authenticate request and its token response
    (r'("password"\s*:\s*")[^"]*', r'\1REDACTED_PASSWORD'),
    (r'("token"\s*:\s*")[^"]*', r'\1REDACTED_TOKEN'),
]

# Headers to scrub entirely
SCRUB_HEADERS = [
    'Authorization',
    'Cookie',
    'Set-Cookie',
]


# =============================================================================
# Scrubbing Functions
# =============================================================================

def _scrub_text(body):
    if isinstance(body, bytes):
        body = body.decode('utf-8', errors='replace')
    for pattern, replacement in SENSITIVE_PATTERNS:
        body = re.sub(pattern, replacement, body)
    return body


def scrub_request(request):
    """Scrub credentials from a request before it is recorded"""
    if request.body:
        request.body = _scrub_text(request.body)
    return request


def scrub_response(response):
    """Scrub tokens from a response before it is recorded"""
    if 'body' in response and response['body'].get('string'):
        response['body']['string'] = _scrub_text(response['body']['string']).encode('utf-8')
    return response


# =============================================================================
# VCR Custom Matchers
# =============================================================================

def etcd_body_matcher(r1, r2):
    """
    Match gateway requests on their decoded JSON payload.

    Every gateway call is a POST, so path alone cannot tell a count-only
    range from a full range, or one key's put from another's.
    """
    def payload(request):
        if not request.body:
            return None
        body = request.body
        if isinstance(body, bytes):
            body = body.decode('utf-8')
        try:
            return json.loads(body)
        except ValueError:
            return body

    return payload(r1) == payload(r2)


# =============================================================================
# VCR Instance Configuration
# =============================================================================

def get_vcr(record_mode: str = 'none') -> vcr.VCR:
    """
    Get configured VCR instance.

    Args:
        record_mode: VCR record mode
            - 'none': Never record, use cassettes only (for CI/CD)
            - 'new_episodes': Record new requests only
            - 'once': Record once, replay after

    Returns:
        Configured VCR instance
    """
    custom_vcr = vcr.VCR(
        cassette_library_dir=CASSETTE_DIR,
        record_mode=record_mode,
        match_on=['method', 'scheme', 'host', 'port', 'path', 'etcd_body'],
        filter_headers=SCRUB_HEADERS,
        before_record_request=scrub_request,
        before_record_response=scrub_response,
        decode_compressed_response=True,
    )

    custom_vcr.register_matcher('etcd_body', etcd_body_matcher)

    return custom_vcr


# =============================================================================
# Decorator for VCR Tests
# =============================================================================

def use_cassette(cassette_name: str, record_mode: str = None):
    """
    Decorator to use VCR cassette for a test.

    Example:
        @use_cassette('etcd_prefix_roundtrip')
        def test_list_items(self):
            # Gateway calls will be recorded/replayed
            pass

    Args:
        cassette_name: Name of the cassette file
        record_mode: Override default record mode
    """
    def decorator(func: Callable):
        @wraps(func)
        def wrapper(*args, **kwargs):
            mode = record_mode or os.environ.get('VCR_RECORD_MODE', 'none')
            my_vcr = get_vcr(mode)

            cassette_path = f"{cassette_name}.yaml"
            with my_vcr.use_cassette(cassette_path):
                return func(*args, **kwargs)

        return wrapper
    return decorator
