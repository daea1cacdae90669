"""
Serialization of header collections for the header artifact.

The format is a JSON object whose keys are header names and whose values are
arrays of strings. JSON objects keep their key order and arrays keep theirs,
so both the order of names and the order of repeated values survive.
"""

import json
from typing import Dict, List

from .errors import MalformedCacheHeader
from .model import Headers


class HeadersJSONDecoder(json.JSONDecoder):
    """
    Decodes a header artifact, rejecting anything that is not a valid header collection.
    """

    def decode(self, s):
        result = super().decode(s)
        if not isinstance(result, dict):
            raise MalformedCacheHeader('Expected a JSON object, got {}'.format(type(result).__name__))
        for name, values in result.items():
            if not isinstance(values, list) or not all(isinstance(value, str) for value in values):
                raise MalformedCacheHeader('Values of header {!r} are not a list of strings'.format(name))
        return result


def encode_headers(headers: Headers) -> bytes:
    return json.dumps({name: list(values) for name, values in headers.items()}).encode('utf-8')


def decode_headers(content: bytes) -> Dict[str, List[str]]:
    """
    Parse a header artifact back into a header collection.

    @param content
      The raw bytes of the artifact.
    @return
      The headers, in the order they were encoded.
    @throws MalformedCacheHeader
      If `content` is not UTF-8 JSON, or does not map names to lists of strings.
    """
    try:
        return json.loads(content.decode('utf-8'), cls=HeadersJSONDecoder)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedCacheHeader(str(e)) from e
