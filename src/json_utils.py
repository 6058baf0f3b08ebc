"""JSON helpers backed by orjson."""

import orjson


def json_loads(b):
    return orjson.loads(b)
