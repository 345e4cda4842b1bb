from __future__ import annotations

import gzip
import json


def test_encode_blob_uses_base64_gzip_transport():
    from sessionlens.features.decoder.compression import B64_GZIP_PREFIX, encode_blob, try_decompress

    blob = encode_blob({"source": 2, "id": 7})
    assert blob.startswith(B64_GZIP_PREFIX)
    assert try_decompress(blob) == {"source": 2, "id": 7}


def test_try_decompress_accepts_binary_string_transport():
    from sessionlens.features.decoder.compression import try_decompress

    binary = gzip.compress(json.dumps({"x": 1}).encode("utf-8")).decode("latin-1")
    assert try_decompress(binary) == {"x": 1}


def test_try_decompress_leaves_plain_strings_alone():
    from sessionlens.features.decoder.compression import is_decompressed, try_decompress

    for value in ("", "h", "hello world", "H4sI-not-base64!!"):
        assert not is_decompressed(try_decompress(value))


def test_decompress_nested_opens_double_compression():
    from sessionlens.features.decoder.compression import decompress_nested, encode_blob

    inner = {"node": {"type": 0, "id": 1}}
    doubled = encode_blob(encode_blob(inner))

    out = decompress_nested({"data": doubled, "keep": "plain", "items": [encode_blob([1, 2])]})
    assert out == {"data": inner, "keep": "plain", "items": [[1, 2]]}


def test_decompress_nested_stops_at_max_depth():
    from sessionlens.features.decoder.compression import decompress_nested, encode_blob, try_decompress

    inner = {"a": 1}
    once = encode_blob(inner)
    doubled = encode_blob(once)

    assert decompress_nested(doubled, max_depth=1) == once
    assert try_decompress(decompress_nested(doubled, max_depth=1)) == inner


def test_decompress_nested_does_not_mutate_input():
    from sessionlens.features.decoder.compression import decompress_nested, encode_blob

    payload = {"data": [encode_blob({"a": 1})]}
    snapshot = json.dumps(payload)
    decompress_nested(payload)
    assert json.dumps(payload) == snapshot
