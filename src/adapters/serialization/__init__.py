from .json_codec import MAX_SAFE_INTEGER, encode_json, parse_int, to_wire

__all__ = ["MAX_SAFE_INTEGER", "encode_json", "parse_int", "to_wire"]
