from .routing_formatter import result_from_json, result_to_csv, result_to_json

__all__ = ["result_from_json", "result_to_csv", "result_to_json"]
