from .field_normalizer import FIELD_BY_KEY, normalize, normalize_key

__all__ = ["FIELD_BY_KEY", "normalize", "normalize_key"]
