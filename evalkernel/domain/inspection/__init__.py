from .inspector import classify, property_names, kind_of, walk_chain

__all__ = ["classify", "property_names", "kind_of", "walk_chain"]
