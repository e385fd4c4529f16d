"""Core business logic layer.

Subpackages:
- deadline: weekly ordering window and cutoff computation
- ordering: draft composition, authorization scoping and the order lifecycle
- pricing: subtotal/tax/total computation
"""
__all__ = ["deadline", "ordering", "pricing"]
