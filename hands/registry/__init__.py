"""Registry — discovery of components in a shared rules tree.

The rules tree is the source of truth: components are recomputed from it
on every run and carry no identity beyond (category, name).
"""
