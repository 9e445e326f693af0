"""
The CONTROLLER layer turns the live scene into a saved document:
vertex re-keying, reference rewriting and document assembly.
"""
