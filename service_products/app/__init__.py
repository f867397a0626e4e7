"""
Products service package.

Stock-keeping resource service: CRUD over products plus
increase/decrease quantity actions, backed by the shared resource layer.
"""
