"""media/ -- Upload collaborator for profile images.

Layer rule: media/ imports only stdlib. auth/ depends on the MediaUploader
protocol, never on a concrete store.
"""
