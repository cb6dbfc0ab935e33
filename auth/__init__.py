"""auth/ -- Credential verification and session lifecycle.

Layer rule: auth/ imports stdlib, third-party libraries, and the MediaUploader
protocol from media/. It does NOT import from api/.
api/ imports from auth/, not the other way around.
"""
