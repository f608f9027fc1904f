"""clinic_server — FastAPI REST API for the clinical session SDK.

Exposes ``SessionService`` as a stateless HTTP API: starting, scoring and
finalizing activity and assessment sessions, plus lookup, listing and
dashboard endpoints.
"""
