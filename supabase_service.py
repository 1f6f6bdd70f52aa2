"""Small Supabase helper used by the project.

This module provides a convenience helper for creating the server-side
Supabase client. It keeps network calls out of startup-time so importing
this module won't trigger any remote calls until you explicitly call the
helper functions.

Environment variables expected:
- SUPABASE_URL
- SUPABASE_KEY (anon/public key)
- SUPABASE_SERVICE_KEY (service role key with DB privileges)
"""

import logging
import os

from supabase import create_client, Client

from services.errors import ConfigurationError


logger = logging.getLogger(__name__)

REQUIRED_VARS = ["SUPABASE_URL", "SUPABASE_KEY"]


def _supabase_url():
	return os.getenv("SUPABASE_URL")


def _anon_key():
	return os.getenv("SUPABASE_KEY")


def _service_key():
	return os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_SERVICE_ROLE_KEY")


def _ensure_url():
	url = _supabase_url()
	if not url:
		logger.error("SUPABASE_URL is not set in the environment")
		raise ConfigurationError("Supabase client not initialized. Please check your environment variables.")
	return url


def validate_config() -> list:
	"""Log which required Supabase variables are missing.

	Returns the list of missing variable names. Never raises: a missing
	variable only becomes fatal when a client is actually requested.
	"""
	missing = [name for name in REQUIRED_VARS if not os.getenv(name)]
	if missing:
		logger.error(f"Missing environment variables: {missing}")
		logger.error("Please check your .env file and ensure all required variables are set.")
		logger.error(
			"Current config: url=%s, anon_key=%s, service_key=%s",
			"Set" if _supabase_url() else "Missing",
			"Set" if _anon_key() else "Missing",
			"Set" if _service_key() else "Missing",
		)
	return missing


def get_service_client() -> Client:
	"""Return a Supabase client for the server-side data access layer.

	Uses the service role key when present and falls back to the anon key,
	which is enough when row level security is disabled for the expense tables.
	The service role key should be kept secret and only used on the server.
	"""
	url = _ensure_url()
	key = _service_key() or _anon_key()
	if not key:
		logger.error("Neither SUPABASE_SERVICE_KEY nor SUPABASE_KEY is set in the environment")
		raise ConfigurationError("Supabase client not initialized. Please check your environment variables.")
	return create_client(url, key)


__all__ = [
	"REQUIRED_VARS",
	"validate_config",
	"get_service_client",
]
