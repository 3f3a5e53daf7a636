"""Configuration loader for the gateway - loads from environment variables."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .app import GatewayConfig


def _optional_seconds(raw: Optional[str], default: Optional[float]) -> Optional[float]:
    if raw is None or raw.strip() == "":
        return default
    value = float(raw)
    return value if value > 0 else None


def _flag(raw: Optional[str], default: bool) -> bool:
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def load_config_from_env() -> GatewayConfig:
    """
    Load GatewayConfig from environment variables.

    Loads .env file if present and reads configuration values.

    Environment Variables:
        HOST: Server host (default: 127.0.0.1)
        PORT: Server port (default: 3000)
        GOOGLE_CLIENT_ID: OAuth client id
        GOOGLE_CLIENT_SECRET: OAuth client secret
        OAUTH_REDIRECT_URI: Redirect target registered for the client
            (default: http://localhost:3000/oauth2callback)
        FOLDER_ID_FILE: File caching the Drive folder id (default: folder_id.txt)
        DRIVE_FOLDER_NAME: Name of the Drive folder to create (default: MET Artworks)
        REQUEST_TIMEOUT: Outbound request timeout in seconds, 0 disables (default: 30)
        WORKFLOW_TIMEOUT: Per-request workflow timeout in seconds, 0 disables (default: 120)
        FORCE_IPV4: Force outbound connections over IPv4 (default: false)

    Returns:
        GatewayConfig object with values from environment
    """
    # Load .env file if it exists
    load_dotenv()

    defaults = GatewayConfig()
    return GatewayConfig(
        host=os.getenv("HOST", defaults.host),
        port=int(os.getenv("PORT", str(defaults.port))),
        client_id=os.getenv("GOOGLE_CLIENT_ID", defaults.client_id),
        client_secret=os.getenv("GOOGLE_CLIENT_SECRET", defaults.client_secret),
        redirect_uri=os.getenv("OAUTH_REDIRECT_URI", defaults.redirect_uri),
        folder_name=os.getenv("DRIVE_FOLDER_NAME", defaults.folder_name),
        folder_store_path=Path(os.getenv("FOLDER_ID_FILE", str(defaults.folder_store_path))),
        request_timeout=_optional_seconds(os.getenv("REQUEST_TIMEOUT"), defaults.request_timeout),
        workflow_timeout=_optional_seconds(os.getenv("WORKFLOW_TIMEOUT"), defaults.workflow_timeout),
        force_ipv4=_flag(os.getenv("FORCE_IPV4"), defaults.force_ipv4),
    )
