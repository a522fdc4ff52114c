"""
certlifecycle Configuration Module

Provides centralized connector configuration with:
- Environment variable loading (CL_ prefix)
- Type validation via Pydantic
- Development overrides via .env file

Environment Variable Naming Convention:
- All variables use the CL_ prefix (e.g., CL_BASE_URL, CL_ACCESS_TOKEN)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional, List


DEFAULT_CLIENT_ID = "vcert-sdk"
DEFAULT_SCOPE = "certificate:manage,revoke"


class ConnectorSettings(BaseSettings):
    """
    Connector settings.

    Loads from environment variables with the CL_ prefix.

    Usage:
        from certlifecycle.utils.config import ConnectorSettings
        from certlifecycle.tpp.connector import Connector

        connector = Connector.from_settings(ConnectorSettings())
    """
    model_config = SettingsConfigDict(
        env_prefix='CL_',
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore'
    )

    # ==========================================================================
    # GENERAL
    # ==========================================================================
    ENVIRONMENT: str = Field(default="development", description="Runtime environment: development, staging, production")

    # ==========================================================================
    # BACKEND
    # ==========================================================================
    BASE_URL: str = Field(default="", description="Backend base URL, e.g. https://tpp.example.com")
    ZONE: str = Field(default="", description="Policy folder requests are placed in")

    # ==========================================================================
    # CREDENTIALS (bearer token > legacy API key > unauthenticated)
    # ==========================================================================
    ACCESS_TOKEN: Optional[str] = Field(default=None, description="Bearer access token")
    REFRESH_TOKEN: Optional[str] = Field(default=None, description="Refresh token for the refresh grant")
    API_KEY: Optional[str] = Field(default=None, description="Legacy API key")
    USERNAME: Optional[str] = Field(default=None, description="Username for the password grant")
    PASSWORD: Optional[str] = Field(default=None, description="Password for the password grant")
    CLIENT_ID: str = Field(default=DEFAULT_CLIENT_ID, description="OAuth application id")
    SCOPE: str = Field(default=DEFAULT_SCOPE, description="Requested OAuth scope")

    # ==========================================================================
    # TLS
    # ==========================================================================
    TRUST_BUNDLE: Optional[str] = Field(default=None, description="PEM file with trusted root CAs")
    INSECURE: bool = Field(default=False, description="Disable certificate verification (NEVER in production)")
    CLIENT_P12: Optional[str] = Field(default=None, description="PKCS#12 client certificate bundle for mutual TLS")
    CLIENT_P12_PASSWORD: Optional[str] = Field(default=None, description="Password of the PKCS#12 bundle")

    # ==========================================================================
    # TIMING
    # ==========================================================================
    HTTP_TIMEOUT_SECONDS: float = Field(default=30.0, description="Per-call HTTP timeout")
    RETRIEVE_TIMEOUT_SECONDS: float = Field(default=180.0, description="Default wait for issuance")
    POLL_INTERVAL_SECONDS: float = Field(default=2.0, description="Default delay between retrieve attempts")
    TOKEN_REFRESH_LEEWAY_SECONDS: int = Field(default=60, description="Refresh tokens this close to expiry")

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT.lower() == "production"

    def validate_connection_config(self) -> List[str]:
        """
        Validate configuration before a connector is built.

        Returns:
            List of configuration warnings/errors
        """
        issues = []

        if not self.BASE_URL:
            issues.append("CRITICAL: CL_BASE_URL not set")
        if self.USERNAME and not self.PASSWORD:
            issues.append("CRITICAL: CL_USERNAME set without CL_PASSWORD")
        if self.CLIENT_P12 and self.CLIENT_P12_PASSWORD is None:
            issues.append("WARNING: CL_CLIENT_P12 set without CL_CLIENT_P12_PASSWORD")
        if self.INSECURE and self.TRUST_BUNDLE:
            issues.append("WARNING: CL_TRUST_BUNDLE is ignored when CL_INSECURE=true")
        if self.is_production() and self.INSECURE:
            issues.append("CRITICAL: CL_INSECURE=true in production")
        if not (self.ACCESS_TOKEN or self.REFRESH_TOKEN or self.API_KEY or self.USERNAME or self.CLIENT_P12):
            issues.append("WARNING: no credentials configured, requests will be unauthenticated")

        return issues
