import os
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

import constants
from exceptions import TLSConfigurationError


class RelaySettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080
    scheme: str = "http"
    relay_path: str = "/socket"
    service_key: str = ""
    ssl_key_path: str = ""
    ssl_cert_path: str = ""
    ssl_ca_path: str = ""
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "RelaySettings":
        origins = [item.strip() for item in constants.CORS_ORIGINS.split(",") if item.strip()]
        return cls(
            host=constants.HOST,
            port=constants.PORT,
            scheme=constants.RELAY_SCHEME.lower(),
            relay_path=constants.RELAY_PATH,
            service_key=constants.SERVICE_KEY,
            ssl_key_path=constants.SSL_KEY_PATH,
            ssl_cert_path=constants.SSL_CERT_PATH,
            ssl_ca_path=constants.SSL_CA_PATH,
            cors_origins=origins or ["*"],
            log_level=constants.LOG_LEVEL,
            log_file=constants.LOG_FILE,
        )

    @property
    def uses_tls(self) -> bool:
        return self.scheme == "https"

    def missing_tls_credentials(self) -> List[str]:
        """Names of the TLS files that are unset or don't exist on disk."""
        missing = []
        if not self.ssl_key_path or not os.path.isfile(self.ssl_key_path):
            missing.append("key")
        if not self.ssl_cert_path or not os.path.isfile(self.ssl_cert_path):
            missing.append("certificate")
        return missing

    def ssl_options(self) -> Dict[str, str]:
        """uvicorn keyword arguments for the configured scheme.

        Raises TLSConfigurationError when https is requested without a usable
        key and certificate.
        """
        if not self.uses_tls:
            return {}
        missing = self.missing_tls_credentials()
        if missing:
            raise TLSConfigurationError(missing)
        options = {
            "ssl_keyfile": self.ssl_key_path,
            "ssl_certfile": self.ssl_cert_path,
        }
        if self.ssl_ca_path:
            options["ssl_ca_certs"] = self.ssl_ca_path
        return options
