"""Secret loading for the Corebound API.

Each secret has a Docker secret file under /run/secrets and an environment
variable. The file wins so that production containers never depend on env
values; local development just sets the variable (or a .env file).

Usage:
    from corebound.secrets import SecretsManager

    jwt_secret = SecretsManager.get_jwt_secret()
    key = SecretsManager.get_credentials_key()
"""

import logging
import os
from pathlib import Path
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

# name -> (Docker secret file, environment variable)
SECRET_SOURCES: Dict[str, Tuple[str, str]] = {
    "jwt_secret": ("supabase_jwt_secret", "SUPABASE_JWT_SECRET"),
    "credentials_key": ("credentials_encryption_key", "CREDENTIALS_ENCRYPTION_KEY"),
    "db_password": ("db_password", "DB_PASSWORD"),
}


class SecretsManager:
    """Resolve Corebound secrets from Docker secret files or the environment."""

    SECRETS_DIR = Path("/run/secrets")

    @classmethod
    def _read_secret_file(cls, file_name: str) -> Optional[str]:
        path = cls.SECRETS_DIR / file_name
        if not path.is_file():
            return None
        try:
            value = path.read_text().strip()
        except OSError as e:
            logger.error(f"Could not read Docker secret {file_name}: {e}")
            return None
        return value or None

    @classmethod
    def get_secret(cls, secret_name: str, env_var_name: Optional[str] = None) -> Optional[str]:
        """
        Load a secret by file name, falling back to an environment variable.

        Args:
            secret_name: File under SECRETS_DIR, e.g. 'supabase_jwt_secret'
            env_var_name: Environment variable checked when the file is absent

        Returns:
            Secret value, or None when neither source has it
        """
        value = cls._read_secret_file(secret_name)
        if value is not None:
            logger.info(f"Loaded {secret_name} from Docker secrets")
            return value

        if env_var_name and os.getenv(env_var_name):
            return os.getenv(env_var_name)

        logger.debug(f"{secret_name} not configured")
        return None

    @classmethod
    def load(cls, name: str) -> Optional[str]:
        """Load one of the secrets named in SECRET_SOURCES."""
        file_name, env_var = SECRET_SOURCES[name]
        return cls.get_secret(file_name, env_var)

    @classmethod
    def get_jwt_secret(cls) -> Optional[str]:
        """HS256 secret that signs user access tokens."""
        return cls.load("jwt_secret")

    @classmethod
    def get_credentials_key(cls) -> Optional[str]:
        """AES-256-GCM key for stored exchange and AI credentials."""
        return cls.load("credentials_key")

    @classmethod
    def get_db_password(cls) -> Optional[str]:
        return cls.load("db_password")
