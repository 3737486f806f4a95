import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_BASE_URL = 'https://api.contentful.com'


@dataclass
class ExportConfig:
    """Credentials and connection settings for one export run"""
    api_token: str
    organization_id: str
    base_url: str = DEFAULT_BASE_URL
    timeout: Optional[float] = None

    @classmethod
    def from_env(cls, env_file_path: Optional[str] = None, override: bool = False) -> 'ExportConfig':
        # Custom path or .env in the working directory; override replaces values already set
        load_dotenv(env_file_path or '.env', override=override)

        api_token = os.getenv('CONTENTFUL_MANAGEMENT_API_TOKEN')
        organization_id = os.getenv('CONTENTFUL_ORGANIZATION_ID')

        missing = []
        if not api_token:
            missing.append('CONTENTFUL_MANAGEMENT_API_TOKEN')
        if not organization_id:
            missing.append('CONTENTFUL_ORGANIZATION_ID')
        if missing:
            raise ValueError(f"Missing required Contentful settings: {', '.join(missing)}. "
                             "Please check your .env file.")

        timeout = os.getenv('CONTENTFUL_REQUEST_TIMEOUT')
        return cls(
            api_token=api_token,
            organization_id=organization_id,
            base_url=(os.getenv('CONTENTFUL_BASE_URL') or DEFAULT_BASE_URL).rstrip('/'),
            timeout=float(timeout) if timeout else None,
        )

    @property
    def organization_url(self) -> str:
        return f"{self.base_url}/organizations/{self.organization_id}"
