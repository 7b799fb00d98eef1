import json
import logging
import os
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from tomorrowify.domain.entities import UserCredential
from tomorrowify.domain.errors import ProviderCallError

logger = logging.getLogger(__name__)


class DynamoDBTokenRepository:
    """Refresh tokens stored as ``{Key, Token}`` items in a DynamoDB table."""

    def __init__(self, table_name: str, resource: Optional[Any] = None):
        self.table_name = table_name
        self._table = (resource or boto3.resource('dynamodb')).Table(table_name)

    def get_all_tokens(self) -> List[UserCredential]:
        items: List[Dict[str, Any]] = []
        last_key = None

        try:
            while True:
                scan_kwargs: Dict[str, Any] = {}
                if last_key:
                    scan_kwargs['ExclusiveStartKey'] = last_key
                response = self._table.scan(**scan_kwargs)
                items.extend(response.get('Items', []))
                last_key = response.get('LastEvaluatedKey')
                if not last_key:
                    break
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to scan token table {self.table_name}: {e}")
            raise ProviderCallError('get_all_tokens', str(e))

        credentials = []
        for item in items:
            key = item.get('Key')
            token = item.get('Token')
            if not key or not token:
                logger.warning(f"Skipping token item without Key or Token in {self.table_name}")
                continue
            credentials.append(UserCredential(key=str(key), refresh_token=str(token)))

        logger.info(f"Loaded {len(credentials)} refresh tokens from {self.table_name}")
        return credentials


class JsonFileTokenRepository:
    """Refresh tokens kept in a local JSON file.

    Format: ``{"<user key>": {"refresh_token": "..."}}``.
    """

    def __init__(self, path: str):
        self.path = path

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ProviderCallError('get_all_tokens', f"Failed to load tokens from {self.path}: {e}")
        if not isinstance(data, dict):
            raise ProviderCallError('get_all_tokens', f"{self.path} must contain a JSON object")
        return data

    def get_all_tokens(self) -> List[UserCredential]:
        credentials = []
        for key, entry in self._load().items():
            token = entry.get('refresh_token') if isinstance(entry, dict) else None
            if not token:
                logger.warning(f"Skipping {key}: no refresh_token in {self.path}")
                continue
            credentials.append(UserCredential(key=key, refresh_token=token))
        return credentials

    def save_token(self, key: str, refresh_token: str) -> None:
        """Store or replace the refresh token for ``key``."""
        data = self._load()
        data[key] = {'refresh_token': refresh_token}
        with open(self.path, 'w') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
