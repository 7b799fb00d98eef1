import logging
from datetime import datetime
from typing import Any, Optional, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from tomorrowify.domain.entities import MetricTag
from tomorrowify.domain.errors import MetricsPublishError

logger = logging.getLogger(__name__)


class CloudWatchMetricsSink:
    """Metrics sink backed by CloudWatch ``put_metric_data``.

    boto3 clients are thread-safe, so one sink is shared by all user tasks.
    """

    def __init__(self, client: Optional[Any] = None):
        self._client = client or boto3.client('cloudwatch')

    def put_metric(self, namespace: str, name: str, value: float,
                   timestamp: datetime, dimensions: Sequence[MetricTag]) -> None:
        datum = {
            'MetricName': name,
            'Value': value,
            'Timestamp': timestamp,
            'Unit': 'Count',
            'Dimensions': [{'Name': dim_name, 'Value': dim_value} for dim_name, dim_value in dimensions],
        }
        try:
            self._client.put_metric_data(Namespace=namespace, MetricData=[datum])
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to publish metric {name} to {namespace}: {e}")
            raise MetricsPublishError(str(e)) from e
