from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from tomorrowify.domain.errors import MetricsPublishError, ProviderCallError
from tomorrowify.infrastructure.cloudwatch import CloudWatchMetricsSink


class TestCloudWatchMetricsSink:
    """Tests for the CloudWatch metrics sink."""

    def setup_method(self):
        self.client = Mock()
        self.sink = CloudWatchMetricsSink(client=self.client)
        self.timestamp = datetime(2024, 5, 1, tzinfo=timezone.utc)

    def test_put_metric_builds_datum(self):
        self.sink.put_metric('TomorrowifyMetrics', 'TomorrowTracks', 250.0,
                             self.timestamp, [('User', 'spotify-user')])

        self.client.put_metric_data.assert_called_once_with(
            Namespace='TomorrowifyMetrics',
            MetricData=[{
                'MetricName': 'TomorrowTracks',
                'Value': 250.0,
                'Timestamp': self.timestamp,
                'Unit': 'Count',
                'Dimensions': [{'Name': 'User', 'Value': 'spotify-user'}],
            }],
        )

    def test_client_error_becomes_metrics_error(self):
        self.client.put_metric_data.side_effect = ClientError(
            {'Error': {'Code': 'Throttling', 'Message': 'Rate exceeded'}}, 'PutMetricData')

        with pytest.raises(MetricsPublishError) as exc_info:
            self.sink.put_metric('NS', 'TomorrowTracks', 1.0, self.timestamp, [])

        assert isinstance(exc_info.value, ProviderCallError)
        assert exc_info.value.operation == 'put_metric'
