import threading
import boto3
from botocore.config import Config as BotoConfig

_CLIENTS = {}
_LOCK = threading.Lock()


def aws_client(service, config, timeout_ms=None):
    """Return a cached boto3 client for service, keyed by region, credentials and timeout."""
    region = config.get("AWS_REGION") or "us-east-1"
    key = (service, region, config.get("AWS_ACCESS_KEY_ID"), timeout_ms)
    with _LOCK:
        client = _CLIENTS.get(key)
        if client is None:
            boto_cfg = BotoConfig(retries={"max_attempts": 2, "mode": "standard"})
            if timeout_ms and timeout_ms > 0:
                seconds = timeout_ms / 1000.0
                boto_cfg = boto_cfg.merge(BotoConfig(connect_timeout=seconds, read_timeout=seconds))
            client = boto3.client(
                service,
                region_name=region,
                aws_access_key_id=config.get("AWS_ACCESS_KEY_ID"),
                aws_secret_access_key=config.get("AWS_SECRET_ACCESS_KEY"),
                config=boto_cfg,
            )
            _CLIENTS[key] = client
        return client
