# =============================================================================
# Storage
# =============================================================================
# Workspace file storage on S3, skill state persisted through it, and
# temporary files whose removal is tied to the invocation's teardown.
#
# Bucket: SKILL_STORAGE (an "s3://" prefix is stripped) or
#         <workspace id>-workspace-storage
# State:  state/<workspace>/<namespace>/<skill name>/<skill id>.json
# =============================================================================

import json
import logging
import os
import shutil
import tempfile
import uuid
from typing import Any, Optional

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


def bucket_name(workspace_id: str) -> Optional[str]:
    bucket = os.environ.get("SKILL_STORAGE") or (
        f"{workspace_id.lower()}-workspace-storage" if workspace_id else None
    )
    if bucket and bucket.startswith("s3://"):
        bucket = bucket[len("s3://"):]
    return bucket


def _tmp_path(name: str = None) -> str:
    return os.path.join(tempfile.gettempdir(), name or str(uuid.uuid4()))


class StorageProvider:
    """
    S3 backed workspace storage.

    The boto3 client is created on first use.
    """

    def __init__(self, bucket: Optional[str], region: str = None, s3_client: Any = None):
        self.bucket = bucket
        self.region = region or os.environ.get("AWS_REGION", "us-east-1")
        self._s3 = s3_client

    @property
    def s3(self):
        if self._s3 is None:
            self._s3 = boto3.client("s3", region_name=self.region)
        return self._s3

    def store(self, key: str, source_path: str) -> None:
        """Upload a local file under key."""
        self.s3.upload_file(source_path, self.bucket, key)

    def retrieve(self, key: str, target_path: str = None) -> str:
        """Download key to target_path (a fresh temp file by default) and return the path."""
        target_path = target_path or _tmp_path()
        os.makedirs(os.path.dirname(target_path) or ".", exist_ok=True)
        self.s3.download_file(self.bucket, key, target_path)
        return target_path


# =============================================================================
# SKILL STATE
# =============================================================================

def state_key(ctx: Any) -> str:
    return f"state/{ctx.workspace_id}/{ctx.skill.namespace}/{ctx.skill.name}/{ctx.skill.id}.json"


def hydrate(ctx: Any, default: Any = None) -> Any:
    """Load the skill's persisted state, or default when there is none."""
    try:
        path = ctx.storage.retrieve(state_key(ctx))
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (ClientError, OSError, ValueError) as e:
        logger.debug(f"No state hydrated for {state_key(ctx)}: {e}")
        return default if default is not None else {}


def save(state: Any, ctx: Any) -> None:
    """Persist the skill's state. Failures are logged."""
    path = _tmp_path()
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(state, f)
        ctx.storage.store(state_key(ctx), path)
    except (ClientError, OSError, TypeError) as e:
        logger.warning(f"Failed to save state: {e}")
    finally:
        if os.path.exists(path):
            os.remove(path)


# =============================================================================
# TEMPORARY FILES
# =============================================================================

def create_dir(ctx: Any, name: str = None) -> str:
    """Create a temp directory removed when the context closes."""
    path = _tmp_path(name)
    os.makedirs(path, exist_ok=True)
    ctx.on_complete(lambda: shutil.rmtree(path, ignore_errors=True))
    return path


def create_file(ctx: Any, name: str = None, content: str = None, path: str = None) -> str:
    """Create a temp file path (optionally with content) removed when the context closes."""
    path = path or _tmp_path(name)

    def _remove():
        if os.path.exists(path):
            os.remove(path)

    ctx.on_complete(_remove)
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    if content:
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
    return path
