import logging
import re
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .catalog import CatalogFormatError, catalog_from_json, catalog_to_json
from .models import Catalog

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"


class StorageError(RuntimeError):
    pass


def suggested_filename(catalog: Catalog) -> str:
    base = re.sub(r"[^\w\- ]+", "", catalog.name or "").strip() or "library"
    return f"{base}.json"


def save_catalog(catalog: Catalog, path: str | Path) -> Path:
    p = Path(path).expanduser()
    tmp = p.with_suffix(p.suffix + ".tmp")
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(catalog_to_json(catalog), encoding="utf-8")
        tmp.replace(p)
    except (OSError, UnicodeError) as e:
        logger.error("save failed | path=%s | err=%r", p, e)
        try:
            tmp.unlink(missing_ok=True)
        except OSError as cleanup_err:
            logger.warning("tmp cleanup failed | path=%s | err=%r", tmp, cleanup_err)
        raise StorageError(f"Could not write {p}: {e}") from e
    logger.info("saved catalog | path=%s | books=%s", p, len(catalog.books))
    return p


def load_catalog(path: str | Path) -> Catalog:
    p = Path(path).expanduser()
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise StorageError(f"Could not read {p}: {e}") from e
    return catalog_from_json(text)


def s3_client(region: str = DEFAULT_REGION, access_key_id: Optional[str] = None, secret_access_key: Optional[str] = None):
    kwargs = {"region_name": region or DEFAULT_REGION}
    if access_key_id and secret_access_key:
        kwargs["aws_access_key_id"] = access_key_id
        kwargs["aws_secret_access_key"] = secret_access_key
    return boto3.client("s3", **kwargs)


def load_catalog_from_s3(
    bucket: str,
    key: str,
    region: str = DEFAULT_REGION,
    access_key_id: Optional[str] = None,
    secret_access_key: Optional[str] = None,
    *,
    client=None,
) -> Catalog:
    s3 = client or s3_client(region, access_key_id, secret_access_key)
    try:
        obj = s3.get_object(Bucket=bucket, Key=key)
        body = obj["Body"].read()
    except (BotoCoreError, ClientError) as e:
        logger.error("s3 load failed | bucket=%s | key=%s | err=%r", bucket, key, e)
        raise StorageError("Could not load the library from S3") from e
    if not body:
        raise StorageError("S3 object is empty")
    try:
        catalog = catalog_from_json(body)
    except CatalogFormatError as e:
        raise StorageError(f"S3 object is not a library: {e}") from e
    logger.info("loaded catalog from s3 | bucket=%s | key=%s | books=%s", bucket, key, len(catalog.books))
    return catalog


def save_catalog_to_s3(
    catalog: Catalog,
    bucket: str,
    key: str,
    region: str = DEFAULT_REGION,
    access_key_id: Optional[str] = None,
    secret_access_key: Optional[str] = None,
    *,
    client=None,
) -> None:
    s3 = client or s3_client(region, access_key_id, secret_access_key)
    try:
        s3.put_object(
            Bucket=bucket,
            Key=key,
            Body=catalog_to_json(catalog).encode("utf-8"),
            ContentType="application/json",
        )
    except (BotoCoreError, ClientError, UnicodeError) as e:
        logger.error("s3 save failed | bucket=%s | key=%s | err=%r", bucket, key, e)
        raise StorageError("Could not save the library to S3") from e
    logger.info("saved catalog to s3 | bucket=%s | key=%s | books=%s", bucket, key, len(catalog.books))
