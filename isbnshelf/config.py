from dataclasses import dataclass
from typing import Mapping, Optional

BACKENDS = ("file", "s3", "sheets")

# Expected .streamlit/secrets.toml layout (every section optional):
# [google_books]
# api_key = "..."
# [lookup]
# timeout = 10
# [storage]
# backend = "file"            # file | s3 | sheets
# path = "library.json"
# [s3]
# bucket = "my-bucket"
# key = "library.json"
# region = "us-east-1"
# access_key_id = "..."
# secret_access_key = "..."
# [sheet]
# name = "isbnshelf"
# worksheet = "books"
# [gcp_service_account]
# type = "service_account"
# ...


class ConfigError(ValueError):
    pass


def _section(secrets: Mapping, name: str) -> Mapping:
    try:
        value = secrets.get(name) or {}
    except FileNotFoundError:
        # st.secrets raises this when no secrets.toml exists
        return {}
    return value if isinstance(value, Mapping) else {}


@dataclass
class ShelfConfig:
    google_api_key: Optional[str] = None
    timeout: float = 10
    backend: str = "file"
    path: str = "library.json"
    s3_bucket: Optional[str] = None
    s3_key: str = "library.json"
    s3_region: str = "us-east-1"
    s3_access_key_id: Optional[str] = None
    s3_secret_access_key: Optional[str] = None
    sheet_name: Optional[str] = None
    worksheet: str = "books"
    has_service_account: bool = False

    @classmethod
    def from_secrets(cls, secrets: Mapping) -> "ShelfConfig":
        gb = _section(secrets, "google_books")
        lookup = _section(secrets, "lookup")
        storage = _section(secrets, "storage")
        s3 = _section(secrets, "s3")
        sheet = _section(secrets, "sheet")
        try:
            timeout = float(lookup.get("timeout", 10))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"[lookup].timeout must be a number: {e}") from e
        return cls(
            google_api_key=gb.get("api_key") or None,
            timeout=timeout,
            backend=str(storage.get("backend", "file")).strip().lower(),
            path=storage.get("path") or "library.json",
            s3_bucket=s3.get("bucket") or None,
            s3_key=s3.get("key") or "library.json",
            s3_region=s3.get("region") or "us-east-1",
            s3_access_key_id=s3.get("access_key_id") or None,
            s3_secret_access_key=s3.get("secret_access_key") or None,
            sheet_name=sheet.get("name") or None,
            worksheet=sheet.get("worksheet") or "books",
            has_service_account=bool(_section(secrets, "gcp_service_account")),
        )

    def validate(self) -> None:
        if self.backend not in BACKENDS:
            raise ConfigError(f"[storage].backend must be one of {', '.join(BACKENDS)}, got {self.backend!r}")
        if self.timeout <= 0:
            raise ConfigError("[lookup].timeout must be positive")
        if self.backend == "s3" and not (self.s3_bucket or "").strip():
            raise ConfigError("Missing secret: [s3].bucket (required for the s3 backend)")
        if self.backend == "sheets":
            if not self.sheet_name:
                raise ConfigError("Missing secret: [sheet].name (required for the sheets backend)")
            if not self.has_service_account:
                raise ConfigError("Missing secrets section: [gcp_service_account]")
